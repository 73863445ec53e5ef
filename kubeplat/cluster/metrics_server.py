import pulumi
import pulumi_kubernetes.helm.v3 as helm

from kubeplat.cluster.context import Context
from kubeplat.utils import deep_merge

CHART_VERSION = "3.12.2"


def create_metrics_server(ctx: Context) -> None:
    """
    Installs the metrics server. The Horizontal Pod Autoscaler needs the
    resource metrics it serves in order to scale pods.
    """
    addon = ctx.cloud_config.addons.metricsServer
    if not addon.enabled:
        return

    values = {
        "args": ["--kubelet-preferred-address-types=InternalIP"],
    }

    helm.Chart(
        "metrics-server",
        helm.ChartOpts(
            chart="metrics-server",
            version=addon.version or CHART_VERSION,
            namespace="kube-system",
            fetch_opts=helm.FetchOpts(
                repo="https://kubernetes-sigs.github.io/metrics-server/"
            ),
            values=deep_merge(values, addon.values),
        ),
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider),
    )

from typing import Optional

import pulumi
import pulumi_kubernetes as k8s
import pulumi_kubernetes.helm.v3 as helm

from kubeplat.cluster.context import Context
from kubeplat.utils import deep_merge

CHART_VERSION = "7.6.12"


def create_argocd(ctx: Context) -> Optional[k8s.core.v1.Namespace]:
    """
    Installs ArgoCD into its own namespace.

    The server is kept internal to the cluster; expose it through an Ingress in
    the chart values if needed.

    Returns:
        Optional[k8s.core.v1.Namespace]: The ArgoCD namespace, or None if the
            add-on is disabled.
    """
    addon = ctx.cloud_config.addons.argocd
    if not addon.enabled:
        return None

    ns = k8s.core.v1.Namespace(
        "argocd-ns",
        metadata={"name": addon.namespace},
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider),
    )

    values = {
        "configs": {"params": {"server.insecure": True}},
        "server": {"service": {"type": "ClusterIP"}},
    }

    helm.Chart(
        "argocd",
        helm.ChartOpts(
            chart="argo-cd",
            version=addon.version or CHART_VERSION,
            namespace=addon.namespace,
            fetch_opts=helm.FetchOpts(repo="https://argoproj.github.io/argo-helm"),
            values=deep_merge(values, addon.values),
        ),
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider, depends_on=[ns]),
    )
    return ns

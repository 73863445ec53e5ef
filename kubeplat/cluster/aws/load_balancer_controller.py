import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes.helm.v3 as helm
import requests

from kubeplat.cluster.aws.utils import irsa_annotation, oidc_role_for_sa
from kubeplat.cluster.context import Context
from kubeplat.utils import deep_merge, merge_tags

CHART_VERSION = "1.10.0"
# The IAM policy published with the controller release matching CHART_VERSION
CONTROLLER_VERSION = "v2.10.0"
SERVICE_ACCOUNT_NAME = "aws-load-balancer-controller"


def get_controller_policy(controller_version: str = CONTROLLER_VERSION) -> str:
    url = (
        "https://raw.githubusercontent.com/kubernetes-sigs/aws-load-balancer-controller/"
        f"{controller_version}/docs/install/iam_policy.json"
    )
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.text


def create_load_balancer_controller(ctx: Context, cluster: eks.Cluster) -> None:
    """
    Installs the AWS load balancer controller.

    The controller provisions ALBs for Ingress resources and NLBs for Service
    resources of type LoadBalancer, in the subnets tagged by the network bundle.

    Args:
        ctx (Context): The context holding the cluster config and the Kubernetes provider.
        cluster (eks.Cluster): The EKS cluster.

    Returns:
        None
    """
    addon = ctx.cloud_config.addons.loadBalancerController
    if not addon.enabled:
        return

    cluster_name = ctx.cluster_name

    policy = aws.iam.Policy(
        f"{cluster_name}-lbc-policy",
        description="IAM policy for the AWS load balancer controller",
        policy=get_controller_policy(),
        tags=merge_tags(ctx.tags),
    )

    role = oidc_role_for_sa(
        ctx, cluster, "lbc", f"kube-system:{SERVICE_ACCOUNT_NAME}"
    )

    aws.iam.RolePolicyAttachment(
        f"{cluster_name}-lbc-role-policy-attachment",
        policy_arn=policy.arn,
        role=role.name,
    )

    values = {
        "clusterName": cluster.eks_cluster.name,
        "region": ctx.region,
        "vpcId": ctx.vpc_id,
        "serviceAccount": {
            "create": True,
            "name": SERVICE_ACCOUNT_NAME,
            "annotations": irsa_annotation(role),
        },
    }

    helm.Chart(
        "aws-load-balancer-controller",
        helm.ChartOpts(
            chart="aws-load-balancer-controller",
            version=addon.version or CHART_VERSION,
            namespace="kube-system",
            fetch_opts=helm.FetchOpts(repo="https://aws.github.io/eks-charts"),
            values=deep_merge(values, addon.values),
        ),
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider),
    )

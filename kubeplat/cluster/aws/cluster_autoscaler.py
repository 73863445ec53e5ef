import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes.helm.v3 as helm
from pulumi_kubernetes.core.v1 import ConfigMap

from kubeplat.cluster.aws.utils import irsa_annotation, oidc_role_for_sa
from kubeplat.cluster.context import Context
from kubeplat.utils import deep_merge, merge_tags, to_yaml

CHART_VERSION = "9.43.2"


def create_priority_expander(ctx: Context) -> ConfigMap:
    # Spot node groups are scaled out before anything else
    priority_data = {10: [".*spot.*"], 1: [".*"]}
    return ConfigMap(
        "cluster-autoscaler-priority-expander",
        metadata={
            "name": "cluster-autoscaler-priority-expander",
            "namespace": "kube-system",
        },
        data={
            "priorities": to_yaml(priority_data),
        },
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider),
    )


def create_cluster_autoscaler(
    ctx: Context,
    cluster: eks.Cluster,
) -> None:
    """
    Sets up the cluster autoscaler for an EKS cluster.

    The autoscaler discovers the node groups' auto scaling groups by the cluster
    name tag and resizes them within the node group bounds when pods are pending.
    It runs in the cluster under a service account bound to an IAM role.

    Args:
        ctx (Context): The context holding the cluster config and the Kubernetes provider.
        cluster (eks.Cluster): The EKS cluster.

    Returns:
        None
    """
    addon = ctx.cloud_config.addons.clusterAutoscaler
    if not addon.enabled:
        return

    cluster_name = ctx.cluster_name

    autoscaler_policy_doc = aws.iam.get_policy_document(
        statements=[
            aws.iam.GetPolicyDocumentStatementArgs(
                actions=[
                    "autoscaling:DescribeAutoScalingGroups",
                    "autoscaling:DescribeAutoScalingInstances",
                    "autoscaling:DescribeLaunchConfigurations",
                    "autoscaling:DescribeScalingActivities",
                    "autoscaling:DescribeTags",
                    "autoscaling:SetDesiredCapacity",
                    "autoscaling:TerminateInstanceInAutoScalingGroup",
                    "ec2:DescribeLaunchTemplateVersions",
                    "ec2:DescribeInstanceTypes",
                    "ec2:GetInstanceTypesFromInstanceRequirements",
                    "ec2:DescribeImages",
                    "eks:DescribeNodegroup",
                ],
                resources=["*"],
            )
        ]
    )

    autoscaler_policy = aws.iam.Policy(
        f"{cluster_name}-autoscaler-policy",
        policy=autoscaler_policy_doc.json,
        tags=merge_tags(ctx.tags),
    )

    autoscaler_role = oidc_role_for_sa(
        ctx, cluster, "autoscaler", "kube-system:cluster-autoscaler"
    )

    aws.iam.RolePolicyAttachment(
        f"{cluster_name}-autoscaler-role-policy-attachment",
        policy_arn=autoscaler_policy.arn,
        role=autoscaler_role.name,
    )

    expander = create_priority_expander(ctx)

    values = {
        "autoDiscovery": {"clusterName": cluster.eks_cluster.name},
        "awsRegion": ctx.region,
        "rbac": {
            "create": True,
            "serviceAccount": {
                "create": True,
                "name": "cluster-autoscaler",
                "annotations": irsa_annotation(autoscaler_role),
            },
        },
        "extraArgs": {
            "expander": "priority,least-waste",
            "balance-similar-node-groups": True,
            "skip-nodes-with-system-pods": False,
        },
    }

    helm.Chart(
        "cluster-autoscaler",
        helm.ChartOpts(
            chart="cluster-autoscaler",
            version=addon.version or CHART_VERSION,
            namespace="kube-system",
            fetch_opts=helm.FetchOpts(repo="https://kubernetes.github.io/autoscaler"),
            values=deep_merge(values, addon.values),
        ),
        opts=pulumi.ResourceOptions(provider=ctx.k8s_provider, depends_on=[expander]),
    )

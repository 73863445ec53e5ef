from typing import Dict, List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes as k8s

from kubeplat.cluster.aws.utils import irsa_annotation, oidc_role_for_sa
from kubeplat.cluster.context import Context
from kubeplat.config import ServiceAccount
from kubeplat.utils import kubify_name, merge_tags


def create_service_account(
    ctx: Context,
    cluster: eks.Cluster,
    sa: ServiceAccount,
    depends_on: Optional[List[pulumi.Resource]] = None,
) -> k8s.core.v1.ServiceAccount:
    """
    Binds a Kubernetes service account to an IAM role (IRSA).

    An IAM role trusted by the cluster OIDC provider for
    `system:serviceaccount:<namespace>:<name>` is created. The declared managed
    policies are attached to it, and the declared statements become an inline
    policy. Finally the service account is created and annotated with the role ARN,
    so that pods running under it receive the role's credentials.

    Args:
        ctx (Context): The context holding the cluster config and the Kubernetes provider.
        cluster (eks.Cluster): The EKS cluster.
        sa (ServiceAccount): The service account declaration.
        depends_on (Optional[List[pulumi.Resource]]): Resources that must exist first, e.g. the namespace.

    Returns:
        k8s.core.v1.ServiceAccount: The Kubernetes service account.
    """
    cluster_name = ctx.cluster_name
    role_name = f"{kubify_name(sa.namespace)}-{kubify_name(sa.name)}"

    role = oidc_role_for_sa(ctx, cluster, role_name, f"{sa.namespace}:{sa.name}")

    for i, policy_arn in enumerate(sa.policyArns):
        aws.iam.RolePolicyAttachment(
            f"{cluster_name}-{role_name}-policy-attachment-{i}",
            role=role.name,
            policy_arn=policy_arn,
            opts=pulumi.ResourceOptions(parent=role),
        )

    if sa.statements:
        policy = aws.iam.Policy(
            f"{cluster_name}-{role_name}-policy",
            description=sa.description,
            policy=aws.iam.get_policy_document(
                statements=[
                    aws.iam.GetPolicyDocumentStatementArgs(
                        effect=statement.effect,
                        actions=statement.actions,
                        resources=statement.resources,
                    )
                    for statement in sa.statements
                ]
            ).json,
            tags=merge_tags(ctx.tags),
        )
        aws.iam.RolePolicyAttachment(
            f"{cluster_name}-{role_name}-inline-policy-attachment",
            role=role.name,
            policy_arn=policy.arn,
            opts=pulumi.ResourceOptions(parent=role),
        )

    return k8s.core.v1.ServiceAccount(
        f"{cluster_name}-{role_name}-service-account",
        metadata={
            "namespace": sa.namespace,
            "name": sa.name,
            "annotations": irsa_annotation(role),
        },
        opts=pulumi.ResourceOptions(
            provider=ctx.k8s_provider, depends_on=depends_on or []
        ),
    )


def create_service_accounts(
    ctx: Context,
    cluster: eks.Cluster,
    namespaces: Dict[str, k8s.core.v1.Namespace],
) -> None:
    """
    Creates every declared IRSA service account.

    Args:
        namespaces (Dict[str, k8s.core.v1.Namespace]): Namespaces created by this stack, by name. A service
            account in one of them waits for the namespace to be created.
    """
    for sa in ctx.cloud_config.serviceAccounts:
        depends_on = [namespaces[sa.namespace]] if sa.namespace in namespaces else []
        create_service_account(ctx, cluster, sa, depends_on)

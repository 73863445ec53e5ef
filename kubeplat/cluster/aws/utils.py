from __future__ import annotations

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks

from kubeplat.cluster.context import Context
from kubeplat.utils import merge_tags


def oidc_role_for_sa(
    ctx: Context,
    cluster: eks.Cluster,
    role_name: str,
    ns_service_account: str,
) -> aws.iam.Role:
    """
    Creates an IAM role that a Kubernetes service account can assume through
    the cluster's OpenID Connect (OIDC) provider.

    Args:
        ctx (Context): The context holding the cluster config.
        cluster (eks.Cluster): The EKS cluster.
        role_name (str): The name of the role, prefixed with the cluster name.
        ns_service_account (str): The service account as "namespace:name", e.g. "kube-system:cluster-autoscaler".

    Returns:
        aws.iam.Role: The IAM role for the service account.
    """
    oidc_url = cluster.core.oidc_provider.url
    oidc_arn = cluster.core.oidc_provider.arn

    assume_role_policy = pulumi.Output.all(oidc_url, oidc_arn).apply(
        lambda args: aws.iam.get_policy_document(
            statements=[
                aws.iam.GetPolicyDocumentStatementArgs(
                    effect="Allow",
                    principals=[
                        aws.iam.GetPolicyDocumentStatementPrincipalArgs(
                            type="Federated",
                            identifiers=[str(args[1])],
                        )
                    ],
                    actions=["sts:AssumeRoleWithWebIdentity"],
                    conditions=[
                        aws.iam.GetPolicyDocumentStatementConditionArgs(
                            test="StringEquals",
                            variable=f"{args[0]}:sub",
                            values=[f"system:serviceaccount:{ns_service_account}"],
                        ),
                        aws.iam.GetPolicyDocumentStatementConditionArgs(
                            test="StringEquals",
                            variable=f"{args[0]}:aud",
                            values=["sts.amazonaws.com"],
                        ),
                    ],
                )
            ],
        ).json
    )

    return aws.iam.Role(
        f"{ctx.cluster_name}-{role_name}-role",
        assume_role_policy=assume_role_policy,
        tags=merge_tags(ctx.tags),
    )


def irsa_annotation(role: aws.iam.Role) -> dict:
    return {"eks.amazonaws.com/role-arn": role.arn}

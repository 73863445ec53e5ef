from __future__ import annotations

import json
from typing import List

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes as k8s

from kubeplat.cluster.argocd import create_argocd
from kubeplat.cluster.aws.cluster_autoscaler import create_cluster_autoscaler
from kubeplat.cluster.aws.load_balancer_controller import (
    create_load_balancer_controller,
)
from kubeplat.cluster.aws.service_account import create_service_accounts
from kubeplat.cluster.context import Context
from kubeplat.cluster.metrics_server import create_metrics_server
from kubeplat.cluster.namespace import create_namespaces
from kubeplat.config import NodeGroup
from kubeplat.k8s.utils import update_kubeconfig
from kubeplat.logger import logger
from kubeplat.utils import kubify_name, merge_tags, save_kubeconfig


def create_worker_role(ctx: Context) -> aws.iam.Role:
    managed_policy_arns = [
        "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
        "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
        "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
        "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore",
    ]
    assume_role_policy = aws.iam.get_policy_document(
        statements=[
            aws.iam.GetPolicyDocumentStatementArgs(
                actions=["sts:AssumeRole"],
                effect="Allow",
                principals=[
                    aws.iam.GetPolicyDocumentStatementPrincipalArgs(
                        type="Service",
                        identifiers=["ec2.amazonaws.com"],
                    ),
                ],
            ),
        ],
    ).json

    role = aws.iam.Role(
        f"{ctx.cluster_name}-eks-worker-role",
        assume_role_policy=assume_role_policy,
        tags=merge_tags(ctx.tags),
    )

    for i, policy_arn in enumerate(managed_policy_arns):
        aws.iam.RolePolicyAttachment(
            f"{ctx.cluster_name}-eks-worker-role-policy-{i}",
            role=role.name,
            policy_arn=policy_arn,
            opts=pulumi.ResourceOptions(parent=role),
        )

    return role


def create_launch_template(
    ctx: Context, cluster: eks.Cluster, node_group: NodeGroup
) -> aws.ec2.LaunchTemplate:
    """
    Creates the launch template of a node group. It carries the root volume
    settings and the extra security groups of the nodes.

    When extra security groups are attached, EKS no longer adds the cluster
    security group by itself, so it is added here.
    """
    name = f"{ctx.cluster_name}-{kubify_name(node_group.name)}"

    vpc_security_group_ids = None
    if node_group.securityGroups:
        vpc_security_group_ids = [
            cluster.eks_cluster.vpc_config.cluster_security_group_id
        ] + [ctx.security_group_id(sg) for sg in node_group.securityGroups]

    return aws.ec2.LaunchTemplate(
        f"{name}-lt",
        update_default_version=True,
        block_device_mappings=[
            aws.ec2.LaunchTemplateBlockDeviceMappingArgs(
                device_name="/dev/xvda",
                ebs=aws.ec2.LaunchTemplateBlockDeviceMappingEbsArgs(
                    volume_size=node_group.diskSize,
                    volume_type=node_group.volumeType,
                    encrypted="true",
                    delete_on_termination="true",
                ),
            )
        ],
        vpc_security_group_ids=vpc_security_group_ids,
        # Pods must not reach the instance metadata of the node
        metadata_options=aws.ec2.LaunchTemplateMetadataOptionsArgs(
            http_endpoint="enabled",
            http_tokens="required",
            http_put_response_hop_limit=1,
        ),
        tag_specifications=[
            aws.ec2.LaunchTemplateTagSpecificationArgs(
                resource_type="instance",
                tags=merge_tags(ctx.tags, {"Name": f"{name}-node"}),
            )
        ],
        tags=merge_tags(ctx.tags),
    )


def create_node_groups(
    ctx: Context,
    cluster: eks.Cluster,
    worker_role: aws.iam.Role,
) -> List[eks.ManagedNodeGroup]:
    """
    Creates a managed node group for each declared node group.

    Every group runs in the private subnets with the declared capacity type,
    scaling bounds, labels and taints.

    Args:
        ctx (Context): The context holding the cluster config.
        cluster (eks.Cluster): The EKS cluster to create the node groups in.
        worker_role (aws.iam.Role): The IAM role for the worker nodes.

    Returns:
        List[eks.ManagedNodeGroup]: The node groups.
    """
    cluster_name = ctx.cluster_name
    node_groups = []

    for node_group in ctx.cloud_config.nodeGroups:
        name = f"{cluster_name}-{kubify_name(node_group.name)}"
        launch_template = create_launch_template(ctx, cluster, node_group)

        labels = {
            "group": node_group.name,
            "lifecycle": "spot" if node_group.capacityType == "SPOT" else "on-demand",
        }
        labels.update(node_group.labels)

        node_groups.append(
            eks.ManagedNodeGroup(
                f"{name}-group",
                node_group_name=name,
                cluster=cluster,
                instance_types=node_group.instanceTypes,
                capacity_type=node_group.capacityType,
                ami_type=node_group.amiType,
                scaling_config=aws.eks.NodeGroupScalingConfigArgs(
                    desired_size=node_group.desired,
                    min_size=node_group.minSize,
                    max_size=node_group.maxSize,
                ),
                launch_template=aws.eks.NodeGroupLaunchTemplateArgs(
                    id=launch_template.id,
                    version=launch_template.latest_version.apply(str),
                ),
                labels=labels,
                taints=[
                    aws.eks.NodeGroupTaintArgs(
                        key=taint.key, value=taint.value, effect=taint.effect
                    )
                    for taint in node_group.taints
                ],
                node_role_arn=worker_role.arn,
                subnet_ids=ctx.private_subnet_ids,
                tags=merge_tags(ctx.tags),
            )
        )

    return node_groups


def create_k8s_cluster(ctx: Context) -> eks.Cluster:
    """
    Provisions an AWS EKS cluster with its node groups and cluster add-ons.

    The control plane is created in the cluster VPC with an OIDC provider, so
    that service accounts can be bound to IAM roles. The default node group is
    skipped; node groups come from the config. Once the kubeconfig of the new
    cluster is known, the Kubernetes provider is set up and the namespaces,
    add-ons and service accounts are created through it.

    How does autoscaling work?
    The metrics server feeds the Horizontal Pod Autoscaler, which scales pods.
    Pods that cannot be scheduled make the cluster autoscaler grow the node
    groups within their bounds.

    Returns:
        eks.Cluster
    """
    cluster_config = ctx.cloud_config.cluster
    cluster_name = ctx.cluster_name

    worker_role = create_worker_role(ctx)

    # EKS writes control plane logs to this group. Creating it ourselves sets the retention.
    log_group = aws.cloudwatch.LogGroup(
        f"{cluster_name}-control-plane-logs",
        name=f"/aws/eks/{cluster_name}/cluster",
        retention_in_days=cluster_config.logRetentionDays,
        tags=merge_tags(ctx.tags),
    )

    cluster = eks.Cluster(
        cluster_name,
        name=cluster_name,
        version=cluster_config.version,
        vpc_id=ctx.vpc_id,
        public_subnet_ids=ctx.public_subnet_ids or None,
        private_subnet_ids=ctx.private_subnet_ids,
        node_associate_public_ip_address=False,
        endpoint_public_access=True,
        endpoint_private_access=True,
        public_access_cidrs=cluster_config.publicAccessCidrs,
        enabled_cluster_log_types=cluster_config.enabledLogTypes,
        create_oidc_provider=True,
        skip_default_node_group=True,
        # Required for the managed node groups to join the cluster
        instance_roles=[worker_role],
        tags=merge_tags(ctx.tags),
        opts=pulumi.ResourceOptions(depends_on=[log_group]),
    )

    create_node_groups(ctx, cluster, worker_role)

    def create_eks_resources(kubeconfig_json: str) -> None:
        k8s_provider = k8s.Provider("k8s-provider", kubeconfig=cluster.kubeconfig)
        ctx.set_k8s_provider(k8s_provider)
        ctx.set_kubeconfig(kubeconfig_json)

        save_kubeconfig(cluster_name, kubeconfig_json)
        if ctx.should_save_kubeconfig:
            logger.debug("Updating the default kubeconfig")
            update_kubeconfig(json.loads(kubeconfig_json))

        namespaces = create_namespaces(ctx)
        create_metrics_server(ctx)
        create_cluster_autoscaler(ctx, cluster)
        create_load_balancer_controller(ctx, cluster)
        argocd_ns = create_argocd(ctx)
        if argocd_ns is not None:
            namespaces[ctx.cloud_config.addons.argocd.namespace] = argocd_ns
        create_service_accounts(ctx, cluster, namespaces)

    cluster.kubeconfig_json.apply(create_eks_resources)

    return cluster

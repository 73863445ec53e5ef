from __future__ import annotations

from typing import Optional

import pulumi
import pulumi_awsx as awsx

from kubeplat.cluster.context import Context
from kubeplat.logger import logger
from kubeplat.utils import merge_tags


def _ignore_tags_transformation(
    args: pulumi.ResourceTransformationArgs,
) -> Optional[pulumi.ResourceTransformationResult]:
    """
    EKS adds tags to VPC and Subnet resources that are not managed by Pulumi.
    Ignore those tags so that Pulumi does not try to remove them.
    """
    if args.type_ == "aws:ec2/vpc:Vpc" or args.type_ == "aws:ec2/subnet:Subnet":
        return pulumi.ResourceTransformationResult(
            props=args.props,
            opts=pulumi.ResourceOptions.merge(
                args.opts, pulumi.ResourceOptions(ignore_changes=["tags"])
            ),
        )
    return None


def _nat_gateway_strategy(strategy: str) -> awsx.ec2.NatGatewayStrategy:
    if strategy == "None":
        return awsx.ec2.NatGatewayStrategy.NONE
    elif strategy == "OnePerAz":
        return awsx.ec2.NatGatewayStrategy.ONE_PER_AZ
    return awsx.ec2.NatGatewayStrategy.SINGLE


def create_network(ctx: Context) -> None:
    """
    Creates the VPC of the cluster, or registers an existing one.

    A new VPC gets one public and one private subnet per availability zone.
    The subnets are tagged so that AWS can discover them when creating load balancers.
    Private subnets reach the internet through NAT gateways according to the
    configured strategy.

    Args:
        ctx (Context): The context holding the cluster config. The network ids are saved on it.

    Returns:
        None
    """
    network = ctx.cloud_config.network
    cluster_name = ctx.cluster_name

    if not network.create:
        logger.debug(f"Using existing VPC {network.vpcId}")
        ctx.set_network(
            network.vpcId,  # type: ignore
            network.publicSubnetIds,
            network.privateSubnetIds,
        )
        return

    vpc = awsx.ec2.Vpc(
        f"{cluster_name}-vpc",
        cidr_block=network.cidr,
        number_of_availability_zones=network.availabilityZoneCount,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        nat_gateways=awsx.ec2.NatGatewayConfigurationArgs(
            strategy=_nat_gateway_strategy(network.natGateways)
        ),
        subnet_strategy=awsx.ec2.SubnetAllocationStrategy.AUTO,
        # See https://repost.aws/knowledge-center/eks-vpc-subnet-discovery
        subnet_specs=[
            awsx.ec2.SubnetSpecArgs(
                type=awsx.ec2.SubnetType.PUBLIC,
                tags={
                    "kubernetes.io/role/elb": "1",
                    f"kubernetes.io/cluster/{cluster_name}": "shared",
                },
            ),
            awsx.ec2.SubnetSpecArgs(
                type=awsx.ec2.SubnetType.PRIVATE,
                tags={
                    "kubernetes.io/role/internal-elb": "1",
                    f"kubernetes.io/cluster/{cluster_name}": "shared",
                },
            ),
        ],
        tags=merge_tags(ctx.tags, {"Name": f"{cluster_name}-vpc"}),
        opts=pulumi.ResourceOptions(transformations=[_ignore_tags_transformation]),
    )

    ctx.set_network(vpc.vpc_id, vpc.public_subnet_ids, vpc.private_subnet_ids)

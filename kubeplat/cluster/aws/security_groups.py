from __future__ import annotations

from typing import Dict

import pulumi
import pulumi_aws as aws

from kubeplat.cluster.context import Context
from kubeplat.config import SecurityGroupRule
from kubeplat.utils import merge_tags


def _create_rule(
    ctx: Context,
    resource_name: str,
    rule_type: str,
    group: aws.ec2.SecurityGroup,
    rule: SecurityGroupRule,
) -> aws.ec2.SecurityGroupRule:
    source_security_group_id = None
    if rule.sourceSecurityGroup:
        source_security_group_id = ctx.security_group_id(rule.sourceSecurityGroup)

    return aws.ec2.SecurityGroupRule(
        resource_name,
        type=rule_type,
        security_group_id=group.id,
        protocol=rule.protocol,
        from_port=rule.fromPort,
        to_port=rule.toPort,
        cidr_blocks=rule.cidrBlocks or None,
        source_security_group_id=source_security_group_id,
        description=rule.description,
        opts=pulumi.ResourceOptions(parent=group),
    )


def create_security_groups(ctx: Context) -> Dict[str, aws.ec2.SecurityGroup]:
    """
    Creates the declared security groups and their rules in the cluster VPC.

    All groups are created before any rule, so that a rule may reference any
    declared group by name. When creation is turned off, the existing group ids
    are registered on the context instead.

    Args:
        ctx (Context): The context holding the cluster config and the VPC id.

    Returns:
        Dict[str, aws.ec2.SecurityGroup]: The created groups by name.
    """
    sg_config = ctx.cloud_config.securityGroups
    cluster_name = ctx.cluster_name

    for name, group_id in sg_config.existingIds.items():
        ctx.set_security_group_id(name, group_id)

    if not sg_config.create:
        return {}

    groups: Dict[str, aws.ec2.SecurityGroup] = {}
    for sg in sg_config.groups:
        group = aws.ec2.SecurityGroup(
            f"{cluster_name}-{sg.name}-sg",
            name=f"{cluster_name}-{sg.name}",
            description=sg.description,
            vpc_id=ctx.vpc_id,
            tags=merge_tags(ctx.tags, {"Name": f"{cluster_name}-{sg.name}"}),
        )
        groups[sg.name] = group
        ctx.set_security_group_id(sg.name, group.id)

    for sg in sg_config.groups:
        group = groups[sg.name]
        for i, rule in enumerate(sg.ingress):
            _create_rule(
                ctx, f"{cluster_name}-{sg.name}-ingress-{i}", "ingress", group, rule
            )
        for i, rule in enumerate(sg.egress):
            _create_rule(
                ctx, f"{cluster_name}-{sg.name}-egress-{i}", "egress", group, rule
            )

    return groups

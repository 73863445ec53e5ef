from typing import Dict

import pulumi
import pulumi_kubernetes as k8s

from kubeplat.cluster.context import Context


def create_namespaces(ctx: Context) -> Dict[str, k8s.core.v1.Namespace]:
    """
    Creates every declared namespace.

    Returns:
        Dict[str, k8s.core.v1.Namespace]: The namespaces by name.
    """
    namespaces = {}
    for ns in ctx.cloud_config.namespaces:
        namespaces[ns.name] = k8s.core.v1.Namespace(
            f"{ns.name}-ns",
            metadata={
                "name": ns.name,
                "labels": ns.labels,
                "annotations": {"kubeplat.io/description": ns.description},
            },
            opts=pulumi.ResourceOptions(provider=ctx.k8s_provider),
        )
    return namespaces

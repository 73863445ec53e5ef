from typing import Dict

import pulumi
import pulumi_aws as aws

from kubeplat.cluster.context import Context
from kubeplat.utils import merge_tags


def create_container_registries(ctx: Context) -> Dict[str, pulumi.Output[str]]:
    """
    Creates an ECR repository for every declared registry.

    Returns:
        Dict[str, pulumi.Output[str]]: The repository urls by name.
    """
    urls = {}
    for registry in ctx.cloud_config.containerRegistries:
        repository = aws.ecr.Repository(
            f"{ctx.cluster_name}-{registry.name}",
            name=registry.name,
            force_delete=registry.forceDelete,
            image_tag_mutability=registry.imageTagMutability,
            image_scanning_configuration=aws.ecr.RepositoryImageScanningConfigurationArgs(
                scan_on_push=registry.scanOnPush
            ),
            tags=merge_tags(ctx.tags, {"Description": registry.description}),
        )
        urls[registry.name] = repository.repository_url
    return urls

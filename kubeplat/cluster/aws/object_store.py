from typing import Dict

import pulumi
import pulumi_aws as aws

from kubeplat.cluster.context import Context
from kubeplat.utils import merge_tags


def create_object_stores(ctx: Context) -> Dict[str, pulumi.Output[str]]:
    """
    Creates an S3 bucket for every declared object store.

    Buckets are private: encrypted at rest with SSE-S3 and all public access blocked.

    Returns:
        Dict[str, pulumi.Output[str]]: The bucket ARNs by name.
    """
    arns = {}
    for store in ctx.cloud_config.objectStores:
        # `bucket` pins the name so that Pulumi does not append a random suffix
        bucket = aws.s3.BucketV2(
            store.name,
            bucket=store.name,
            force_destroy=store.forceDestroy,
            tags=merge_tags(ctx.tags, {"Description": store.description}),
        )

        opts = pulumi.ResourceOptions(parent=bucket)

        aws.s3.BucketVersioningV2(
            f"{store.name}-versioning",
            bucket=bucket.id,
            versioning_configuration=aws.s3.BucketVersioningV2VersioningConfigurationArgs(
                status="Enabled" if store.versioning else "Suspended",
            ),
            opts=opts,
        )

        aws.s3.BucketServerSideEncryptionConfigurationV2(
            f"{store.name}-encryption",
            bucket=bucket.id,
            rules=[
                aws.s3.BucketServerSideEncryptionConfigurationV2RuleArgs(
                    apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationV2RuleApplyServerSideEncryptionByDefaultArgs(
                        sse_algorithm="AES256",
                    ),
                )
            ],
            opts=opts,
        )

        aws.s3.BucketPublicAccessBlock(
            f"{store.name}-public-access-block",
            bucket=bucket.id,
            block_public_acls=True,
            block_public_policy=True,
            ignore_public_acls=True,
            restrict_public_buckets=True,
            opts=opts,
        )

        arns[store.name] = bucket.arn
    return arns

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from kubeplat.logger import logger


def _session(region: str, profile: Optional[str] = None) -> boto3.Session:
    return boto3.Session(region_name=region, profile_name=profile)


def backend_url(bucket_name: str) -> str:
    return f"s3://{bucket_name}"


def create_backend(
    bucket_name: str, region: str, profile: Optional[str] = None
) -> str:
    """
    Creates the S3 bucket holding the Pulumi state of the clusters.

    The bucket is versioned, so that an earlier state can be restored, encrypted
    at rest and closed to public access. Pulumi keeps its stack locks in the
    same bucket. Creating a bucket that already exists in the account is not
    an error.

    Args:
        bucket_name (str): The name of the bucket.
        region (str): The AWS region of the bucket.
        profile (Optional[str]): The AWS profile to use.

    Returns:
        str: The backend URL to set as PULUMI_BACKEND_URL.
    """
    s3 = _session(region, profile).client("s3")

    logger.info(f"Creating S3 bucket: {bucket_name} in region: {region} ...")
    create_args: Dict[str, Any] = {"Bucket": bucket_name}
    # us-east-1 is the default location and must not be given as a constraint
    if region != "us-east-1":
        create_args["CreateBucketConfiguration"] = {"LocationConstraint": region}
    try:
        s3.create_bucket(**create_args)
    except ClientError as e:
        if e.response["Error"]["Code"] != "BucketAlreadyOwnedByYou":
            raise
        logger.warning(f"Bucket {bucket_name} already exists.")

    logger.info("Enabling versioning on bucket...")
    s3.put_bucket_versioning(
        Bucket=bucket_name, VersioningConfiguration={"Status": "Enabled"}
    )

    s3.put_bucket_encryption(
        Bucket=bucket_name,
        ServerSideEncryptionConfiguration={
            "Rules": [
                {"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"}}
            ]
        },
    )

    s3.put_public_access_block(
        Bucket=bucket_name,
        PublicAccessBlockConfiguration={
            "BlockPublicAcls": True,
            "IgnorePublicAcls": True,
            "BlockPublicPolicy": True,
            "RestrictPublicBuckets": True,
        },
    )

    url = backend_url(bucket_name)
    logger.info(f"State backend is ready. Set PULUMI_BACKEND_URL={url}")
    return url


def destroy_backend(
    bucket_name: str, region: str, profile: Optional[str] = None
) -> None:
    """
    Deletes the state bucket together with every version of every object in it.

    Args:
        bucket_name (str): The name of the bucket.
        region (str): The AWS region of the bucket.
        profile (Optional[str]): The AWS profile to use.
    """
    bucket = _session(region, profile).resource("s3").Bucket(bucket_name)

    logger.info(f"Emptying S3 bucket: {bucket_name} ...")
    bucket.object_versions.delete()

    logger.info("Deleting S3 bucket...")
    bucket.delete()

    logger.info("State backend has been destroyed.")


def fetch_secret(
    secret_name: str, region: str, profile: Optional[str] = None
) -> str:
    """
    Reads the string value of a secret from AWS Secrets Manager.

    Args:
        secret_name (str): The name or ARN of the secret.
        region (str): The AWS region of the secret.
        profile (Optional[str]): The AWS profile to use.

    Returns:
        str: The secret string.

    Raises:
        ValueError: If the secret holds binary data only.
    """
    client = _session(region, profile).client("secretsmanager")
    response = client.get_secret_value(SecretId=secret_name)
    if "SecretString" not in response:
        raise ValueError(f"Secret {secret_name} does not hold a string value")
    return response["SecretString"]

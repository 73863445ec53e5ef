import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from kubeplat.backend import create_backend, destroy_backend, fetch_secret


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@mock_aws
def test_create_backend() -> None:
    url = create_backend("kubeplat-state", "us-west-2")

    assert url == "s3://kubeplat-state"

    s3 = boto3.client("s3", region_name="us-west-2")
    location = s3.get_bucket_location(Bucket="kubeplat-state")
    assert location["LocationConstraint"] == "us-west-2"

    versioning = s3.get_bucket_versioning(Bucket="kubeplat-state")
    assert versioning["Status"] == "Enabled"

    encryption = s3.get_bucket_encryption(Bucket="kubeplat-state")
    rule = encryption["ServerSideEncryptionConfiguration"]["Rules"][0]
    assert rule["ApplyServerSideEncryptionByDefault"]["SSEAlgorithm"] == "AES256"

    block = s3.get_public_access_block(Bucket="kubeplat-state")
    assert all(block["PublicAccessBlockConfiguration"].values())


@mock_aws
def test_create_backend_us_east_1_is_idempotent() -> None:
    create_backend("kubeplat-state", "us-east-1")
    create_backend("kubeplat-state", "us-east-1")

    s3 = boto3.client("s3", region_name="us-east-1")
    buckets = [b["Name"] for b in s3.list_buckets()["Buckets"]]
    assert buckets == ["kubeplat-state"]


@mock_aws
def test_destroy_backend() -> None:
    create_backend("kubeplat-state", "us-west-2")

    s3 = boto3.client("s3", region_name="us-west-2")
    key = ".pulumi/stacks/test-cluster/default.json"
    s3.put_object(Bucket="kubeplat-state", Key=key, Body=b"{}")
    s3.put_object(Bucket="kubeplat-state", Key=key, Body=b"{\"v\": 2}")

    destroy_backend("kubeplat-state", "us-west-2")

    assert s3.list_buckets()["Buckets"] == []


@mock_aws
def test_fetch_secret() -> None:
    client = boto3.client("secretsmanager", region_name="us-west-2")
    client.create_secret(Name="cluster-config", SecretString="version: '1.0'")

    assert fetch_secret("cluster-config", "us-west-2") == "version: '1.0'"


@mock_aws
def test_fetch_secret_binary() -> None:
    client = boto3.client("secretsmanager", region_name="us-west-2")
    client.create_secret(Name="binary-secret", SecretBinary=b"\x00\x01")

    with pytest.raises(ValueError, match="does not hold a string value"):
        fetch_secret("binary-secret", "us-west-2")


@mock_aws
def test_fetch_secret_missing() -> None:
    with pytest.raises(ClientError):
        fetch_secret("missing", "us-west-2")

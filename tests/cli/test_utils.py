import os
from unittest.mock import mock_open, patch

import click
import pytest

import kubeplat.cli.utils
from kubeplat.cli.utils import (
    ensure_cluster_name,
    init_pulumi,
    load_cluster_manager,
    load_config,
)
from kubeplat.cluster.manager.aws import AWSClusterManager

CONFIG_YAML = """
version: "1.0"
aws:
  cluster:
    name: test-cluster
    region: us-west-2
    logRetentionDays: 7
  nodeGroups:
    - name: general
      instanceTypes: [t3.medium]
      minSize: 2
      maxSize: 4
"""


def test_init_pulumi() -> None:
    with patch.dict(
        os.environ,
        {
            "PULUMI_CONFIG_PASSPHRASE": "test_passphrase",
            "PULUMI_BACKEND_URL": "test_backend_url",
        },
    ), patch("os.makedirs") as mock_makedirs:
        init_pulumi()

        assert os.environ["PULUMI_CONFIG_PASSPHRASE"] == "test_passphrase"
        assert os.environ["PULUMI_BACKEND_URL"] == "test_backend_url"

        mock_makedirs.assert_called_once()


def test_init_pulumi_defaults() -> None:
    with patch.dict(os.environ, {"KUBEPLAT_HOME": "/test/home"}, clear=True), patch(
        "os.makedirs"
    ), patch("platform.system", return_value="Linux"):
        init_pulumi()

        assert os.environ["PULUMI_CONFIG_PASSPHRASE"] == ""
        assert os.environ["PULUMI_HOME"] == "/test/home/pulumi"
        assert os.environ["PULUMI_BACKEND_URL"] == "file:///test/home/pulumi"


def test_load_cluster_manager() -> None:
    cluster_config = "/path/to/cluster.yaml"
    m = mock_open(read_data=CONFIG_YAML)

    with patch("os.path.abspath", return_value=cluster_config), patch(
        "os.path.expanduser", return_value=cluster_config
    ), patch("os.path.exists", return_value=True), patch("builtins.open", m):
        result = load_cluster_manager(cluster_config)

    assert isinstance(result, AWSClusterManager)
    assert result.cloud_config.cluster.name == "test-cluster"
    assert result.cloud_config.cluster.logRetentionDays == 7
    assert result.cloud_config.nodeGroups[0].maxSize == 4


def test_load_config_missing_file() -> None:
    with patch("os.path.exists", return_value=False):
        with pytest.raises(FileNotFoundError):
            load_config("/path/to/cluster.yaml")


def test_load_config_from_secret() -> None:
    with patch.object(
        kubeplat.cli.utils, "fetch_secret", return_value=CONFIG_YAML
    ) as mock_fetch:
        config = load_config("", "cluster-config", "us-west-2", "prod")

    mock_fetch.assert_called_once_with("cluster-config", "us-west-2", "prod")
    assert config.aws is not None
    assert config.aws.cluster.region == "us-west-2"


def test_load_config_secret_requires_region() -> None:
    with pytest.raises(ValueError, match="--secret-region is required"):
        load_config("", "cluster-config")


def test_ensure_cluster_name() -> None:
    assert ensure_cluster_name("my-cluster") == "my-cluster"

    with patch.object(kubeplat.cli.utils, "load_cluster_config", return_value=None):
        with pytest.raises(click.exceptions.Exit):
            ensure_cluster_name(None)

    with patch("os.path.exists", return_value=True), patch(
        "builtins.open", mock_open(read_data=CONFIG_YAML)
    ):
        assert ensure_cluster_name(None) == "test-cluster"

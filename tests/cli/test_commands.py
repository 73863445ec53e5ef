from pathlib import Path
from unittest.mock import patch

from botocore.exceptions import ClientError
from typer.testing import CliRunner

from kubeplat import __version__
from kubeplat.cli.__main__ import cli

runner = CliRunner()

VALID_CONFIG = """
version: "1.0"
aws:
  cluster:
    name: test-cluster
    region: us-west-2
  nodeGroups:
    - name: general
      instanceTypes: [t3.medium]
"""

INVALID_CONFIG = """
version: "1.0"
aws:
  cluster:
    name: test-cluster
    region: us-west-2
  nodeGroups:
    - name: general
      instanceTypes: [t3.medium]
      volumeType: st1
"""


def write_config(tmp_path: Path, content: str) -> str:
    path = tmp_path / "cluster.yaml"
    path.write_text(content)
    return str(path)


def test_version() -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_cluster_up() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        manager = mock_load.return_value
        result = runner.invoke(
            cli, ["cluster", "up", "-f", "cluster.yaml", "--parallel", "4", "-n"]
        )

    assert result.exit_code == 0
    mock_load.assert_called_once_with("cluster.yaml", None, None, None)
    manager.ctx.set_should_save_kubeconfig.assert_called_once_with(False)
    manager.create.assert_called_once_with(parallel=4)


def test_cluster_up_from_secret() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        result = runner.invoke(
            cli,
            ["cluster", "up", "--secret", "cluster-config", "--secret-region", "us-west-2"],
        )

    assert result.exit_code == 0
    mock_load.assert_called_once_with("", "cluster-config", "us-west-2", None)
    mock_load.return_value.ctx.set_should_save_kubeconfig.assert_called_once_with(True)


def test_cluster_up_secret_requires_region() -> None:
    with patch("kubeplat.cli.utils.fetch_secret") as mock_fetch:
        result = runner.invoke(cli, ["cluster", "up", "--secret", "cluster-config"])

    assert result.exit_code == 1
    mock_fetch.assert_not_called()


def test_cluster_up_invalid_config(tmp_path: Path) -> None:
    path = write_config(tmp_path, INVALID_CONFIG)
    with patch("kubeplat.cli.utils.AWSClusterManager") as mock_manager:
        result = runner.invoke(cli, ["cluster", "up", "-f", path])

    assert result.exit_code == 1
    mock_manager.assert_not_called()


def test_cluster_up_missing_config(tmp_path: Path) -> None:
    result = runner.invoke(
        cli, ["cluster", "up", "-f", str(tmp_path / "missing.yaml")]
    )
    assert result.exit_code == 1


def test_cluster_down_asks_for_confirmation() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        result = runner.invoke(cli, ["cluster", "down", "-f", "c.yaml"], input="n\n")

    assert result.exit_code == 1
    mock_load.return_value.destroy.assert_not_called()


def test_cluster_down_yes() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        result = runner.invoke(cli, ["cluster", "down", "-f", "c.yaml", "--yes"])

    assert result.exit_code == 0
    mock_load.return_value.destroy.assert_called_once_with(parallel=None)


def test_cluster_preview_with_policy_pack() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        result = runner.invoke(
            cli,
            ["cluster", "preview", "-f", "c.yaml", "--policy-pack", "tests/policy_packs/aws"],
        )

    assert result.exit_code == 0
    mock_load.return_value.preview.assert_called_once_with(
        policy_packs=["tests/policy_packs/aws"]
    )


def test_cluster_refresh() -> None:
    with patch("kubeplat.cli.cluster.load_cluster_manager") as mock_load:
        result = runner.invoke(cli, ["cluster", "refresh", "-f", "c.yaml"])

    assert result.exit_code == 0
    mock_load.return_value.refresh.assert_called_once_with()


def test_config_validate(tmp_path: Path) -> None:
    result = runner.invoke(
        cli, ["config", "validate", "-f", write_config(tmp_path, VALID_CONFIG)]
    )
    assert result.exit_code == 0

    result = runner.invoke(
        cli, ["config", "validate", "-f", write_config(tmp_path, INVALID_CONFIG)]
    )
    assert result.exit_code == 1


def test_config_validate_show(tmp_path: Path) -> None:
    result = runner.invoke(
        cli,
        ["config", "validate", "-f", write_config(tmp_path, VALID_CONFIG), "--show"],
    )
    assert result.exit_code == 0
    assert "name: test-cluster" in result.stdout
    # defaults are filled in
    assert "natGateways: Single" in result.stdout


def test_config_validate_wrongly_typed_value(tmp_path: Path) -> None:
    content = VALID_CONFIG.replace(
        "region: us-west-2", "region: us-west-2\n    logRetentionDays: fourteen"
    )
    path = write_config(tmp_path, content)
    result = runner.invoke(cli, ["config", "validate", "-f", path])

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_backend_create() -> None:
    with patch(
        "kubeplat.cli.backend.create_backend", return_value="s3://kubeplat-state"
    ) as mock_create:
        result = runner.invoke(
            cli, ["backend", "create", "kubeplat-state", "--region", "us-west-2"]
        )

    assert result.exit_code == 0
    assert "s3://kubeplat-state" in result.stdout
    mock_create.assert_called_once_with("kubeplat-state", "us-west-2", None)


def test_backend_destroy() -> None:
    with patch("kubeplat.cli.backend.destroy_backend") as mock_destroy:
        result = runner.invoke(
            cli,
            ["backend", "destroy", "kubeplat-state", "-r", "us-west-2"],
            input="n\n",
        )
        assert result.exit_code == 1
        mock_destroy.assert_not_called()

        result = runner.invoke(
            cli, ["backend", "destroy", "kubeplat-state", "-r", "us-west-2", "-y"]
        )
        assert result.exit_code == 0
        mock_destroy.assert_called_once_with("kubeplat-state", "us-west-2", None)


def test_kubeconfig_update() -> None:
    with patch(
        "kubeplat.cli.kubeconfig.read_stack_output",
        return_value='{"apiVersion": "v1", "current-context": "test"}',
    ) as mock_read, patch(
        "kubeplat.cli.kubeconfig.update_kubeconfig"
    ) as mock_update:
        result = runner.invoke(cli, ["kubeconfig", "update", "-c", "test-cluster"])

    assert result.exit_code == 0
    mock_read.assert_called_once_with("test-cluster", "kubeconfig", None)
    mock_update.assert_called_once_with(
        {"apiVersion": "v1", "current-context": "test"}, "~/.kube/config"
    )


def test_kubeconfig_update_cluster_not_created() -> None:
    with patch(
        "kubeplat.cli.kubeconfig.read_stack_output", side_effect=FileNotFoundError()
    ), patch("kubeplat.cli.kubeconfig.update_kubeconfig") as mock_update:
        result = runner.invoke(cli, ["kubeconfig", "update", "-c", "test-cluster"])

    assert result.exit_code == 1
    mock_update.assert_not_called()


def test_kubeconfig_update_requires_cluster_name() -> None:
    with patch(
        "kubeplat.cli.utils.load_cluster_config", return_value=None
    ), patch("kubeplat.cli.kubeconfig.read_stack_output") as mock_read:
        result = runner.invoke(cli, ["kubeconfig", "update", "-c", ""])

    assert result.exit_code == 1
    mock_read.assert_not_called()


def test_kubeconfig_update_state_object_missing() -> None:
    error = ClientError(
        {"Error": {"Code": "NoSuchKey", "Message": "The key does not exist"}},
        "GetObject",
    )
    with patch(
        "kubeplat.cli.kubeconfig.read_stack_output", side_effect=error
    ) as mock_read, patch("kubeplat.cli.kubeconfig.update_kubeconfig") as mock_update:
        result = runner.invoke(
            cli,
            ["kubeconfig", "update", "-c", "test-cluster", "--profile", "platform"],
        )

    assert result.exit_code == 1
    mock_read.assert_called_once_with("test-cluster", "kubeconfig", "platform")
    mock_update.assert_not_called()


def test_kubeconfig_update_access_denied_is_not_hidden() -> None:
    error = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "GetObject"
    )
    with patch("kubeplat.cli.kubeconfig.read_stack_output", side_effect=error):
        result = runner.invoke(cli, ["kubeconfig", "update", "-c", "test-cluster"])

    assert result.exit_code == 1
    assert isinstance(result.exception, ClientError)

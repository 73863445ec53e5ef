from typing import Any, Iterator
from unittest.mock import MagicMock, patch

import pytest
from pulumi import automation as auto

from kubeplat.cluster.manager.aws import AWSClusterManager
from kubeplat.cluster.manager.base import (
    LOCK_RETRY_ATTEMPTS,
    ClusterManager,
    format_change_summary,
)
from kubeplat.config import AwsConfig, ClusterConfig, Config, NodeGroup
from kubeplat.logger import logger

config = Config(
    version="1.0",
    aws=AwsConfig(
        cluster=ClusterConfig(name="test-cluster", region="us-west-2"),
        nodeGroups=[NodeGroup(name="general", instanceTypes=["t3.medium"])],
    ),
)


@pytest.fixture
def stack() -> Iterator[MagicMock]:
    mock_stack = MagicMock()
    with patch("kubeplat.cluster.manager.base.ensure_pulumi"), patch.object(
        auto, "create_or_select_stack", return_value=mock_stack
    ) as mock_create_or_select, patch("tenacity.nap.time.sleep"):
        yield mock_stack

        mock_create_or_select.assert_called_once()
        _, kwargs = mock_create_or_select.call_args
        assert kwargs["stack_name"] == "default"
        assert kwargs["project_name"] == "test-cluster"


def concurrent_update_error() -> auto.ConcurrentUpdateError:
    return auto.ConcurrentUpdateError(MagicMock())


def test_requires_aws_config() -> None:
    with pytest.raises(ValueError):
        AWSClusterManager(Config.model_construct(version="1.0", aws=None))


def test_context_holds_config() -> None:
    manager = AWSClusterManager(config)
    assert isinstance(manager, ClusterManager)
    assert manager.ctx.cluster_name == "test-cluster"
    assert manager.ctx.region == "us-west-2"


def test_stack_sets_region(stack: MagicMock) -> None:
    manager = AWSClusterManager(config)
    manager.refresh()

    stack.set_config.assert_called_once()
    key, value = stack.set_config.call_args[0]
    assert key == "aws:region"
    assert value.value == "us-west-2"
    stack.refresh.assert_called_once_with(on_output=logger.info)


def test_create(stack: MagicMock) -> None:
    stack.up.return_value.summary.resource_changes = {"create": 3}
    manager = AWSClusterManager(config)

    result = manager.create(parallel=4)

    assert result is stack.up.return_value
    stack.up.assert_called_once_with(parallel=4, on_output=logger.info)


def test_destroy(stack: MagicMock) -> None:
    manager = AWSClusterManager(config)
    manager.destroy()

    stack.destroy.assert_called_once_with(on_output=logger.info)


def test_preview_with_policy_packs(stack: MagicMock) -> None:
    stack.preview.return_value.change_summary = {"same": 10}
    manager = AWSClusterManager(config)

    manager.preview(policy_packs=["tests/policy_packs/aws"])

    stack.preview.assert_called_once_with(
        policy_packs=["tests/policy_packs/aws"], on_output=logger.info
    )


def test_retry_when_stack_is_locked(stack: MagicMock) -> None:
    stack.up.side_effect = [concurrent_update_error(), MagicMock()]
    manager = AWSClusterManager(config)

    manager.create()

    assert stack.up.call_count == 2


def test_retry_gives_up(stack: MagicMock) -> None:
    stack.destroy.side_effect = concurrent_update_error()
    manager = AWSClusterManager(config)

    with pytest.raises(auto.ConcurrentUpdateError):
        manager.destroy()

    assert stack.destroy.call_count == LOCK_RETRY_ATTEMPTS


def test_no_retry_on_other_errors(stack: MagicMock) -> None:
    stack.refresh.side_effect = RuntimeError("boom")
    manager = AWSClusterManager(config)

    with pytest.raises(RuntimeError):
        manager.refresh()

    assert stack.refresh.call_count == 1


def test_outputs(stack: MagicMock) -> None:
    output = MagicMock()
    output.value = "vpc-123"
    stack.outputs.return_value = {"vpcId": output}
    manager = AWSClusterManager(config)

    assert manager.outputs() == {"vpcId": "vpc-123"}


def test_format_change_summary() -> None:
    assert format_change_summary(None) == "No changes."
    assert format_change_summary({}) == "No changes."

    table = format_change_summary({"update": 1, "create": 3})
    lines = table.splitlines()
    assert "Operation" in lines[0]
    assert "Resources" in lines[0]
    assert lines[2].startswith("create")
    assert lines[3].startswith("update")


def test_format_change_summary_enum_keys() -> None:
    op: Any = MagicMock()
    op.value = "delete"
    assert "delete" in format_change_summary({op: 2})

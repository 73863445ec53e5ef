from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, Callable, Dict, List, Optional

from pulumi import automation as auto
from tabulate import tabulate
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kubeplat.cluster.context import Context
from kubeplat.cluster.pulumi import ensure_pulumi
from kubeplat.config import AwsConfig, Config
from kubeplat.constants import PULUMI_STACK_NAME
from kubeplat.logger import logger

# A stack update holds a lock in the backend. Another update waits for it a bounded number of times.
LOCK_RETRY_ATTEMPTS = 5

retry_on_lock = retry(
    stop=stop_after_attempt(LOCK_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=5, max=60),
    retry=retry_if_exception_type(auto.ConcurrentUpdateError),
    before_sleep=before_sleep_log(logger, logging.INFO),
    reraise=True,
)


def format_change_summary(change_summary: Optional[Dict[Any, int]]) -> str:
    """
    Renders the change summary of a preview or an update as a table.

    Args:
        change_summary: Number of resources per operation, e.g. {"create": 3, "same": 10}.

    Returns:
        str: The table, or a notice when there is nothing to report.
    """
    if not change_summary:
        return "No changes."

    rows = sorted(
        [str(getattr(op, "value", op)), count] for op, count in change_summary.items()
    )
    return tabulate(rows, headers=["Operation", "Resources"])


class ClusterManager(ABC):
    """
    Abstract base class for a cluster manager.

    A ClusterManager owns the Pulumi stack of one cluster. The stack program
    declares the resources; the Pulumi engine plans and applies them in
    dependency order and keeps the last applied state in its backend.

    Subclasses must implement the abstract methods defined in this class.
    """

    config: Config
    cloud_config: AwsConfig

    def __init__(self, config: Config) -> None:
        self.config = config
        if config.aws is None:
            raise ValueError("Only AWS is supported.")
        self.cloud_config = config.aws
        self.ctx = Context()
        self.ctx.set_config(config)

    @abstractmethod
    def provision_k8s(self) -> None:
        pass

    def _stack_for_program(self, program: auto.PulumiFn) -> auto.Stack:
        return auto.create_or_select_stack(
            stack_name=PULUMI_STACK_NAME,
            project_name=self.cloud_config.cluster.name,
            program=program,
        )

    @cached_property
    def _stack(self) -> auto.Stack:
        ensure_pulumi()

        def program() -> None:
            self.provision_k8s()

        stack = self._stack_for_program(program)
        stack.set_config(
            "aws:region", auto.ConfigValue(value=self.cloud_config.cluster.region)
        )
        return stack

    def _on_output(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        if "on_output" not in kwargs:
            kwargs["on_output"] = logger.info
        return kwargs

    @retry_on_lock
    def _run(self, op: Callable[..., Any], **kwargs: Any) -> Any:
        return op(**self._on_output(kwargs))

    def create(self, parallel: Optional[int] = None) -> auto.UpResult:
        logger.info("Creating resources...")
        kwargs: Dict[str, Any] = {}
        if parallel:
            kwargs["parallel"] = parallel
        result = self._run(self._stack.up, **kwargs)
        logger.info(format_change_summary(result.summary.resource_changes))
        return result

    def destroy(self, parallel: Optional[int] = None) -> auto.DestroyResult:
        logger.info("Destroying resources...")
        kwargs: Dict[str, Any] = {}
        if parallel:
            kwargs["parallel"] = parallel
        return self._run(self._stack.destroy, **kwargs)

    def refresh(self) -> auto.RefreshResult:
        logger.info("Refreshing the stack...")
        return self._run(self._stack.refresh)

    def preview(
        self, policy_packs: Optional[List[str]] = None, **kwargs: Any
    ) -> auto.PreviewResult:
        if policy_packs:
            kwargs["policy_packs"] = policy_packs
        result = self._run(self._stack.preview, **kwargs)
        logger.info(format_change_summary(result.change_summary))
        return result

    def outputs(self) -> Dict[str, Any]:
        return {k: v.value for k, v in self._stack.outputs().items()}

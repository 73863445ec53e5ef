from __future__ import annotations

from typing import Any, Dict, Optional

import fasteners
import pulumi
import pulumi_kubernetes as k8s

from kubeplat.config import AwsConfig, Config


class Context:
    _k8s_provider: Optional[k8s.Provider] = None
    _config: Optional[Config] = None
    # The kubeconfig str
    _kubeconfig: Optional[str] = None
    # Network ids, either created or pre-existing
    _vpc_id: Optional[pulumi.Input[str]] = None
    _public_subnet_ids: Optional[pulumi.Input[Any]] = None
    _private_subnet_ids: Optional[pulumi.Input[Any]] = None
    # Security group ids by declared name
    _security_group_ids: Dict[str, pulumi.Input[str]]

    _should_save_kubeconfig: bool = False

    def __init__(self) -> None:
        # Fields are written from Pulumi apply callbacks, which run on engine threads.
        # The locks are pre-created, one per field group. Never hold two at once.
        self._k8s_provider_lock = fasteners.ReaderWriterLock()
        self._config_lock = fasteners.ReaderWriterLock()
        self._kubeconfig_lock = fasteners.ReaderWriterLock()
        self._network_lock = fasteners.ReaderWriterLock()
        self._security_group_lock = fasteners.ReaderWriterLock()
        self._security_group_ids = {}

    @fasteners.write_locked(lock="_k8s_provider_lock")
    def set_k8s_provider(self, k8s_provider: k8s.Provider) -> None:
        self._k8s_provider = k8s_provider

    @property
    @fasteners.read_locked(lock="_k8s_provider_lock")
    def k8s_provider(self) -> Optional[k8s.Provider]:
        return self._k8s_provider

    @fasteners.write_locked(lock="_config_lock")
    def set_config(self, config: Config) -> None:
        self._config = config

    @property
    @fasteners.read_locked(lock="_config_lock")
    def config(self) -> Optional[Config]:
        return self._config

    @property
    @fasteners.read_locked(lock="_config_lock")
    def cloud_config(self) -> AwsConfig:
        if self._config is None:
            raise RuntimeError("Config is not set.")
        if self._config.aws is None:
            raise RuntimeError("Only AWS is supported.")

        return self._config.aws

    @property
    @fasteners.read_locked(lock="_config_lock")
    def region(self) -> str:
        # fasteners's inter thread reader lock is reentrant
        return self.cloud_config.cluster.region

    @property
    @fasteners.read_locked(lock="_config_lock")
    def cluster_name(self) -> str:
        return self.cloud_config.cluster.name

    @property
    @fasteners.read_locked(lock="_config_lock")
    def tags(self) -> Dict[str, str]:
        return self.cloud_config.cluster.tags

    @fasteners.write_locked(lock="_kubeconfig_lock")
    def set_kubeconfig(self, kubeconfig: str) -> None:
        self._kubeconfig = kubeconfig

    @property
    @fasteners.read_locked(lock="_kubeconfig_lock")
    def kubeconfig(self) -> Optional[str]:
        return self._kubeconfig

    @fasteners.write_locked(lock="_network_lock")
    def set_network(
        self,
        vpc_id: pulumi.Input[str],
        public_subnet_ids: pulumi.Input[Any],
        private_subnet_ids: pulumi.Input[Any],
    ) -> None:
        self._vpc_id = vpc_id
        self._public_subnet_ids = public_subnet_ids
        self._private_subnet_ids = private_subnet_ids

    @property
    @fasteners.read_locked(lock="_network_lock")
    def vpc_id(self) -> pulumi.Input[str]:
        if self._vpc_id is None:
            raise RuntimeError("Network is not set.")
        return self._vpc_id

    @property
    @fasteners.read_locked(lock="_network_lock")
    def public_subnet_ids(self) -> pulumi.Input[Any]:
        return self._public_subnet_ids or []

    @property
    @fasteners.read_locked(lock="_network_lock")
    def private_subnet_ids(self) -> pulumi.Input[Any]:
        if self._private_subnet_ids is None:
            raise RuntimeError("Network is not set.")
        return self._private_subnet_ids

    @fasteners.write_locked(lock="_security_group_lock")
    def set_security_group_id(self, name: str, group_id: pulumi.Input[str]) -> None:
        self._security_group_ids[name] = group_id

    @fasteners.read_locked(lock="_security_group_lock")
    def security_group_id(self, name: str) -> pulumi.Input[str]:
        try:
            return self._security_group_ids[name]
        except KeyError:
            raise KeyError(f"Security group {name} is not set.")

    def set_should_save_kubeconfig(self, should_save_kubeconfig: bool) -> None:
        self._should_save_kubeconfig = should_save_kubeconfig

    @property
    def should_save_kubeconfig(self) -> bool:
        return self._should_save_kubeconfig

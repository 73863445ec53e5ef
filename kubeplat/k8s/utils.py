from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML

from kubeplat.utils import read_yaml_file


class KubeconfigMerger:
    """
    Merges a kubeconfig into another one. Clusters, users and contexts are
    matched by name; entries with the same name are replaced.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or {}

    def _entries_by_key(self, key: str) -> List[Any]:
        self.config[key] = self.config.get(key) or []
        entries = self.config[key]
        if not isinstance(entries, list):
            raise ValueError(
                f"Tried to insert into {key}, "
                f"which is a {type(entries)} "
                f"not a list."
            )
        return entries

    def _index_same_name(
        self, entries: List[Any], new_entry: Dict[str, Any]
    ) -> Optional[int]:
        if "name" in new_entry:
            name_to_search = new_entry["name"]
            for i, entry in enumerate(entries):
                if "name" in entry and entry["name"] == name_to_search:
                    return i
        return None

    def insert_entry(self, key: str, new_entry: Any) -> None:
        entries = self._entries_by_key(key)
        same_name_index = self._index_same_name(entries, new_entry)
        if same_name_index is None:
            entries.append(new_entry)
        else:
            entries[same_name_index] = new_entry

    def merge(self, new_config: Dict[str, Any]) -> None:
        for cluster in new_config.get("clusters", []):
            self.insert_entry("clusters", cluster)
        for user in new_config.get("users", []):
            self.insert_entry("users", user)
        for context in new_config.get("contexts", []):
            self.insert_entry("contexts", context)

        self.config["current-context"] = new_config["current-context"]

        for key in new_config.keys():
            if key not in ["clusters", "users", "contexts", "current-context"]:
                self.config[key] = new_config[key]


def update_kubeconfig(
    kubeconfig: Dict[str, Any], path: str = "~/.kube/config"
) -> None:
    """
    Merges the given kubeconfig into the kubeconfig file at `path` and makes
    its context the current one.
    """
    system_kubeconfig_path = os.path.expanduser(path)
    current_config = read_yaml_file(system_kubeconfig_path)
    merger = KubeconfigMerger(current_config)

    merger.merge(kubeconfig)

    sorted_config = {k: merger.config[k] for k in sorted(merger.config)}

    os.makedirs(os.path.dirname(system_kubeconfig_path), exist_ok=True)
    with open(system_kubeconfig_path, "w") as file:
        yaml = YAML()
        yaml.dump(sorted_config, file)

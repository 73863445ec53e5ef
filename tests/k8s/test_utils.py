from pathlib import Path

from ruamel.yaml import YAML

from kubeplat.k8s.utils import KubeconfigMerger, update_kubeconfig


def test_kubeconfig_merger() -> None:
    # Initialize a KubeconfigMerger object with some initial config
    merger = KubeconfigMerger(
        {
            "clusters": [{"name": "cluster1", "data": "data1"}],
            "users": [{"name": "user1", "data": "data1"}],
            "contexts": [{"name": "context1", "data": "data1"}],
            "current-context": "context1",
            "other-key": "other-value",
        }
    )

    # Define a new config to be merged
    new_config = {
        "clusters": [{"name": "cluster2", "data": "data2"}],
        "users": [{"name": "user2", "data": "data2"}],
        "contexts": [{"name": "context2", "data": "data2"}],
        "current-context": "context2",
        "other-key": "other-value2",
    }

    merger.merge(new_config)

    assert merger.config == {
        "clusters": [
            {"name": "cluster1", "data": "data1"},
            {"name": "cluster2", "data": "data2"},
        ],
        "users": [
            {"name": "user1", "data": "data1"},
            {"name": "user2", "data": "data2"},
        ],
        "contexts": [
            {"name": "context1", "data": "data1"},
            {"name": "context2", "data": "data2"},
        ],
        "current-context": "context2",
        "other-key": "other-value2",
    }


def test_kubeconfig_merger_replaces_same_name() -> None:
    merger = KubeconfigMerger(
        {
            "clusters": [{"name": "cluster1", "data": "old"}],
            "current-context": "context1",
        }
    )

    merger.merge(
        {
            "clusters": [{"name": "cluster1", "data": "new"}],
            "current-context": "context1",
        }
    )

    assert merger.config["clusters"] == [{"name": "cluster1", "data": "new"}]


def test_kubeconfig_merger_empty_config() -> None:
    merger = KubeconfigMerger()
    merger.merge(
        {
            "clusters": [{"name": "cluster1"}],
            "users": [{"name": "user1"}],
            "contexts": [{"name": "context1"}],
            "current-context": "context1",
        }
    )

    assert merger.config["clusters"] == [{"name": "cluster1"}]
    assert merger.config["current-context"] == "context1"


def test_update_kubeconfig_creates_file(tmp_path: Path) -> None:
    path = tmp_path / "kube" / "config"

    update_kubeconfig(
        {
            "apiVersion": "v1",
            "clusters": [{"name": "test-cluster"}],
            "users": [{"name": "test-user"}],
            "contexts": [{"name": "test-context"}],
            "current-context": "test-context",
        },
        str(path),
    )

    with open(path) as f:
        written = YAML(typ="safe").load(f)

    assert written["current-context"] == "test-context"
    assert written["clusters"] == [{"name": "test-cluster"}]
    assert list(written.keys()) == sorted(written.keys())

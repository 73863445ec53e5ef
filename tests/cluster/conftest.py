import copy
from typing import Any, Callable, Dict

import pytest

from kubeplat.cluster.context import Context
from kubeplat.config import AwsConfig, Config

BASE_AWS: Dict[str, Any] = {
    "cluster": {
        "name": "test-cluster",
        "region": "us-west-2",
        "tags": {"Env": "test"},
    },
    "nodeGroups": [
        {
            "name": "general",
            "instanceTypes": ["t3.medium"],
            "minSize": 1,
            "maxSize": 3,
        }
    ],
}


@pytest.fixture
def make_ctx() -> Callable[..., Context]:
    def _make_ctx(**overrides: Any) -> Context:
        data = copy.deepcopy(BASE_AWS)
        data.update(overrides)
        ctx = Context()
        ctx.set_config(Config(version="1.0", aws=AwsConfig(**data)))
        return ctx

    return _make_ctx

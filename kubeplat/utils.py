from __future__ import annotations

import hashlib
import json
import os
import re
import tempfile
from contextlib import contextmanager
from enum import Enum
from functools import lru_cache
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Generator, Optional
from urllib.parse import parse_qs, urlparse

import boto3
import requests
from ruamel.yaml import YAML

from kubeplat.constants import (
    HOME_ENV_VAR,
    MANAGED_BY_TAG,
    PROJECT_NAME,
    PULUMI_STACK_NAME,
)


def camel_to_kebab(name: str) -> str:
    """
    Converts a camel case string to kebab case.

    Args:
        name (str): The camel case string to be converted.

    Returns:
        str: The kebab case string.

    Example:
        >>> camel_to_kebab("camelCaseString")
        'camel-case-string'
    """
    name = re.sub("(.)([A-Z][a-z]+)", r"\1-\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1-\2", name).lower()


def kubify_name(old: str) -> str:
    """
    Convert a string into a valid Kubernetes name.

    The string is lowercased, disallowed characters are replaced with '-',
    leading non-alphabetic and trailing non-alphanumeric characters are trimmed
    and the result is truncated to 63 characters.

    Args:
        old (str): The original string to be converted.

    Returns:
        str: The converted string that is a valid Kubernetes name.

    Raises:
        ValueError: If the resulting name is empty.
    """
    max_len = 63

    new_name = old.lower()

    # replace disallowed chars with '-'
    new_name = re.sub(r"[^-a-z0-9]", "-", new_name)

    # trim leading non-alphabetic
    new_name = re.sub(r"^[^a-z]+", "", new_name)

    # trim trailing
    new_name = re.sub(r"[^a-z0-9]+$", "", new_name)

    if len(new_name) > max_len:
        new_name = new_name[:max_len]

    if len(new_name) == 0:
        raise ValueError(f"Name: {old} can't be converted to a valid Kubernetes name")

    return new_name


def get_project_data_dir() -> str:
    """
    Get the project data directory.

    If the environment variable HOME_ENV_VAR is set, its value is returned.
    Otherwise, the home directory appended with the kebab-case project name.

    Returns:
        str: The absolute path of the project data directory.
    """
    return os.environ.get(
        HOME_ENV_VAR, str(Path.home() / f".{camel_to_kebab(PROJECT_NAME)}")
    )


def to_yaml(obj: Dict[Any, Any]) -> str:
    """
    Converts an dictionary to a YAML string.

    Args:
        obj (dict): The dictionary to be converted.

    Returns:
        str: The YAML string.
    """
    yaml = YAML()
    yaml.indent(mapping=2, sequence=4, offset=2)
    buf = StringIO()
    yaml.dump(obj, buf)
    return buf.getvalue()


def read_yaml_file(path: str) -> Dict[str, Any]:
    """
    Reads a YAML file and returns its contents as a dictionary.

    If the file does not exist, an empty dictionary is returned.

    Args:
        path (str): The path to the YAML file.

    Returns:
        Dict[str, Any]: The contents of the YAML file.
    """
    yaml = YAML()
    try:
        with open(path, "r") as file:
            data = yaml.load(file)
    except FileNotFoundError:
        data = {}
    return data or {}


def get_cluster_data_dir(cluster_name: str) -> str:
    return os.path.join(get_project_data_dir(), "clusters", cluster_name)


def get_pulumi_root() -> str:
    return str(Path(get_project_data_dir()) / "pulumi")


def save_kubeconfig(cluster_name: str, kubeconfig_json: Optional[str]) -> None:
    """
    Save the kubeconfig data as 'kubeconfig.yaml' in the cluster data directory.

    Args:
        cluster_name (str): The name of the cluster.
        kubeconfig_json (str): The kubeconfig data in JSON format.

    Returns:
        None
    """
    if kubeconfig_json is None:
        return

    kubeconfig_data = json.loads(kubeconfig_json)

    kubeconfig_file_path = os.path.join(
        get_cluster_data_dir(cluster_name), "kubeconfig.yaml"
    )
    os.makedirs(os.path.dirname(kubeconfig_file_path), exist_ok=True)

    with open(kubeconfig_file_path, "w") as f:
        f.write(to_yaml(kubeconfig_data))


def merge_tags(*tag_sets: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Merges tag dictionaries left to right on top of the managed-by tag.
    """
    tags = dict(MANAGED_BY_TAG)
    for tag_set in tag_sets:
        if tag_set:
            tags.update(tag_set)
    return tags


class StackOutputKey(Enum):
    REGION = "region"
    VPC_ID = "vpcId"
    CLUSTER_NAME = "clusterName"
    KUBECONFIG = "kubeconfig"
    REGISTRIES = "registries"
    BUCKETS = "buckets"
    CERTIFICATES = "certificates"


def read_stack_output(
    cluster_name: str, key: str, profile: Optional[str] = None
) -> Any:
    """
    Reads a value from the last applied state of the cluster stack.

    Args:
        cluster_name (str): The name of the cluster, which is also the Pulumi project name.
        key (str): One of the StackOutputKey names, e.g. "kubeconfig" or "vpc_id".
        profile (Optional[str]): The AWS profile used to read an S3 backend.

    Returns:
        Any: The stored value.

    Raises:
        ValueError: If the key is unknown.
        KeyError: If the state does not hold the value.
    """
    try:
        k = StackOutputKey[key.upper()]
    except KeyError:
        raise ValueError(
            f"Invalid key: {key}. Expected one of: {[k.name.lower() for k in StackOutputKey]}"
        )
    stack_json = _load_stack_state(cluster_name, profile)

    return _read_stack_state_by_key(stack_json, k)


@lru_cache(maxsize=100)
def _load_stack_state(cluster_name: str, profile: Optional[str] = None) -> dict:
    pulumi_backend_url = os.environ.get("PULUMI_BACKEND_URL", "")

    if not pulumi_backend_url:
        raise RuntimeError("Pulumi backend URL is not set")

    state_key = f".pulumi/stacks/{cluster_name}/{PULUMI_STACK_NAME}.json"

    if pulumi_backend_url.startswith("file://"):
        pulumi_root = Path(pulumi_backend_url[len("file://") :])
        stack_json = json.loads((pulumi_root / state_key).read_text())
    elif pulumi_backend_url.startswith("s3://"):
        url = urlparse(pulumi_backend_url)
        # s3://bucket?region=us-west-2
        region = parse_qs(url.query).get("region", [None])[0]
        s3 = boto3.Session(region_name=region, profile_name=profile).client("s3")
        bucket = url.netloc
        response = s3.get_object(Bucket=bucket, Key=state_key)
        stack_json = json.loads(response["Body"].read().decode("utf-8"))
    else:
        raise RuntimeError(f"Unsupported Pulumi backend URL: {pulumi_backend_url}")

    return stack_json


def _read_stack_state_by_key(stack_json: dict, k: StackOutputKey) -> Any:
    resources = stack_json["checkpoint"]["latest"]["resources"]

    if k == StackOutputKey.KUBECONFIG:
        for resource in resources:
            # Only one EKS cluster is created per stack
            if resource["type"] == "eks:index:Cluster":
                return resource["outputs"]["core"]["kubeconfig"]
    elif k == StackOutputKey.REGION:
        for resource in resources:
            if resource["type"] == "pulumi:providers:aws":
                return resource["outputs"]["region"]

    for resource in resources:
        if resource["type"] == "pulumi:pulumi:Stack":
            outputs = resource.get("outputs", {})
            if k.value in outputs:
                return outputs[k.value]

    raise KeyError(f"{k.value} is not found in the stack state")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges `override` into a copy of `base`. Nested dictionaries are
    merged; any other value in `override` replaces the one in `base`.

    Example:
        >>> deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}})
        {'a': {'b': 1, 'c': 3}}
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def calculate_sha256(file_path: str) -> str:
    """
    Calculate the SHA-256 hash of a file.

    Args:
        file_path (str): The path to the file.

    Returns:
        str: The SHA-256 hash of the file, as a hexadecimal string.
    """
    sha256_hash = hashlib.sha256()

    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(4096), b""):
            sha256_hash.update(byte_block)

    return sha256_hash.hexdigest()


@contextmanager
def download_url(url: str) -> Generator[str, None, None]:
    """
    Download a file from a URL into a temporary file, which is removed on exit.

    Args:
        url (str): The URL of the file to be downloaded.

    Yields:
        str: The path to the downloaded file.
    """
    fd, tmp_file = tempfile.mkstemp()
    try:
        with os.fdopen(fd, "wb") as tf:
            with requests.get(url, stream=True, timeout=60) as r:
                r.raise_for_status()
                for chunk in r.iter_content(chunk_size=8192):
                    tf.write(chunk)

            tf.flush()
            os.fsync(tf.fileno())

        yield tmp_file
    finally:
        os.remove(tmp_file)

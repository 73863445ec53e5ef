from __future__ import annotations

import functools
import os
import platform
from typing import Any, Callable, Optional, TypeVar, cast

import typer
from pydantic import ValidationError

from kubeplat.backend import fetch_secret
from kubeplat.cluster.manager.aws import AWSClusterManager
from kubeplat.cluster.manager.base import ClusterManager
from kubeplat.config import Config, parse_yaml
from kubeplat.logger import logger
from kubeplat.utils import get_pulumi_root

T = TypeVar("T", bound=Callable[..., Any])

DEFAULT_CLUSTER_CONFIG = "./cluster.yaml"


def exit_on_config_error(func: T) -> T:
    """
    Decorator for commands that load a cluster config. An invalid or missing
    config is reported and ends the command with exit code 1, before any
    cloud call is made.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.error(f"Invalid cluster config:\n{e}")
            raise typer.Exit(1)
        except (ValueError, FileNotFoundError) as e:
            logger.error(str(e))
            raise typer.Exit(1)

    return cast(T, wrapper)


def load_cluster_config(cluster_config_file: Optional[str]) -> Optional[Config]:
    if not cluster_config_file:
        cluster_config_file = DEFAULT_CLUSTER_CONFIG
    cluster_config_file = os.path.abspath(os.path.expanduser(cluster_config_file))
    if not os.path.exists(cluster_config_file):
        return None

    with open(cluster_config_file, "r") as file:
        return parse_yaml(file.read())


def load_cluster_config_from_secret(
    secret_name: str, region: str, profile: Optional[str] = None
) -> Config:
    logger.info(f"Fetching the cluster config from secret {secret_name}...")
    return parse_yaml(fetch_secret(secret_name, region, profile))


def load_config(
    cluster_config: str,
    secret: Optional[str] = None,
    secret_region: Optional[str] = None,
    profile: Optional[str] = None,
) -> Config:
    """
    Loads the cluster config either from a file or from a Secrets Manager secret.

    Args:
        cluster_config (str): The path to the cluster config file. Defaults to "./cluster.yaml".
        secret (Optional[str]): The name of a secret holding the config. Takes precedence over the file.
        secret_region (Optional[str]): The region of the secret.
        profile (Optional[str]): The AWS profile used to read the secret.

    Returns:
        Config: The validated config.

    Raises:
        FileNotFoundError: If the cluster config file does not exist.
        ValueError: If the config is invalid or the secret region is missing.
    """
    if secret:
        if not secret_region:
            raise ValueError("--secret-region is required when reading from a secret")
        return load_cluster_config_from_secret(secret, secret_region, profile)

    config = load_cluster_config(cluster_config)
    if not config:
        raise FileNotFoundError(
            f"The cluster config file does not exist: {cluster_config or DEFAULT_CLUSTER_CONFIG}"
        )
    return config


def load_cluster_manager(
    cluster_config: str,
    secret: Optional[str] = None,
    secret_region: Optional[str] = None,
    profile: Optional[str] = None,
) -> ClusterManager:
    """
    Loads the cluster manager for the provided cluster configuration.

    Returns:
        ClusterManager: An instance of the cluster manager corresponding to the
        cloud provider specified in the configuration.

    Raises:
        ValueError: If the cloud provider specified in the configuration is not supported.
    """
    config = load_config(cluster_config, secret, secret_region, profile)

    if config.aws:
        return AWSClusterManager(config=config)
    else:
        raise ValueError("Unsupported cloud provider")


def init_pulumi() -> None:
    """
    Initializes Pulumi environment variables and creates the local state root.

    The passphrase defaults to an empty string and the backend URL to a file URL
    pointing to the local Pulumi root. Set PULUMI_BACKEND_URL to the URL printed by
    `kubeplat backend create` to keep the state in S3.
    """
    os.environ["PULUMI_CONFIG_PASSPHRASE"] = os.environ.get(
        "PULUMI_CONFIG_PASSPHRASE", ""
    )

    pulumi_root = get_pulumi_root()
    os.makedirs(pulumi_root, exist_ok=True)
    os.environ["PULUMI_DEBUG_COMMANDS"] = os.environ.get(
        "PULUMI_DEBUG_COMMANDS", "false"
    )
    os.environ["PULUMI_HOME"] = os.environ.get("PULUMI_HOME", pulumi_root)

    system = platform.system().lower()
    if system == "windows":
        _, pulumi_root = os.path.splitdrive(pulumi_root)
        pulumi_url = f"file:///{pulumi_root}"
    else:
        pulumi_url = f"file://{pulumi_root}"

    os.environ["PULUMI_BACKEND_URL"] = os.environ.get(
        "PULUMI_BACKEND_URL",
        pulumi_url,
    )


def ensure_cluster_name(cluster_name: Optional[str]) -> str:
    if cluster_name:
        return cluster_name
    # This will load the `./cluster.yaml` file if it exists
    config = load_cluster_config("")
    if not config or not config.aws:
        logger.error("Please provide a cluster name.")
        raise typer.Exit(1)

    return config.aws.cluster.name

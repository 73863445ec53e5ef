from __future__ import annotations

import json
import os
from typing import Optional

import typer
from botocore.exceptions import ClientError

from kubeplat.cli.utils import ensure_cluster_name
from kubeplat.constants import CURRENT_CLUSTER_ENV_VAR
from kubeplat.k8s.utils import update_kubeconfig
from kubeplat.logger import logger
from kubeplat.utils import read_stack_output

kube_app = typer.Typer()


@kube_app.command()
def update(
    cluster_name: Optional[str] = typer.Option(
        os.getenv(CURRENT_CLUSTER_ENV_VAR),
        "--cluster",
        "-c",
        help="The name of the cluster.",
    ),
    path: str = typer.Option(
        "~/.kube/config",
        "--path",
        help="The kubeconfig file to update.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read an S3 state backend."
    ),
) -> None:
    """
    Updates the default kubeconfig file (~/.kube/config) to include the connection
    details of the specified cluster.
    """
    logger.info("Updating kubeconfig...")
    cluster_name = ensure_cluster_name(cluster_name)
    try:
        kubeconfig = read_stack_output(cluster_name, "kubeconfig", profile)
    except ClientError as e:
        if e.response["Error"]["Code"] != "NoSuchKey":
            raise
        logger.error(f"Cluster {cluster_name} has not been created yet.")
        raise typer.Exit(1)
    except (KeyError, FileNotFoundError):
        logger.error(f"Cluster {cluster_name} has not been created yet.")
        raise typer.Exit(1)

    if isinstance(kubeconfig, str):
        kubeconfig = json.loads(kubeconfig)
    update_kubeconfig(kubeconfig, path)
    logger.info("Successfully updated kubeconfig.")

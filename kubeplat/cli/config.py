from __future__ import annotations

from typing import Optional

import typer

from kubeplat.cli.utils import exit_on_config_error, load_config
from kubeplat.config import generate_yaml
from kubeplat.logger import logger

config_app = typer.Typer()


@config_app.command()
@exit_on_config_error
def validate(
    cluster_config: str = typer.Option(
        "",
        "--file",
        "-f",
        help="Path to the cluster config file.",
    ),
    secret: Optional[str] = typer.Option(
        None, "--secret", help="Name of a secret holding the cluster config."
    ),
    secret_region: Optional[str] = typer.Option(
        None, "--secret-region", help="The region of the secret."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read the secret."
    ),
    show: bool = typer.Option(
        False,
        "--show",
        help="Print the validated config with all defaults filled in.",
    ),
) -> None:
    """
    Validates the cluster config without touching any cloud resource.
    """
    config = load_config(cluster_config, secret, secret_region, profile)
    if config.aws:
        logger.info(f"Cluster config for {config.aws.cluster.name} is valid.")
    if show:
        typer.echo(generate_yaml(config))

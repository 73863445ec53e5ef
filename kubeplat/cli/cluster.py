from __future__ import annotations

from typing import List, Optional

import typer

from kubeplat.cli.utils import exit_on_config_error, load_cluster_manager

cluster_app = typer.Typer()

CLUSTER_CONFIG_HELP = (
    "Path to the cluster config file. The cluster config file is a "
    "YAML file that contains the configuration of the cluster"
)
SECRET_HELP = (
    "Name of an AWS Secrets Manager secret holding the cluster config. "
    "Takes precedence over --file."
)


@cluster_app.command()
@exit_on_config_error
def up(
    cluster_config: str = typer.Option("", "--file", "-f", help=CLUSTER_CONFIG_HELP),
    secret: Optional[str] = typer.Option(None, "--secret", help=SECRET_HELP),
    secret_region: Optional[str] = typer.Option(
        None, "--secret-region", help="The region of the secret."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read the secret."
    ),
    no_kubeconfig: bool = typer.Option(
        False,
        "--no-kubeconfig",
        "-n",
        help="By default, the connection details of the newly created Kubernetes "
        "cluster are added to the default kubeconfig file (~/.kube/config). "
        "Use this option to prevent updating the kubeconfig file.",
    ),
    parallel: Optional[int] = typer.Option(
        None,
        "--parallel",
        help="The maximum number of resource operations run in parallel.",
    ),
) -> None:
    """
    Creates or updates the platform based on the provided configuration.
    """
    cluster_manager = load_cluster_manager(
        cluster_config, secret, secret_region, profile
    )
    cluster_manager.ctx.set_should_save_kubeconfig(not no_kubeconfig)
    cluster_manager.create(parallel=parallel)


@cluster_app.command()
@exit_on_config_error
def down(
    cluster_config: str = typer.Option("", "--file", "-f", help=CLUSTER_CONFIG_HELP),
    secret: Optional[str] = typer.Option(None, "--secret", help=SECRET_HELP),
    secret_region: Optional[str] = typer.Option(
        None, "--secret-region", help="The region of the secret."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read the secret."
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Automatic yes to prompts. Use this option to bypass the confirmation "
        "prompt and directly proceed with the operation.",
    ),
    parallel: Optional[int] = typer.Option(
        None,
        "--parallel",
        help="The maximum number of resource operations run in parallel.",
    ),
) -> None:
    """
    Tears down the platform, removing all associated resources and data.
    """
    cluster_manager = load_cluster_manager(
        cluster_config, secret, secret_region, profile
    )
    if yes or typer.confirm(
        "Are you sure you want to proceed with the operation? Please note that "
        "all resources and data will be permanently deleted.",
        default=False,
    ):
        cluster_manager.destroy(parallel=parallel)
    else:
        typer.echo("Aborted.")
        raise typer.Exit(1)


@cluster_app.command()
@exit_on_config_error
def preview(
    cluster_config: str = typer.Option("", "--file", "-f", help=CLUSTER_CONFIG_HELP),
    secret: Optional[str] = typer.Option(None, "--secret", help=SECRET_HELP),
    secret_region: Optional[str] = typer.Option(
        None, "--secret-region", help="The region of the secret."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read the secret."
    ),
    policy_packs: List[str] = typer.Option(
        [],
        "--policy-pack",
        "-p",
        help="Path to a policy pack to validate the planned resources against.",
    ),
) -> None:
    """
    Previews the changes that will be applied to the cloud resources.
    """
    cluster_manager = load_cluster_manager(
        cluster_config, secret, secret_region, profile
    )
    cluster_manager.preview(policy_packs=policy_packs or None)


@cluster_app.command()
@exit_on_config_error
def refresh(
    cluster_config: str = typer.Option("", "--file", "-f", help=CLUSTER_CONFIG_HELP),
    secret: Optional[str] = typer.Option(None, "--secret", help=SECRET_HELP),
    secret_region: Optional[str] = typer.Option(
        None, "--secret-region", help="The region of the secret."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile used to read the secret."
    ),
) -> None:
    """
    Synchronize the local cluster state with the state in the cloud.
    """
    cluster_manager = load_cluster_manager(
        cluster_config, secret, secret_region, profile
    )
    cluster_manager.refresh()

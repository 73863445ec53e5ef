import typer

from kubeplat import __version__
from kubeplat.cli.backend import backend_app
from kubeplat.cli.cluster import cluster_app
from kubeplat.cli.config import config_app
from kubeplat.cli.kubeconfig import kube_app
from kubeplat.cli.utils import init_pulumi
from kubeplat.logger import setup_logger

init_pulumi()


def version_callback(version: bool) -> None:
    if version:
        typer.echo(f"Kubeplat CLI Version: {__version__}")
        raise typer.Exit()


cli = typer.Typer(context_settings={"help_option_names": ["-h", "--help"]})


@cli.callback()
def main_options(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit", callback=version_callback
    ),
) -> None:
    setup_logger(verbose)


cli.add_typer(cluster_app, name="cluster", help="Manage clusters.")

cli.add_typer(backend_app, name="backend", help="Manage the S3 state backend.")

cli.add_typer(kube_app, name="kubeconfig", help="Export kubeconfig.")

cli.add_typer(config_app, name="config", help="Validate cluster configs.")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

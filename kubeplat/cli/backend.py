from __future__ import annotations

from typing import Optional

import typer

from kubeplat.backend import create_backend, destroy_backend

backend_app = typer.Typer()


@backend_app.command()
def create(
    bucket: str = typer.Argument(..., help="The name of the state bucket."),
    region: str = typer.Option(..., "--region", "-r", help="The AWS region."),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile to use."
    ),
) -> None:
    """
    Creates a versioned and encrypted S3 bucket to keep the cluster state in.
    """
    url = create_backend(bucket, region, profile)
    typer.echo(url)


@backend_app.command()
def destroy(
    bucket: str = typer.Argument(..., help="The name of the state bucket."),
    region: str = typer.Option(..., "--region", "-r", help="The AWS region."),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="The AWS profile to use."
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Automatic yes to prompts.",
    ),
) -> None:
    """
    Deletes the state bucket and every state version in it.
    """
    if yes or typer.confirm(
        f"Are you sure you want to delete the state bucket {bucket}? The state "
        "of every cluster kept in it will be lost.",
        default=False,
    ):
        destroy_backend(bucket, region, profile)
    else:
        typer.echo("Aborted.")
        raise typer.Exit(1)

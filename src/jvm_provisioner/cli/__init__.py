"""Command line interface: ``jvm-provisioner``."""

from __future__ import annotations

import logging

import typer

from jvm_provisioner import __version__
from jvm_provisioner.cli.commands import list_runtimes, remote, remove, resolve, scan, set_default
from jvm_provisioner.cli.helpers import console

app = typer.Typer(
    name="jvm-provisioner",
    help="Find, download and manage Java runtimes",
    add_completion=False,
    no_args_is_help=True,
)

app.command("list")(list_runtimes)
app.command("remote")(remote)
app.command("resolve")(resolve)
app.command("set-default")(set_default)
app.command("remove")(remove)
app.command("scan")(scan)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"jvm-provisioner {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Find, download and manage Java runtimes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    app()


__all__ = ["app", "main"]

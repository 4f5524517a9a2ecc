"""Commands that inspect and edit the local runtime registry."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from jvm_provisioner.cli.helpers import console, exit_with_error, load_cli_config, parse_key, parse_platform
from jvm_provisioner.discovery import discover_installations
from jvm_provisioner.errors import ProvisioningError
from jvm_provisioner.maintenance import remove_runtime
from jvm_provisioner.registry import RuntimeRegistry


def list_runtimes(
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Only show runtimes for this platform"),
) -> None:
    """List registered runtimes."""
    config = load_cli_config()
    registry = RuntimeRegistry.open(config.home)
    selected = parse_platform(platform) if platform else None
    runtimes = registry.find_all(lambda r: selected is None or r.platform == selected)

    if not runtimes:
        console.print("[yellow]No runtimes registered.[/yellow]")
        return

    table = Table(title="Installed Runtimes")
    table.add_column("Version", style="cyan")
    table.add_column("Vendor", style="bold")
    table.add_column("Platform", style="magenta")
    table.add_column("Active")
    table.add_column("Managed")
    table.add_column("Java Home")
    for runtime in runtimes:
        table.add_row(
            str(runtime.version),
            str(runtime.vendor),
            runtime.platform.value,
            "[green]✓[/green]" if runtime.active else "",
            "yes" if runtime.managed else "no",
            str(runtime.java_home),
        )
    console.print(table)


def set_default(
    version: str = typer.Argument(..., help="Exact runtime version"),
    vendor: str = typer.Option(..., "--vendor", help="Runtime vendor"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Runtime platform (default: this machine)"),
) -> None:
    """Make a registered runtime the default for its platform."""
    config = load_cli_config()
    key = parse_key(version, vendor, platform)
    try:
        runtime = RuntimeRegistry.open(config.home).set_active(key)
    except ProvisioningError as exc:
        exit_with_error(exc)
    console.print(f"[green]✓[/green] {runtime.key} is now the default runtime")


def remove(
    version: str = typer.Argument(..., help="Exact runtime version"),
    vendor: str = typer.Option(..., "--vendor", help="Runtime vendor"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Runtime platform (default: this machine)"),
    keep_files: bool = typer.Option(False, "--keep-files", help="Unregister only; leave the installation on disk"),
) -> None:
    """Unregister a runtime and delete it if it was installed by jvm-provisioner."""
    config = load_cli_config()
    key = parse_key(version, vendor, platform)
    try:
        removed = remove_runtime(RuntimeRegistry.open(config.home), key, delete_files=not keep_files)
    except (ProvisioningError, OSError) as exc:
        exit_with_error(exc)
    console.print(f"[green]✓[/green] Removed {removed.key}")


def scan(
    paths: List[Path] = typer.Argument(..., help="Directories to search for Java installations"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Platform of the found runtimes"),
) -> None:
    """Register Java installations that already exist on this machine."""
    config = load_cli_config()
    found = discover_installations(paths, parse_platform(platform))
    if not found:
        console.print("[yellow]No Java installations found.[/yellow]")
        return
    try:
        added = RuntimeRegistry.open(config.home).import_discovered(found)
    except ProvisioningError as exc:
        exit_with_error(exc)
    for runtime in found:
        console.print(f"  • {runtime.vendor} {runtime.version} [dim]{runtime.java_home}[/dim]")
    console.print(f"[green]✓[/green] Registered {added} new runtime(s)")

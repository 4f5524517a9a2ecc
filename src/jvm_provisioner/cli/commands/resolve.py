"""``resolve`` and ``remote`` commands: talk to the manifest server."""

from __future__ import annotations

from typing import Optional

import typer
from rich.progress import BarColumn, DownloadColumn, Progress, SpinnerColumn, TextColumn, TransferSpeedColumn
from rich.table import Table

from jvm_provisioner.cli.helpers import console, exit_with_error, load_cli_config, parse_platform
from jvm_provisioner.errors import ProvisioningError
from jvm_provisioner.manifest import ManifestClient
from jvm_provisioner.models import LocalRuntime, ProvisionRequest, RemoteRuntimeDescriptor
from jvm_provisioner.provider import RuntimeProvider


class ConsoleUI:
    """Confirm downloads on the terminal."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    def confirm_download(self, candidate: RemoteRuntimeDescriptor) -> bool:
        if self.assume_yes:
            return True
        console.print(f"No installed runtime matches; [cyan]{candidate.vendor} {candidate.version}[/cyan] is available.")
        return typer.confirm(f"Download it from {candidate.url}?", default=True)

    def confirm_update(self, current: LocalRuntime, candidate: RemoteRuntimeDescriptor) -> bool:
        if self.assume_yes:
            return True
        console.print(
            f"Update available: [cyan]{current.vendor} {current.version}[/cyan] → "
            f"[cyan]{candidate.vendor} {candidate.version}[/cyan]"
        )
        return typer.confirm("Download the update?", default=True)

    def report_error(self, message: str, cause: Optional[BaseException]) -> None:
        console.print(f"[red]Error:[/red] {message}")


def resolve(
    version: str = typer.Argument(..., help="Version constraint, e.g. 11.0.2, 1.8*, 17+"),
    vendor: Optional[str] = typer.Option(None, "--vendor", help="Preferred vendor (default: configured vendor)"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Target platform (default: this machine)"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Manifest URL (default: configured endpoint)"),
    check_updates: bool = typer.Option(False, "--check-updates", help="Look for a newer runtime even if one is installed"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Download without asking"),
) -> None:
    """Find or install a runtime and print its Java home."""
    config = load_cli_config()
    try:
        request = ProvisionRequest.of(
            version,
            vendor=vendor,
            platform=parse_platform(platform),
            endpoint=endpoint,
            allow_auto_download=check_updates,
        )
    except ProvisioningError as exc:
        exit_with_error(exc)

    ui = ConsoleUI(assume_yes=yes)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    )
    task = progress.add_task("Downloading...", total=None)

    def on_progress(downloaded: int, total: Optional[int]) -> None:
        # Started by the first chunk so confirmation prompts are never drawn over
        if not progress.live.is_started:
            progress.start()
        progress.update(task, completed=downloaded, total=total)

    with RuntimeProvider.from_config(config) as provider:
        try:
            runtime = provider.resolve(request, ui, progress=on_progress)
        except ProvisioningError:
            # already shown through ConsoleUI.report_error
            raise typer.Exit(1)
        finally:
            progress.stop()

    console.print(f"[green]✓[/green] {runtime.vendor} {runtime.version} ({runtime.platform.value})")
    typer.echo(str(runtime.java_home))


def remote(
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Manifest URL (default: configured endpoint)"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Only show runtimes for this platform"),
) -> None:
    """List the runtimes offered by a manifest server."""
    config = load_cli_config()
    url = endpoint or config.default_endpoint
    if not url:
        console.print("[red]Error:[/red] No endpoint given and no default_endpoint configured")
        raise typer.Exit(1)
    selected = parse_platform(platform) if platform else None

    with ManifestClient(timeout=config.network_timeout) as client:
        runtimes = client.fetch(url)
    runtimes = [r for r in runtimes if selected is None or r.platform == selected]
    if not runtimes:
        console.print(f"[yellow]No runtimes available from {url}[/yellow]")
        return

    table = Table(title=f"Runtimes at {url}")
    table.add_column("Version", style="cyan")
    table.add_column("Vendor", style="bold")
    table.add_column("Platform", style="magenta")
    table.add_column("URL")
    for runtime in sorted(runtimes, key=lambda r: r.version, reverse=True):
        table.add_row(str(runtime.version), str(runtime.vendor), runtime.platform.value, runtime.url)
    console.print(table)

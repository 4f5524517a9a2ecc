"""Shared console and argument helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn, Optional

import typer
from rich.console import Console

from jvm_provisioner.config import ProvisionerConfig, load_config
from jvm_provisioner.errors import ProvisioningError
from jvm_provisioner.models import RuntimeKey
from jvm_provisioner.platforms import Platform

console = Console()


def load_cli_config() -> ProvisionerConfig:
    try:
        return load_config()
    except ProvisioningError as exc:
        exit_with_error(exc)


def exit_with_error(error: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def parse_platform(value: Optional[str]) -> Platform:
    try:
        return Platform.parse(value) if value else Platform.current()
    except ProvisioningError as exc:
        exit_with_error(exc)


def parse_key(version: str, vendor: str, platform: Optional[str]) -> RuntimeKey:
    try:
        return RuntimeKey.of(version, vendor, parse_platform(platform))
    except ProvisioningError as exc:
        exit_with_error(exc)

"""CLI command implementations, registered on the app in ``jvm_provisioner.cli``."""

from .resolve import remote, resolve
from .runtimes import list_runtimes, remove, scan, set_default

__all__ = ["list_runtimes", "remote", "remove", "resolve", "scan", "set_default"]

"""Housekeeping for the runtimes directory."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from .models import LocalRuntime, RuntimeKey
from .registry import RuntimeRegistry

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"
DEFAULT_STAGING_MAX_AGE = 6 * 60 * 60


def remove_runtime(registry: RuntimeRegistry, key: RuntimeKey, delete_files: bool = True) -> LocalRuntime:
    """Unregister *key*; delete its files too when the provisioner installed it.

    Installations found by a scan (unmanaged) are never deleted from disk.

    Raises:
        NotFound: If *key* is not registered
    """
    removed = registry.remove(key)
    if delete_files and removed.managed:
        directory = _install_directory(removed)
        if directory.exists():
            logger.info("Deleting %s", directory)
            shutil.rmtree(directory)
    return removed


def _install_directory(runtime: LocalRuntime) -> Path:
    # macOS bundles register <dir>/Contents/Home as the Java home
    home = runtime.java_home
    if home.name == "Home" and home.parent.name == "Contents":
        return home.parent.parent
    return home


def _last_modified(directory: Path) -> float:
    latest = directory.stat().st_mtime
    for child in directory.iterdir():
        try:
            latest = max(latest, child.stat().st_mtime)
        except OSError:
            continue
    return latest


def prune_staging(runtimes_root: Path, max_age: float = DEFAULT_STAGING_MAX_AGE) -> int:
    """Remove ``.staging-*`` directories left behind by crashed processes.

    Only directories untouched for *max_age* seconds are removed, so
    downloads in progress elsewhere survive. Returns the number removed.
    """
    if not runtimes_root.is_dir():
        return 0
    cutoff = time.time() - max_age
    removed = 0
    for entry in runtimes_root.iterdir():
        if not (entry.is_dir() and entry.name.startswith(STAGING_PREFIX)):
            continue
        try:
            if _last_modified(entry) > cutoff:
                continue
            shutil.rmtree(entry)
            removed += 1
        except OSError as exc:
            logger.debug("Could not remove staging directory %s: %s", entry, exc)
    if removed:
        logger.info("Pruned %d orphaned staging director%s", removed, "y" if removed == 1 else "ies")
    return removed

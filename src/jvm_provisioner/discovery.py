"""Find Java installations that already exist on this machine.

A directory is recognised as a Java home when it holds a ``release`` file
with a ``JAVA_VERSION`` entry and a ``bin/java`` executable. macOS bundles
(``*.jdk/Contents/Home``) are recognised as well.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from .errors import InvalidVersionFormat
from .installer import find_java_home
from .models import LocalRuntime
from .platforms import Platform

logger = logging.getLogger(__name__)

RELEASE_FILENAME = "release"
UNKNOWN_VENDOR = "unknown"

# IMPLEMENTOR values written by common distributions, mapped to manifest vendor names
_IMPLEMENTORS = {
    "adoptopenjdk": "adopt",
    "eclipse adoptium": "adoptium",
    "oracle corporation": "oracle",
    "azul systems, inc.": "azul",
    "amazon.com inc.": "amazon",
    "bellsoft": "bellsoft",
    "n/a": UNKNOWN_VENDOR,
}


def read_release_file(path: Path) -> dict[str, str]:
    """Parse a JDK ``release`` file (``KEY="value"`` lines)."""
    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        values[key.strip()] = value.strip().strip('"')
    return values


def vendor_from_implementor(implementor: Optional[str]) -> str:
    if not implementor:
        return UNKNOWN_VENDOR
    return _IMPLEMENTORS.get(implementor.strip().lower(), implementor.strip())


def inspect_java_home(directory: Path, platform: Platform) -> Optional[LocalRuntime]:
    """Return an unmanaged LocalRuntime for *directory*, or None if it is not a Java home."""
    home = find_java_home(directory)
    if home is None:
        return None
    release = home / RELEASE_FILENAME
    if not release.is_file():
        logger.debug("Skipping %s: no release file", home)
        return None
    try:
        values = read_release_file(release)
    except OSError as exc:
        logger.warning("Cannot read %s: %s", release, exc)
        return None

    version = values.get("JAVA_VERSION")
    if not version:
        logger.debug("Skipping %s: release file has no JAVA_VERSION", home)
        return None
    try:
        return LocalRuntime(
            version=version,
            vendor=vendor_from_implementor(values.get("IMPLEMENTOR")),
            platform=platform,
            java_home=home.resolve(),
            active=False,
            managed=False,
        )
    except (ValidationError, InvalidVersionFormat) as exc:
        logger.warning("Skipping %s: %s", home, exc)
        return None


def discover_installations(
    search_roots: Iterable[Path],
    platform: Optional[Platform] = None,
) -> list[LocalRuntime]:
    """Scan each root and its direct children for Java installations."""
    platform = platform or Platform.current()
    found: list[LocalRuntime] = []
    seen: set[Path] = set()
    for root in search_roots:
        root = Path(root).expanduser()
        if not root.is_dir():
            logger.debug("Search root %s does not exist", root)
            continue
        candidates = [root] + sorted(child for child in root.iterdir() if child.is_dir())
        for candidate in candidates:
            runtime = inspect_java_home(candidate, platform)
            if runtime is None or runtime.java_home in seen:
                continue
            seen.add(runtime.java_home)
            found.append(runtime)
    logger.info("Discovered %d Java installation(s)", len(found))
    return found

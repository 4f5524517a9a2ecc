"""Archive verification and extraction.

The download coordinator hands every downloaded archive to a
``RuntimeInstaller``. ``ArchiveInstaller`` handles zip and tar archives
(optionally compressed) and checks the SHA-256 digest when the manifest
provides one.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Protocol

from .errors import InstallerError
from .models import RemoteRuntimeDescriptor

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class RuntimeInstaller(Protocol):
    """Pluggable archive handling used by the download coordinator."""

    def verify(self, archive: Path, descriptor: RemoteRuntimeDescriptor) -> None:
        """Raise InstallerError if *archive* is not the advertised artifact."""
        ...

    def extract(self, archive: Path, destination: Path, descriptor: RemoteRuntimeDescriptor) -> Path:
        """Unpack *archive* below *destination* and return the runtime's root directory."""
        ...


def sha256_of(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def java_executable(home: Path) -> Path:
    windows = home / "bin" / "java.exe"
    if windows.is_file():
        return windows
    return home / "bin" / "java"


def find_java_home(root: Path) -> Path | None:
    """Return the Java home inside *root* (itself or a macOS ``Contents/Home``)."""
    for candidate in (root, root / "Contents" / "Home"):
        if java_executable(candidate).is_file():
            return candidate
    return None


class ArchiveInstaller:
    """Default installer for ``.zip``, ``.tar``, ``.tar.gz`` and ``.tgz`` runtimes."""

    def verify(self, archive: Path, descriptor: RemoteRuntimeDescriptor) -> None:
        if not descriptor.sha256:
            logger.debug("No checksum advertised for %s", descriptor.key)
            return
        actual = sha256_of(archive)
        if actual.lower() != descriptor.sha256.strip().lower():
            raise InstallerError(
                f"Checksum mismatch for {descriptor.url}: expected {descriptor.sha256}, got {actual}"
            )

    def extract(self, archive: Path, destination: Path, descriptor: RemoteRuntimeDescriptor) -> Path:
        destination.mkdir(parents=True, exist_ok=True)
        kind = (descriptor.archive_type or "").lower()
        try:
            if kind == "zip" or (not kind and zipfile.is_zipfile(archive)):
                _extract_zip(archive, destination)
            elif kind in ("tar", "tar.gz", "tgz", "tar.xz", "tar.bz2") or (
                not kind and tarfile.is_tarfile(archive)
            ):
                with tarfile.open(archive) as tar:
                    tar.extractall(destination, filter="data")
            else:
                raise InstallerError(f"Unsupported archive format for {descriptor.url}")
        except (zipfile.BadZipFile, tarfile.TarError) as exc:
            raise InstallerError(f"Corrupt archive {archive.name}: {exc}") from exc

        root = _single_top_level(destination)
        if find_java_home(root) is None:
            raise InstallerError(f"{descriptor.url} does not contain a Java runtime (bin/java missing)")
        return root


def _single_top_level(directory: Path) -> Path:
    """Most runtime archives wrap everything in one folder (``jdk8u145/``); unwrap it."""
    children = [child for child in directory.iterdir() if not child.name.startswith("__MACOSX")]
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return directory


def _extract_zip(archive: Path, destination: Path) -> None:
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = (destination / info.filename).resolve()
            if not target.is_relative_to(root):
                raise InstallerError(f"Archive entry escapes the target directory: {info.filename}")
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as source, open(target, "wb") as sink:
                shutil.copyfileobj(source, sink)
            # zipfile drops unix permissions; restore them so bin/java stays executable
            mode = (info.external_attr >> 16) & 0o777
            if mode and os.name != "nt":
                os.chmod(target, mode | stat.S_IRUSR)

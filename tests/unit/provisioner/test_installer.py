"""Tests for jvm_provisioner.installer.ArchiveInstaller."""

from __future__ import annotations

import hashlib
import io
import os
import tarfile
import zipfile
from pathlib import Path

import pytest

from jvm_provisioner.errors import InstallerError
from jvm_provisioner.installer import ArchiveInstaller, find_java_home
from jvm_provisioner.models import RemoteRuntimeDescriptor


def _descriptor(**changes) -> RemoteRuntimeDescriptor:
    data = {"version": "11.0.1", "vendor": "adopt", "os": "LINUX64", "href": "https://x/jdk.zip"}
    data.update(changes)
    return RemoteRuntimeDescriptor.model_validate(data)


@pytest.fixture
def archive(tmp_path: Path, runtime_zip) -> Path:
    path = tmp_path / "jdk.zip"
    path.write_bytes(runtime_zip("11.0.1"))
    return path


class TestVerify:
    def test_no_checksum_is_accepted(self, archive) -> None:
        ArchiveInstaller().verify(archive, _descriptor())

    def test_matching_checksum(self, archive) -> None:
        digest = hashlib.sha256(archive.read_bytes()).hexdigest()
        ArchiveInstaller().verify(archive, _descriptor(sha256=digest.upper()))

    def test_mismatch(self, archive) -> None:
        with pytest.raises(InstallerError, match="Checksum mismatch"):
            ArchiveInstaller().verify(archive, _descriptor(sha256="0" * 64))


class TestExtract:
    def test_zip_unwraps_single_top_level_directory(self, tmp_path, archive) -> None:
        root = ArchiveInstaller().extract(archive, tmp_path / "out", _descriptor())
        assert root == tmp_path / "out" / "jdk"
        assert (root / "release").is_file()
        assert find_java_home(root) == root

    @pytest.mark.skipif(os.name == "nt", reason="unix permissions")
    def test_zip_keeps_executable_bit(self, tmp_path, archive) -> None:
        root = ArchiveInstaller().extract(archive, tmp_path / "out", _descriptor())
        assert os.access(root / "bin" / "java", os.X_OK)

    def test_flat_zip(self, tmp_path, runtime_zip) -> None:
        path = tmp_path / "flat.zip"
        path.write_bytes(runtime_zip(top_level=None))
        root = ArchiveInstaller().extract(path, tmp_path / "out", _descriptor())
        assert root == tmp_path / "out"

    def test_tar_gz(self, tmp_path) -> None:
        path = tmp_path / "jdk.tar.gz"
        with tarfile.open(path, "w:gz") as tar:
            for name, data in (("jdk-11/bin/java", b"#!/bin/sh\n"), ("jdk-11/release", b'JAVA_VERSION="11"\n')):
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(data))
        root = ArchiveInstaller().extract(path, tmp_path / "out", _descriptor(href="https://x/jdk.tar.gz"))
        assert root.name == "jdk-11"
        assert (root / "bin" / "java").is_file()

    def test_mac_bundle_layout(self, tmp_path) -> None:
        path = tmp_path / "jdk.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("jdk-11.jdk/Contents/Home/bin/java", "java")
            zf.writestr("jdk-11.jdk/Contents/Info.plist", "<plist/>")
        root = ArchiveInstaller().extract(path, tmp_path / "out", _descriptor(os="MAC64"))
        assert find_java_home(root) == root / "Contents" / "Home"

    def test_missing_java_binary(self, tmp_path, runtime_zip) -> None:
        path = tmp_path / "nojava.zip"
        path.write_bytes(runtime_zip(with_java=False))
        with pytest.raises(InstallerError, match="bin/java"):
            ArchiveInstaller().extract(path, tmp_path / "out", _descriptor())

    def test_not_an_archive(self, tmp_path) -> None:
        path = tmp_path / "junk.bin"
        path.write_bytes(b"definitely not an archive")
        with pytest.raises(InstallerError):
            ArchiveInstaller().extract(path, tmp_path / "out", _descriptor())

    def test_corrupt_declared_zip(self, tmp_path) -> None:
        path = tmp_path / "broken.zip"
        path.write_bytes(b"PK\x03\x04garbage")
        with pytest.raises(InstallerError):
            ArchiveInstaller().extract(path, tmp_path / "out", _descriptor(archiveType="zip"))

    def test_path_traversal_is_rejected(self, tmp_path) -> None:
        path = tmp_path / "evil.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("../../escaped.txt", "nope")
        with pytest.raises(InstallerError, match="escapes"):
            ArchiveInstaller().extract(path, tmp_path / "out", _descriptor())
        assert not (tmp_path / "escaped.txt").exists()

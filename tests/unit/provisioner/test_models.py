"""Tests for jvm_provisioner.models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from jvm_provisioner.models import (
    ANY_VENDOR,
    LocalRuntime,
    ProvisionRequest,
    RemoteRuntimeDescriptor,
    RuntimeKey,
    Vendor,
)
from jvm_provisioner.platforms import Platform
from jvm_provisioner.version import SpecKind, Version


class TestVendor:
    def test_case_insensitive(self) -> None:
        assert Vendor("Adopt") == Vendor("adopt")
        assert hash(Vendor("ORACLE")) == hash(Vendor("oracle"))

    @pytest.mark.parametrize("value", [None, "", "*", "any", "ANY"])
    def test_wildcards(self, value) -> None:
        assert Vendor.parse(value) is ANY_VENDOR

    def test_matches(self) -> None:
        adopt = Vendor("adopt")
        assert adopt.matches(ANY_VENDOR)
        assert ANY_VENDOR.matches(adopt)
        assert adopt.matches(Vendor("ADOPT"))
        assert not adopt.matches(Vendor("oracle"))


class TestRuntimeKey:
    def test_equal_keys_from_equivalent_input(self) -> None:
        assert RuntimeKey.of("1.8", "Adopt", "linux-x64") == RuntimeKey.of("1.8.0", "adopt", Platform.LINUX64)

    def test_directory_name(self) -> None:
        key = RuntimeKey.of("11.0.1", "Eclipse Adoptium", "linux64")
        assert key.directory_name == "eclipse_adoptium-11.0.1-linux64"


class TestRemoteRuntimeDescriptor:
    def test_wire_names(self) -> None:
        descriptor = RemoteRuntimeDescriptor.model_validate(
            {
                "version": "1.8.145",
                "vendor": "adopt",
                "os": "LINUX64",
                "href": "https://example.com/a.zip",
                "archiveType": "zip",
                "somethingElse": 1,
            }
        )
        assert descriptor.version == Version("1.8.145")
        assert descriptor.platform is Platform.LINUX64
        assert descriptor.url == "https://example.com/a.zip"
        assert descriptor.archive_type == "zip"
        assert descriptor.key == RuntimeKey.of("1.8.145", "adopt", "linux64")

    def test_invalid_entries(self) -> None:
        with pytest.raises(ValidationError):
            RemoteRuntimeDescriptor.model_validate({"version": "", "vendor": "adopt", "os": "LINUX64", "href": "x"})
        with pytest.raises(ValidationError):
            RemoteRuntimeDescriptor.model_validate({"version": "11", "vendor": "adopt", "os": "AMIGA", "href": "x"})
        with pytest.raises(ValidationError):
            RemoteRuntimeDescriptor.model_validate({"version": "11", "vendor": "adopt", "os": "LINUX64"})


class TestLocalRuntime:
    def test_rejects_wildcard_vendor(self) -> None:
        with pytest.raises(ValidationError):
            LocalRuntime(version="11", vendor="*", platform="linux64", java_home=Path("/opt/jdk"))

    def test_json_round_trip(self) -> None:
        runtime = LocalRuntime(
            version="1.8.0_252", vendor="adopt", platform="mac64", java_home=Path("/opt/jdk"), managed=True
        )
        data = runtime.model_dump(mode="json")
        assert data["version"] == "1.8.0_252"
        assert data["vendor"] == "adopt"
        assert data["platform"] == "mac64"
        assert LocalRuntime.model_validate(data) == runtime

    def test_with_active_returns_new_value(self) -> None:
        runtime = LocalRuntime(version="11", vendor="adopt", platform="linux64", java_home=Path("/opt/jdk"))
        activated = runtime.with_active(True)
        assert activated.active
        assert not runtime.active
        assert activated.key == runtime.key


class TestProvisionRequest:
    def test_of(self) -> None:
        request = ProvisionRequest.of("1.8*", vendor="adopt", platform="linux64")
        assert request.version_spec.kind is SpecKind.PREFIX
        assert request.vendor == Vendor("adopt")
        assert request.platform is Platform.LINUX64
        assert request.allow_auto_download is False

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(Platform, "current", classmethod(lambda cls: Platform.WIN64))
        request = ProvisionRequest.of("11")
        assert request.vendor is ANY_VENDOR
        assert request.platform is Platform.WIN64
        assert request.endpoint is None

from __future__ import annotations

import io
import json
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

import httpx
import pytest

from jvm_provisioner.config import ProvisionerConfig
from jvm_provisioner.models import LocalRuntime
from jvm_provisioner.platforms import Platform

ENDPOINT = "https://jvms.example.com/manifest.json"

_ENV_VARS = (
    "JVM_PROVISIONER_HOME",
    "JVM_PROVISIONER_CONFIG",
    "JVM_PROVISIONER_ENDPOINT",
    "JVM_PROVISIONER_VENDOR",
    "JVM_PROVISIONER_VERSION_RANGE",
    "JVM_PROVISIONER_TIMEOUT",
    "JVM_PROVISIONER_ALLOW_NON_DEFAULT_ENDPOINT",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real user home and configuration."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JVM_PROVISIONER_CONFIG", str(tmp_path / "config" / "config.toml"))


@pytest.fixture()
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty provisioner home, also exported through JVM_PROVISIONER_HOME."""
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("JVM_PROVISIONER_HOME", str(path))
    return path


@pytest.fixture()
def config(home: Path) -> ProvisionerConfig:
    return ProvisionerConfig(default_endpoint=ENDPOINT, home=home)


def build_runtime_zip(
    version: str = "1.8.145",
    implementor: str = "AdoptOpenJDK",
    top_level: str | None = "jdk",
    with_java: bool = True,
) -> bytes:
    """Return a zip archive laid out like a JDK download."""
    prefix = f"{top_level}/" if top_level else ""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(f"{prefix}release", f'JAVA_VERSION="{version}"\nIMPLEMENTOR="{implementor}"\n')
        if with_java:
            info = zipfile.ZipInfo(f"{prefix}bin/java")
            info.external_attr = 0o755 << 16
            zf.writestr(info, "#!/bin/sh\necho java\n")
        zf.writestr(f"{prefix}lib/rt.jar", b"\x00" * 128)
    return buffer.getvalue()


@pytest.fixture()
def runtime_zip() -> Callable[..., bytes]:
    return build_runtime_zip


def make_local(
    version: str,
    vendor: str = "adopt",
    platform: str = "linux64",
    java_home: Path | None = None,
    **changes: object,
) -> LocalRuntime:
    return LocalRuntime(
        version=version,
        vendor=vendor,
        platform=Platform.parse(platform),
        java_home=java_home or Path(f"/opt/java/{vendor}-{version}-{platform}"),
        **changes,
    )


@pytest.fixture()
def local_runtime() -> Callable[..., LocalRuntime]:
    """Factory for LocalRuntime values."""
    return make_local


def manifest_entry(version: str, vendor: str = "adopt", os: str = "LINUX64", href: str | None = None) -> dict:
    return {
        "version": version,
        "vendor": vendor,
        "os": os,
        "href": href or f"https://jvms.example.com/{vendor}-{version}-{os.lower()}.zip",
    }


@pytest.fixture()
def entry() -> Callable[..., dict]:
    return manifest_entry


@dataclass
class FakeServer:
    """Routes for an httpx.MockTransport, recording every requested URL."""

    routes: dict[str, Callable[[httpx.Request], httpx.Response]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        return route(request)

    def json(self, url: str, payload: object, status: int = 200) -> None:
        body = json.dumps(payload).encode()
        self.routes[url] = lambda request: httpx.Response(status, content=body)

    def file(self, url: str, data: bytes) -> None:
        self.routes[url] = lambda request: httpx.Response(
            200, content=data, headers={"content-length": str(len(data))}
        )

    def manifest(self, *entries: dict, url: str = ENDPOINT) -> None:
        self.json(url, {"cacheTimeInMillis": 5000, "runtimes": list(entries)})

    def count(self, url: str) -> int:
        return self.calls.count(url)


@pytest.fixture()
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture()
def http_client(server: FakeServer) -> Iterator[httpx.Client]:
    client = httpx.Client(transport=httpx.MockTransport(server.handler), follow_redirects=True)
    yield client
    client.close()

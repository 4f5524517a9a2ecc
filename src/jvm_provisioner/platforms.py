"""Operating system / architecture pairs a runtime can be built for."""

from __future__ import annotations

import platform as _host
import sys
from enum import Enum

from .errors import UnsupportedPlatform


class Platform(str, Enum):
    """Known runtime platforms; the value is the manifest identifier."""

    WIN32 = "win32"
    WIN64 = "win64"
    MAC64 = "mac64"
    MAC_ARM64 = "mac_arm64"
    LINUX32 = "linux32"
    LINUX64 = "linux64"
    LINUX_ARM64 = "linux_arm64"

    @property
    def os_name(self) -> str:
        return _OS_NAMES[self]

    @property
    def architecture(self) -> str:
        return _ARCHITECTURES[self]

    @property
    def is_windows(self) -> bool:
        return self.os_name == "windows"

    @property
    def is_mac(self) -> bool:
        return self.os_name == "macos"

    @classmethod
    def parse(cls, value: "Platform | str") -> "Platform":
        """Accept a platform or one of its identifiers / common aliases."""
        if isinstance(value, Platform):
            return value
        if not isinstance(value, str):
            raise UnsupportedPlatform(f"Unknown platform: {value!r}")
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            pass
        platform = _ALIASES.get(normalized)
        if platform is None:
            raise UnsupportedPlatform(f"Unknown platform: {value!r}")
        return platform

    @classmethod
    def current(cls) -> "Platform":
        """Return the platform of the running interpreter's host."""
        return cls.for_host(sys.platform, _host.machine())

    @classmethod
    def for_host(cls, sys_platform: str, machine: str) -> "Platform":
        machine = machine.lower()
        if machine in ("x86_64", "amd64", "x64"):
            arch = "x64"
        elif machine in ("aarch64", "arm64"):
            arch = "arm64"
        elif machine in ("i386", "i686", "x86"):
            arch = "x86"
        else:
            raise UnsupportedPlatform(f"Unsupported architecture: {machine!r}")

        if sys_platform.startswith("win"):
            os_name = "windows"
        elif sys_platform == "darwin":
            os_name = "macos"
        elif sys_platform.startswith("linux"):
            os_name = "linux"
        else:
            raise UnsupportedPlatform(f"Unsupported operating system: {sys_platform!r}")

        for platform, (candidate_os, candidate_arch) in _PAIRS.items():
            if candidate_os == os_name and candidate_arch == arch:
                return platform
        raise UnsupportedPlatform(f"Unsupported platform: {os_name}-{arch}")


_PAIRS: dict[Platform, tuple[str, str]] = {
    Platform.WIN32: ("windows", "x86"),
    Platform.WIN64: ("windows", "x64"),
    Platform.MAC64: ("macos", "x64"),
    Platform.MAC_ARM64: ("macos", "arm64"),
    Platform.LINUX32: ("linux", "x86"),
    Platform.LINUX64: ("linux", "x64"),
    Platform.LINUX_ARM64: ("linux", "arm64"),
}
_OS_NAMES = {platform: pair[0] for platform, pair in _PAIRS.items()}
_ARCHITECTURES = {platform: pair[1] for platform, pair in _PAIRS.items()}

_OS_ALIASES = {
    "windows": ("win", "windows"),
    "macos": ("mac", "macos", "osx", "darwin"),
    "linux": ("linux",),
}
_ARCH_ALIASES = {
    "x86": ("x86", "x32", "i386", "i686", "32"),
    "x64": ("x64", "x86_64", "amd64", "64"),
    "arm64": ("arm64", "aarch64"),
}


def _build_aliases() -> dict[str, Platform]:
    aliases: dict[str, Platform] = {}
    for platform, (os_name, arch) in _PAIRS.items():
        for os_alias in _OS_ALIASES[os_name]:
            for arch_alias in _ARCH_ALIASES[arch]:
                aliases[f"{os_alias}_{arch_alias}"] = platform
                aliases[f"{os_alias}{arch_alias}"] = platform
    return aliases


_ALIASES = _build_aliases()

"""Provisioner configuration.

Configuration is read once from ``config.toml`` (``[provisioner]`` table)
and the environment, then passed around as an immutable value:

    [provisioner]
    default_endpoint = "https://example.com/jvms"
    supported_version_range = "1.8*"
    default_vendor = "adopt"
    allow_non_default_endpoint = false
    network_timeout = 5.0
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import toml  # type: ignore[import-untyped]

from .errors import ConfigurationError, InvalidVersionFormat
from .home import HOME_ENV_VAR, get_config_path, get_provisioner_home
from .models import ANY_VENDOR, Vendor
from .version import VersionSpec

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_TIMEOUT = 5.0

ENV_ENDPOINT = "JVM_PROVISIONER_ENDPOINT"
ENV_VENDOR = "JVM_PROVISIONER_VENDOR"
ENV_VERSION_RANGE = "JVM_PROVISIONER_VERSION_RANGE"
ENV_TIMEOUT = "JVM_PROVISIONER_TIMEOUT"
ENV_ALLOW_NON_DEFAULT = "JVM_PROVISIONER_ALLOW_NON_DEFAULT_ENDPOINT"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ProvisionerConfig:
    """Settings consumed by the provider; never mutated by the core."""

    default_endpoint: Optional[str] = None
    supported_version_range: VersionSpec = field(default_factory=VersionSpec.any)
    default_vendor: Vendor = ANY_VENDOR
    allow_non_default_endpoint: bool = False
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    home: Path = field(default_factory=get_provisioner_home)

    def with_overrides(self, **changes: Any) -> "ProvisionerConfig":
        return replace(self, **changes)


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_timeout(value: Any, name: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return timeout


def _parse_range(value: Any, name: str) -> VersionSpec:
    try:
        return VersionSpec.parse(value)
    except InvalidVersionFormat as exc:
        raise ConfigurationError(f"{name}: {exc}") from exc


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data: dict[str, Any] = toml.load(path)
    except (toml.TomlDecodeError, OSError) as exc:
        raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
    section = data.get("provisioner", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[provisioner] in {path} must be a table")
    return section


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ProvisionerConfig:
    """Build a ProvisionerConfig from the TOML file, then the environment.

    Args:
        path: Config file; defaults to ``get_config_path()``
        environ: Environment mapping; defaults to ``os.environ``

    Raises:
        ConfigurationError: If any value is invalid
    """
    environ = os.environ if environ is None else environ
    config_path = path or get_config_path()
    section = _read_file(config_path)
    logger.debug("Loaded configuration from %s (%d keys)", config_path, len(section))

    values: dict[str, Any] = {}
    if "default_endpoint" in section:
        values["default_endpoint"] = str(section["default_endpoint"]) or None
    if "supported_version_range" in section:
        values["supported_version_range"] = _parse_range(
            section["supported_version_range"], "supported_version_range"
        )
    if "default_vendor" in section:
        values["default_vendor"] = Vendor.parse(section["default_vendor"])
    if "allow_non_default_endpoint" in section:
        values["allow_non_default_endpoint"] = _parse_bool(
            section["allow_non_default_endpoint"], "allow_non_default_endpoint"
        )
    if "network_timeout" in section:
        values["network_timeout"] = _parse_timeout(section["network_timeout"], "network_timeout")
    if "home" in section:
        values["home"] = Path(str(section["home"])).expanduser()

    if environ.get(ENV_ENDPOINT):
        values["default_endpoint"] = environ[ENV_ENDPOINT]
    if environ.get(ENV_VERSION_RANGE):
        values["supported_version_range"] = _parse_range(environ[ENV_VERSION_RANGE], ENV_VERSION_RANGE)
    if environ.get(ENV_VENDOR):
        values["default_vendor"] = Vendor.parse(environ[ENV_VENDOR])
    if ENV_ALLOW_NON_DEFAULT in environ:
        values["allow_non_default_endpoint"] = _parse_bool(environ[ENV_ALLOW_NON_DEFAULT], ENV_ALLOW_NON_DEFAULT)
    if environ.get(ENV_TIMEOUT):
        values["network_timeout"] = _parse_timeout(environ[ENV_TIMEOUT], ENV_TIMEOUT)

    # The home env var wins over the file, like every other setting.
    if environ.get(HOME_ENV_VAR):
        values["home"] = Path(environ[HOME_ENV_VAR]).expanduser()

    return ProvisionerConfig(**values)

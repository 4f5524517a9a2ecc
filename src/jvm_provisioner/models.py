"""Runtime data models shared by the registry, manifest client and provider.

- Vendor / ANY_VENDOR: case-insensitive vendor names and the wildcard sentinel
- RuntimeKey: (version, vendor, platform) identity triple
- RemoteRuntimeDescriptor: an installable runtime advertised by a manifest
- LocalRuntime: an installed runtime tracked by the registry
- ProvisionRequest: one resolution call's input
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .platforms import Platform
from .version import Version, VersionSpec


class Vendor:
    """A runtime vendor name, compared case-insensitively."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Vendor name must be a non-empty string, got {name!r}")
        self.name = name.strip()

    @classmethod
    def parse(cls, value: "Vendor | str | None") -> "Vendor":
        """Return a Vendor; ``None``, ``""`` and ``"*"`` map to ANY_VENDOR."""
        if isinstance(value, Vendor):
            return value
        if value is None or (isinstance(value, str) and value.strip() in ("", "*")):
            return ANY_VENDOR
        if isinstance(value, str) and value.strip().lower() == "any":
            return ANY_VENDOR
        return cls(value)

    @property
    def is_any(self) -> bool:
        return self.name == "*"

    def matches(self, other: "Vendor") -> bool:
        """True if either side is the wildcard or both names are equal."""
        return self.is_any or other.is_any or self == other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vendor):
            return NotImplemented
        return self.name.lower() == other.name.lower()

    def __hash__(self) -> int:
        return hash(self.name.lower())

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Vendor({self.name!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(
            cls.parse,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


ANY_VENDOR = Vendor("*")


@dataclass(frozen=True)
class RuntimeKey:
    """Identity of a runtime: unique per registry, one install in flight at a time."""

    version: Version
    vendor: Vendor
    platform: Platform

    @classmethod
    def of(cls, version: Version | str, vendor: Vendor | str, platform: Platform | str) -> "RuntimeKey":
        return cls(Version.parse(version), Vendor.parse(vendor), Platform.parse(platform))

    @property
    def directory_name(self) -> str:
        vendor = "".join(c if c.isalnum() or c in "._-" else "_" for c in self.vendor.name.lower())
        return f"{vendor}-{self.version}-{self.platform.value}"

    def __str__(self) -> str:
        return f"{self.vendor}-{self.version}-{self.platform.value}"


def _parse_platform(value: Any) -> Platform:
    return Platform.parse(value)


class RemoteRuntimeDescriptor(BaseModel):
    """An installable runtime listed by a remote manifest.

    Accepts both the snake_case field names and the manifest wire names
    (``os``, ``href``, ``archiveType``). Unknown fields are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: Version
    vendor: Vendor
    platform: Platform = Field(validation_alias=AliasChoices("platform", "os"))
    url: str = Field(validation_alias=AliasChoices("url", "href"), min_length=1)
    sha256: Optional[str] = Field(default=None, description="Expected SHA-256 of the archive")
    archive_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("archive_type", "archiveType"),
        description="zip, tar.gz, ...; guessed from the URL when missing",
    )

    @field_validator("platform", mode="before")
    @classmethod
    def _validate_platform(cls, v: Any) -> Platform:
        return _parse_platform(v)

    @property
    def key(self) -> RuntimeKey:
        return RuntimeKey(self.version, self.vendor, self.platform)


class LocalRuntime(BaseModel):
    """A runtime installed on this machine.

    Attributes:
        version: Runtime version
        vendor: Concrete vendor (never ANY_VENDOR)
        platform: Platform the runtime was built for
        java_home: Installation directory; never changed after creation
        active: Default runtime for new launches on this platform
        managed: Installed and owned by the provisioner (eligible for cleanup/update)
        installed_at: When the entry was registered (UTC)
    """

    model_config = ConfigDict(frozen=True)

    version: Version
    vendor: Vendor
    platform: Platform
    java_home: Path
    active: bool = False
    managed: bool = False
    installed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("platform", mode="before")
    @classmethod
    def _validate_platform(cls, v: Any) -> Platform:
        return _parse_platform(v)

    @field_validator("vendor")
    @classmethod
    def _validate_vendor(cls, v: Vendor) -> Vendor:
        if v.is_any:
            raise ValueError("An installed runtime must have a concrete vendor")
        return v

    @property
    def key(self) -> RuntimeKey:
        return RuntimeKey(self.version, self.vendor, self.platform)

    def with_active(self, active: bool) -> "LocalRuntime":
        if self.active == active:
            return self
        return self.model_copy(update={"active": active})


@dataclass(frozen=True)
class ProvisionRequest:
    """Input of a single resolution.

    ``allow_auto_download`` opts into an update check: the manifest is
    consulted even when a local runtime already satisfies the request, and a
    strictly newer remote runtime is offered for download.
    """

    version_spec: VersionSpec
    vendor: Vendor = ANY_VENDOR
    platform: Platform = field(default_factory=Platform.current)
    endpoint: Optional[str] = None
    allow_auto_download: bool = False

    @classmethod
    def of(
        cls,
        version: str | VersionSpec,
        *,
        vendor: Vendor | str | None = None,
        platform: Platform | str | None = None,
        endpoint: Optional[str] = None,
        allow_auto_download: bool = False,
    ) -> "ProvisionRequest":
        spec = version if isinstance(version, VersionSpec) else VersionSpec.parse(version)
        return cls(
            version_spec=spec,
            vendor=Vendor.parse(vendor),
            platform=Platform.parse(platform) if platform is not None else Platform.current(),
            endpoint=endpoint,
            allow_auto_download=allow_auto_download,
        )

    def describe(self) -> str:
        return f"version {self.version_spec} from vendor {self.vendor} on {self.platform.value}"

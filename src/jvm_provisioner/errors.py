"""Exception hierarchy for runtime provisioning."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RemoteRuntimeDescriptor, RuntimeKey


class ProvisioningError(Exception):
    """Base exception for provisioning errors."""
    pass


class InvalidVersionFormat(ProvisioningError, ValueError):
    """A version or version constraint could not be parsed."""

    def __init__(self, text: str, reason: str | None = None):
        self.text = text
        message = f"Invalid version format: {text!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class UnsupportedPlatform(ProvisioningError, ValueError):
    """The platform name (or the host) is not one of the known platforms."""


class ConfigurationError(ProvisioningError):
    """Configuration file or environment contains an invalid value."""


class NoMatchingRuntime(ProvisioningError):
    """Neither a local nor a remote runtime satisfies the request."""

    def __init__(self, request_summary: str):
        self.request_summary = request_summary
        super().__init__(f"No runtime found matching {request_summary}")


class UserDeclined(ProvisioningError):
    """The user refused to download or update a runtime."""

    def __init__(self, candidate: "RemoteRuntimeDescriptor"):
        self.candidate = candidate
        super().__init__(
            f"Download of {candidate.vendor} {candidate.version} ({candidate.platform.value}) "
            f"was declined"
        )


class InstallFailed(ProvisioningError):
    """Download, verification or promotion of a runtime failed.

    Every waiter of the same install receives the same instance.
    """

    def __init__(self, key: "RuntimeKey", message: str, cause: BaseException | None = None):
        self.key = key
        self.cause = cause
        super().__init__(f"Installing {key} failed: {message}")


class InstallCancelled(InstallFailed):
    """All waiters abandoned an install before it finished."""

    def __init__(self, key: "RuntimeKey"):
        super().__init__(key, "cancelled")


class InstallerError(ProvisioningError):
    """Raised by an installer when an archive cannot be verified or unpacked."""


class RegistryError(ProvisioningError):
    """Base exception for registry misuse and storage failures."""


class DuplicateEntry(RegistryError):
    """A runtime with the same identity triple is already registered."""

    def __init__(self, key: "RuntimeKey"):
        self.key = key
        super().__init__(f"Runtime {key} is already registered")


class NotFound(RegistryError):
    """No runtime with the given identity triple is registered."""

    def __init__(self, key: "RuntimeKey"):
        self.key = key
        super().__init__(f"Runtime {key} is not registered")


class RegistryPersistenceError(RegistryError):
    """The registry could not be written to disk; the mutation was not applied."""

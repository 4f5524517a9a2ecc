"""Provision Java runtimes for application launchers.

Typical use::

    from jvm_provisioner import CallbackUI, ProvisionRequest, RuntimeProvider, load_config

    with RuntimeProvider.from_config(load_config()) as provider:
        runtime = provider.resolve(ProvisionRequest.of("1.8*"), CallbackUI.accept_all())
        print(runtime.java_home)
"""

__version__ = "0.4.0"

from .config import ProvisionerConfig, load_config
from .download import DownloadCoordinator, InstallHandle
from .errors import (
    ConfigurationError,
    DuplicateEntry,
    InstallCancelled,
    InstallerError,
    InstallFailed,
    InvalidVersionFormat,
    NoMatchingRuntime,
    NotFound,
    ProvisioningError,
    RegistryError,
    RegistryPersistenceError,
    UnsupportedPlatform,
    UserDeclined,
)
from .installer import ArchiveInstaller, RuntimeInstaller
from .manifest import ManifestClient
from .matcher import DownloadRemote, Matcher, NoMatch, Selection, UseLocal
from .models import ANY_VENDOR, LocalRuntime, ProvisionRequest, RemoteRuntimeDescriptor, RuntimeKey, Vendor
from .platforms import Platform
from .provider import CallbackUI, ProvisioningUI, ResolutionHandle, RuntimeProvider
from .registry import RuntimeRegistry
from .version import SpecKind, Version, VersionSpec

__all__ = [
    "ANY_VENDOR",
    "ArchiveInstaller",
    "CallbackUI",
    "ConfigurationError",
    "DownloadCoordinator",
    "DownloadRemote",
    "DuplicateEntry",
    "InstallCancelled",
    "InstallFailed",
    "InstallHandle",
    "InstallerError",
    "InvalidVersionFormat",
    "LocalRuntime",
    "ManifestClient",
    "Matcher",
    "NoMatch",
    "NoMatchingRuntime",
    "NotFound",
    "Platform",
    "ProvisionRequest",
    "ProvisionerConfig",
    "ProvisioningError",
    "ProvisioningUI",
    "RegistryError",
    "RegistryPersistenceError",
    "RemoteRuntimeDescriptor",
    "ResolutionHandle",
    "RuntimeInstaller",
    "RuntimeKey",
    "RuntimeProvider",
    "RuntimeRegistry",
    "Selection",
    "SpecKind",
    "UnsupportedPlatform",
    "UseLocal",
    "UserDeclined",
    "Vendor",
    "Version",
    "VersionSpec",
    "load_config",
    "__version__",
]

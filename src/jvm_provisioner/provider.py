"""Runtime resolution: the entry point used by application launchers.

``RuntimeProvider.resolve()`` turns a ProvisionRequest into an installed
runtime. Local runtimes are preferred and returned without any network
traffic; the manifest is consulted only when nothing local matches or when
the request asks for an update check. Downloads are always confirmed through
the caller's ProvisioningUI first.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import httpx

from .config import ProvisionerConfig
from .download import DownloadCoordinator, InstallHandle, ProgressCallback
from .errors import InstallCancelled, InstallFailed, NoMatchingRuntime, UserDeclined
from .home import runtimes_root
from .installer import RuntimeInstaller
from .maintenance import prune_staging
from .manifest import ManifestClient
from .matcher import DownloadRemote, Matcher, NoMatch, UseLocal
from .models import LocalRuntime, ProvisionRequest, RemoteRuntimeDescriptor
from .net import create_http_client
from .registry import RuntimeRegistry

logger = logging.getLogger(__name__)


class ProvisioningUI(Protocol):
    """User interaction needed during resolution (dialogs, prompts, ...)."""

    def confirm_download(self, candidate: RemoteRuntimeDescriptor) -> bool:
        ...

    def confirm_update(self, current: LocalRuntime, candidate: RemoteRuntimeDescriptor) -> bool:
        ...

    def report_error(self, message: str, cause: Optional[BaseException]) -> None:
        ...


@dataclass
class CallbackUI:
    """ProvisioningUI built from plain callables; a missing confirmation declines."""

    on_confirm_download: Optional[Callable[[RemoteRuntimeDescriptor], bool]] = None
    on_confirm_update: Optional[Callable[[LocalRuntime, RemoteRuntimeDescriptor], bool]] = None
    on_error: Optional[Callable[[str, Optional[BaseException]], None]] = None

    @classmethod
    def accept_all(cls) -> "CallbackUI":
        return cls(lambda candidate: True, lambda current, candidate: True)

    def confirm_download(self, candidate: RemoteRuntimeDescriptor) -> bool:
        return self.on_confirm_download is not None and self.on_confirm_download(candidate)

    def confirm_update(self, current: LocalRuntime, candidate: RemoteRuntimeDescriptor) -> bool:
        return self.on_confirm_update is not None and self.on_confirm_update(current, candidate)

    def report_error(self, message: str, cause: Optional[BaseException]) -> None:
        if self.on_error is not None:
            self.on_error(message, cause)


class _Cancellation:
    """Links an asynchronous resolution to the install it ends up waiting for."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requested = False
        self._install: Optional[InstallHandle] = None

    def attach(self, handle: InstallHandle) -> None:
        with self._lock:
            self._install = handle
            requested = self._requested
        if requested:
            handle.cancel()

    def cancel(self) -> bool:
        with self._lock:
            self._requested = True
            handle = self._install
        if handle is not None:
            return handle.cancel()
        return True


class ResolutionHandle:
    """Pending result of ``RuntimeProvider.resolve_async``."""

    def __init__(self, future: Future, cancellation: _Cancellation):
        self._future = future
        self._cancellation = cancellation

    def result(self, timeout: Optional[float] = None) -> LocalRuntime:
        return self._future.result(timeout)

    def done(self) -> bool:
        return self._future.done()

    def add_done_callback(self, fn: Callable[["ResolutionHandle"], None]) -> None:
        self._future.add_done_callback(lambda _future: fn(self))

    def cancel(self) -> bool:
        """Stop waiting. A shared install continues for its other waiters."""
        if self._future.cancel():
            return True
        if self._future.done():
            return False
        return self._cancellation.cancel()


class RuntimeProvider:
    """Resolve runtime requests against the registry and a remote manifest."""

    def __init__(
        self,
        config: ProvisionerConfig,
        registry: RuntimeRegistry,
        manifest_client: ManifestClient,
        coordinator: DownloadCoordinator,
        matcher: Optional[Matcher] = None,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
    ):
        self.config = config
        self.registry = registry
        self.manifest_client = manifest_client
        self.coordinator = coordinator
        self.matcher = matcher or Matcher(config.supported_version_range)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="jvm-resolve"
        )
        self._owns_executor = executor is None
        self._owned: list[Any] = []

    @classmethod
    def from_config(
        cls,
        config: ProvisionerConfig,
        *,
        client: Optional[httpx.Client] = None,
        installer: Optional[RuntimeInstaller] = None,
        executor: Optional[Executor] = None,
        download_executor: Optional[Executor] = None,
    ) -> "RuntimeProvider":
        """Build the default component graph rooted at ``config.home``."""
        registry = RuntimeRegistry.open(config.home)
        root = runtimes_root(config.home)
        with registry.lock():
            prune_staging(root)

        http_client = client or create_http_client(config.network_timeout)
        manifest_client = ManifestClient(http_client, timeout=config.network_timeout)
        coordinator = DownloadCoordinator(
            registry,
            root,
            installer=installer,
            client=http_client,
            executor=download_executor,
            timeout=config.network_timeout,
        )
        provider = cls(config, registry, manifest_client, coordinator, executor=executor)
        provider._owned.extend([coordinator, manifest_client])
        if client is None:
            provider._owned.append(http_client)
        return provider

    # ── Resolution ────────────────────────────────────────────────

    def resolve(
        self,
        request: ProvisionRequest,
        ui: ProvisioningUI,
        progress: Optional[ProgressCallback] = None,
    ) -> LocalRuntime:
        """Return an installed runtime satisfying *request*.

        Raises:
            NoMatchingRuntime: Nothing local or remote satisfies the request
            UserDeclined: The user refused the download or update
            InstallFailed: The download or installation failed
        """
        return self._resolve(request, ui, progress, _Cancellation())

    def resolve_async(
        self,
        request: ProvisionRequest,
        ui: ProvisioningUI,
        progress: Optional[ProgressCallback] = None,
    ) -> ResolutionHandle:
        cancellation = _Cancellation()
        future = self._executor.submit(self._resolve, request, ui, progress, cancellation)
        return ResolutionHandle(future, cancellation)

    def effective_request(self, request: ProvisionRequest) -> ProvisionRequest:
        """Fill the vendor from the configured default when the request names none."""
        if request.vendor.is_any and not self.config.default_vendor.is_any:
            return ProvisionRequest(
                version_spec=request.version_spec,
                vendor=self.config.default_vendor,
                platform=request.platform,
                endpoint=request.endpoint,
                allow_auto_download=request.allow_auto_download,
            )
        return request

    def effective_endpoint(self, requested: Optional[str]) -> Optional[str]:
        """Apply the endpoint policy; ``None`` means resolution stays local."""
        default = self.config.default_endpoint
        if requested is None or requested == default:
            return default
        if self.config.allow_non_default_endpoint:
            return requested
        logger.warning(
            "Endpoint %s ignored because non-default endpoints are disabled; using %s",
            requested,
            default or "no endpoint",
        )
        return default

    def _resolve(
        self,
        request: ProvisionRequest,
        ui: ProvisioningUI,
        progress: Optional[ProgressCallback],
        cancellation: _Cancellation,
    ) -> LocalRuntime:
        request = self.effective_request(request)
        logger.debug("Resolving %s", request.describe())

        self.registry.reload()
        local = self.registry.find_all(
            lambda runtime: runtime.platform == request.platform,
            preferred_vendor=request.vendor,
        )
        if not request.allow_auto_download:
            best_local = self.matcher.best(request, local)
            if best_local is not None:
                logger.debug("Using local runtime %s", best_local.key)
                return best_local

        endpoint = self.effective_endpoint(request.endpoint)
        remote = self.manifest_client.fetch(endpoint) if endpoint else []
        selection = self.matcher.select(request, local, remote)

        if isinstance(selection, UseLocal):
            logger.debug("Using local runtime %s", selection.runtime.key)
            return selection.runtime
        if isinstance(selection, NoMatch):
            raise self._fail(ui, NoMatchingRuntime(request.describe()))

        assert isinstance(selection, DownloadRemote)
        candidate = selection.descriptor
        if selection.supersedes is not None:
            accepted = self._confirm(ui.confirm_update, selection.supersedes, candidate)
        else:
            accepted = self._confirm(ui.confirm_download, candidate)
        if not accepted:
            logger.info("Download of %s declined", candidate.key)
            raise self._fail(ui, UserDeclined(candidate))

        handle = self.coordinator.submit(candidate, progress)
        cancellation.attach(handle)
        try:
            return handle.result()
        except InstallCancelled:
            raise
        except InstallFailed as exc:
            raise self._fail(ui, exc)

    def _confirm(self, confirm: Callable[..., bool], *args: Any) -> bool:
        try:
            return bool(confirm(*args))
        except Exception:
            logger.exception("Confirmation callback failed; treating it as declined")
            return False

    def _fail(self, ui: ProvisioningUI, error: Exception) -> Exception:
        try:
            ui.report_error(str(error), error)
        except Exception:
            logger.exception("Error callback failed")
        return error

    # ── Lifecycle ─────────────────────────────────────────────────

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        for resource in self._owned:
            resource.close()
        self._owned.clear()

    def __enter__(self) -> "RuntimeProvider":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

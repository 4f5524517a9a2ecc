"""Download-and-install coordination.

Installs are keyed by runtime identity: concurrent requests for the same
(version, vendor, platform) share one transfer and receive the same result.
Each install streams the archive into a ``.staging-*`` directory under the
runtimes root, verifies and unpacks it there, promotes it with a rename and
registers it. Failures clean up everything they created.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx

from .config import DEFAULT_NETWORK_TIMEOUT
from .errors import DuplicateEntry, InstallCancelled, InstallFailed
from .installer import ArchiveInstaller, RuntimeInstaller, find_java_home
from .maintenance import STAGING_PREFIX
from .models import LocalRuntime, RemoteRuntimeDescriptor, RuntimeKey
from .net import create_http_client
from .registry import RuntimeRegistry

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, Optional[int]], None]


class InstallHandle:
    """One caller's view of an install.

    Cancelling a handle detaches only this caller; the transfer keeps running
    for the others and is aborted once nobody waits for it anymore.
    """

    def __init__(
        self,
        key: RuntimeKey,
        future: Future,
        abandon: Optional[Callable[[Future], bool]] = None,
    ):
        self.key = key
        self._future = future
        self._abandon = abandon

    def result(self, timeout: Optional[float] = None) -> LocalRuntime:
        """Block until the install finishes.

        Raises:
            InstallFailed: If the install failed (shared by all waiters)
            InstallCancelled: If this handle was cancelled
            TimeoutError: If *timeout* elapsed first
        """
        try:
            return self._future.result(timeout)
        except CancelledError:
            raise InstallCancelled(self.key) from None

    def cancel(self) -> bool:
        if self._abandon is None or self._future.done():
            return False
        return self._abandon(self._future)

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def add_done_callback(self, fn: Callable[["InstallHandle"], None]) -> None:
        self._future.add_done_callback(lambda _future: fn(self))


@dataclass(eq=False)
class _Slot:
    """An in-flight install and the callers waiting for it."""

    descriptor: RemoteRuntimeDescriptor
    waiters: dict[Future, Optional[ProgressCallback]] = field(default_factory=dict)
    aborted: threading.Event = field(default_factory=threading.Event)

    @property
    def key(self) -> RuntimeKey:
        return self.descriptor.key


class DownloadCoordinator:
    """Deduplicated, cancellable runtime installs."""

    def __init__(
        self,
        registry: RuntimeRegistry,
        runtimes_root: Path,
        installer: Optional[RuntimeInstaller] = None,
        client: Optional[httpx.Client] = None,
        executor: Optional[Executor] = None,
        timeout: float = DEFAULT_NETWORK_TIMEOUT,
        max_workers: int = 2,
    ):
        """
        Args:
            registry: Registry that receives installed runtimes
            runtimes_root: Directory holding installed runtimes and staging areas
            installer: Archive verifier/extractor (defaults to ArchiveInstaller)
            client: HTTP client for archive downloads (created lazily if None)
            executor: Where transfers run; owned and shut down by close() when None
            timeout: Network timeout in seconds for the created client
            max_workers: Size of the owned transfer pool
        """
        self.registry = registry
        self.runtimes_root = runtimes_root
        self.installer: RuntimeInstaller = installer or ArchiveInstaller()
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="jvm-download"
        )
        self._owns_executor = executor is None
        self._slots: dict[RuntimeKey, _Slot] = {}
        self._lock = threading.RLock()
        self._closed = False

    def _get_http_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = create_http_client(self.timeout)
            return self._client

    # ── Public API ────────────────────────────────────────────────

    def submit(
        self,
        descriptor: RemoteRuntimeDescriptor,
        progress: Optional[ProgressCallback] = None,
    ) -> InstallHandle:
        """Start (or join) the install of *descriptor* without blocking."""
        key = descriptor.key
        waiter: Future = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("DownloadCoordinator is closed")
            slot = self._slots.get(key)
            # A slot is released only after its runtime is registered
            if slot is None and self.registry.contains(key):
                existing = self.registry.get(key)
                logger.debug("Runtime %s already installed at %s", key, existing.java_home)
                waiter.set_result(existing)
                return InstallHandle(key, waiter)
            created = slot is None
            if slot is None:
                slot = _Slot(descriptor)
                self._slots[key] = slot
            elif slot.aborted.is_set():
                # The abandoned transfer has not finished yet; take it over
                logger.debug("Reviving aborted install of %s", key)
                slot.aborted.clear()
            slot.waiters[waiter] = progress

        handle = InstallHandle(key, waiter, lambda future: self._abandon(slot, future))
        if created:
            logger.info("Installing %s from %s", key, descriptor.url)
            try:
                self._executor.submit(self._run, slot)
            except RuntimeError as exc:
                self._finish(slot, None, InstallFailed(key, "cannot schedule download", exc))
        else:
            logger.debug("Joining in-flight install of %s", key)
        return handle

    def install(
        self,
        descriptor: RemoteRuntimeDescriptor,
        progress: Optional[ProgressCallback] = None,
    ) -> LocalRuntime:
        """Install *descriptor* and block until it is registered."""
        return self.submit(descriptor, progress).result()

    def in_flight(self) -> list[RuntimeKey]:
        with self._lock:
            return [key for key, slot in self._slots.items() if not slot.aborted.is_set()]

    def close(self) -> None:
        with self._lock:
            self._closed = True
            slots = list(self._slots.values())
        for slot in slots:
            slot.aborted.set()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "DownloadCoordinator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Waiters ───────────────────────────────────────────────────

    def _abandon(self, slot: _Slot, waiter: Future) -> bool:
        with self._lock:
            if waiter not in slot.waiters:
                return False
            del slot.waiters[waiter]
            waiter.cancel()
            if not slot.waiters:
                logger.info("Last waiter left; aborting install of %s", slot.key)
                slot.aborted.set()
            return True

    def _finish(
        self,
        slot: _Slot,
        runtime: Optional[LocalRuntime],
        error: Optional[InstallFailed],
    ) -> None:
        waiters: list[Future] = []
        with self._lock:
            # Waiters that revived an aborted slot after the transfer gave up
            restart = (
                isinstance(error, InstallCancelled)
                and bool(slot.waiters)
                and not slot.aborted.is_set()
                and not self._closed
            )
            if not restart:
                if self._slots.get(slot.key) is slot:
                    del self._slots[slot.key]
                waiters = list(slot.waiters)
                slot.waiters.clear()
        if restart:
            logger.info("Restarting install of %s for new waiters", slot.key)
            try:
                self._executor.submit(self._run, slot)
            except RuntimeError as exc:
                self._finish(slot, None, InstallFailed(slot.key, "cannot schedule download", exc))
            return
        for waiter in waiters:
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(runtime)

    def _report(self, slot: _Slot, downloaded: int, total: Optional[int]) -> None:
        with self._lock:
            callbacks = [cb for cb in slot.waiters.values() if cb is not None]
        for callback in callbacks:
            try:
                callback(downloaded, total)
            except Exception:
                logger.exception("Progress callback failed for %s", slot.key)

    # ── Transfer ──────────────────────────────────────────────────

    def _run(self, slot: _Slot) -> None:
        key = slot.key
        try:
            runtime = self._perform(slot)
        except InstallCancelled as exc:
            logger.info("Install of %s stopped: no waiters left", key)
            self._finish(slot, None, exc)
        except InstallFailed as exc:
            logger.warning("%s", exc)
            self._finish(slot, None, exc)
        except Exception as exc:
            logger.warning("Installing %s failed: %s", key, exc)
            self._finish(slot, None, InstallFailed(key, str(exc) or type(exc).__name__, exc))
        else:
            logger.info("Installed %s at %s", key, runtime.java_home)
            self._finish(slot, runtime, None)

    def _perform(self, slot: _Slot) -> LocalRuntime:
        descriptor = slot.descriptor
        key = slot.key
        self.runtimes_root.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.runtimes_root))
        try:
            archive = staging / _archive_name(descriptor)
            self._download(slot, archive)
            self._check_aborted(slot)
            self.installer.verify(archive, descriptor)
            content = self.installer.extract(archive, staging / "content", descriptor)
            self._check_aborted(slot)
            return self._promote(slot, content)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _download(self, slot: _Slot, archive: Path) -> None:
        descriptor = slot.descriptor
        with self._get_http_client().stream("GET", descriptor.url, follow_redirects=True) as response:
            if not response.is_success:
                raise InstallFailed(slot.key, f"HTTP {response.status_code} from {descriptor.url}")
            length = response.headers.get("content-length", "")
            total = int(length) if length.isdigit() else None
            downloaded = 0
            self._report(slot, downloaded, total)
            with open(archive, "wb") as handle:
                for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                    self._check_aborted(slot)
                    handle.write(chunk)
                    downloaded += len(chunk)
                    self._report(slot, downloaded, total)
        logger.debug("Downloaded %d bytes for %s", downloaded, slot.key)

    def _promote(self, slot: _Slot, content: Path) -> LocalRuntime:
        """Move the unpacked runtime into place and register it."""
        key = slot.key
        final_dir = self.runtimes_root / key.directory_name
        with self.registry.lock():
            # Another process may have installed the same runtime meanwhile
            self.registry.reload()
            if self.registry.contains(key):
                return self.registry.get(key)
            if final_dir.exists():
                logger.warning("Removing unregistered runtime directory %s", final_dir)
                shutil.rmtree(final_dir)
            content.rename(final_dir)
            runtime = LocalRuntime(
                version=key.version,
                vendor=key.vendor,
                platform=key.platform,
                java_home=find_java_home(final_dir) or final_dir,
                active=False,
                managed=True,
            )
            try:
                return self.registry.insert(runtime)
            except DuplicateEntry:
                shutil.rmtree(final_dir, ignore_errors=True)
                return self.registry.get(key)
            except BaseException:
                shutil.rmtree(final_dir, ignore_errors=True)
                raise

    def _check_aborted(self, slot: _Slot) -> None:
        if slot.aborted.is_set():
            raise InstallCancelled(slot.key)


def _archive_name(descriptor: RemoteRuntimeDescriptor) -> str:
    name = Path(urlparse(descriptor.url).path).name
    return name or f"{descriptor.key.directory_name}.archive"

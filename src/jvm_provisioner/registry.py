"""Registry of installed runtimes with JSON persistence.

The registry is the single source of truth for what is installed. Readers
get immutable snapshots; every mutation is serialised by an in-process lock
plus a cross-process file lock, written to disk with an atomic replace, and
only then published in memory. A mutation that cannot be persisted raises
RegistryPersistenceError and leaves the registry unchanged.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, ContextManager, Iterable, Optional, Sequence, TypeVar

from filelock import FileLock, Timeout
from pydantic import ValidationError

from .errors import DuplicateEntry, NotFound, RegistryPersistenceError
from .home import registry_path
from .models import LocalRuntime, RuntimeKey, Vendor
from .platforms import Platform

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

T = TypeVar("T")
Snapshot = tuple[LocalRuntime, ...]
RegistryListener = Callable[[Snapshot], None]


class RuntimeRegistry:
    """Installed runtimes, unique by (version, vendor, platform)."""

    def __init__(self, storage_path: Optional[Path] = None, lock_timeout: float = 10.0):
        """
        Args:
            storage_path: JSON file backing the registry; ``None`` keeps it in memory only
            lock_timeout: Seconds to wait for the cross-process lock
        """
        self.storage_path = storage_path
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._listeners: list[RegistryListener] = []
        self._entries: Snapshot = ()
        self._process_lock: Optional[FileLock] = None
        if storage_path is not None:
            # One FileLock instance per registry so nested acquisitions are reentrant
            self._process_lock = FileLock(str(storage_path) + ".lock", timeout=lock_timeout)
            loaded = self._read_storage()
            self._entries = loaded if loaded is not None else ()

    @classmethod
    def open(cls, home: Path) -> "RuntimeRegistry":
        """Open (or create) the registry stored in a provisioner home."""
        return cls(registry_path(home))

    # ── Reads ─────────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        return self._entries

    def reload(self) -> Snapshot:
        """Re-read the backing file to pick up other processes' changes."""
        if self.storage_path is None:
            return self._entries
        with self._lock:
            loaded = self._read_storage()
            if loaded is not None:
                self._entries = loaded
            return self._entries

    def find_all(
        self,
        predicate: Optional[Callable[[LocalRuntime], bool]] = None,
        preferred_vendor: Optional[Vendor] = None,
    ) -> list[LocalRuntime]:
        """Return matching runtimes: preferred vendor first, then newest version first."""
        entries = [entry for entry in self._entries if predicate is None or predicate(entry)]
        entries.sort(key=lambda entry: entry.version, reverse=True)
        if preferred_vendor is not None and not preferred_vendor.is_any:
            entries.sort(key=lambda entry: entry.vendor != preferred_vendor)
        return entries

    def get(self, key: RuntimeKey) -> LocalRuntime:
        for entry in self._entries:
            if entry.key == key:
                return entry
        raise NotFound(key)

    def contains(self, key: RuntimeKey) -> bool:
        return any(entry.key == key for entry in self._entries)

    def active_for(self, platform: Platform) -> Optional[LocalRuntime]:
        for entry in self._entries:
            if entry.platform == platform and entry.active:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    # ── Mutations ─────────────────────────────────────────────────

    def insert(self, runtime: LocalRuntime) -> LocalRuntime:
        """Register a runtime.

        Raises:
            DuplicateEntry: If the identity triple is already registered
            RegistryPersistenceError: If the registry cannot be written
        """

        def mutation(entries: list[LocalRuntime]) -> LocalRuntime:
            if any(entry.key == runtime.key for entry in entries):
                raise DuplicateEntry(runtime.key)
            if runtime.active:
                _clear_active(entries, runtime.platform)
            entries.append(runtime)
            return runtime

        inserted = self._mutate(mutation)
        logger.info("Registered runtime %s at %s", runtime.key, runtime.java_home)
        return inserted

    def set_active(self, key: RuntimeKey) -> LocalRuntime:
        """Make *key* the only active runtime of its platform. Idempotent.

        Raises:
            NotFound: If *key* is not registered
        """

        def mutation(entries: list[LocalRuntime]) -> LocalRuntime:
            target = _index_of(entries, key)
            for index, entry in enumerate(entries):
                if entry.platform == key.platform:
                    entries[index] = entry.with_active(index == target)
            return entries[target]

        activated = self._mutate(mutation)
        logger.info("Runtime %s is now active for %s", key, key.platform.value)
        return activated

    def remove(self, key: RuntimeKey) -> LocalRuntime:
        """Unregister a runtime and return the removed entry.

        Raises:
            NotFound: If *key* is not registered
        """

        def mutation(entries: list[LocalRuntime]) -> LocalRuntime:
            return entries.pop(_index_of(entries, key))

        removed = self._mutate(mutation)
        logger.info("Removed runtime %s from registry", key)
        return removed

    def import_discovered(self, runtimes: Iterable[LocalRuntime]) -> int:
        """Register scanned installations that are not known yet.

        Runtimes whose identity or installation path is already registered
        are skipped. Returns the number of new entries.
        """
        candidates = list(runtimes)

        def mutation(entries: list[LocalRuntime]) -> int:
            known_keys = {entry.key for entry in entries}
            known_homes = {entry.java_home.resolve() for entry in entries}
            added = 0
            for runtime in candidates:
                if runtime.key in known_keys or runtime.java_home.resolve() in known_homes:
                    continue
                entries.append(runtime.with_active(False))
                known_keys.add(runtime.key)
                known_homes.add(runtime.java_home.resolve())
                added += 1
            return added

        if not candidates:
            return 0
        added = self._mutate(mutation)
        logger.info("Imported %d discovered runtime(s)", added)
        return added

    # ── Observers ─────────────────────────────────────────────────

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Call *listener* with the new snapshot after every committed mutation.

        Returns a function that removes the subscription.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, snapshot: Snapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Registry listener %r failed", listener)

    # ── Internal ──────────────────────────────────────────────────

    def lock(self) -> ContextManager[object]:
        """Hold the registry locks (in-process and cross-process) for a maintenance step."""
        return _combined(self._lock, self._file_lock())

    def _mutate(self, mutation: Callable[[list[LocalRuntime]], T]) -> T:
        with self._lock:
            with self._file_lock():
                on_disk = self._read_storage() if self.storage_path is not None else None
                entries = list(on_disk if on_disk is not None else self._entries)
                result = mutation(entries)
                self._write_storage(entries)
                self._entries = tuple(entries)
                snapshot = self._entries
        self._notify(snapshot)
        return result

    def _file_lock(self) -> ContextManager[object]:
        if self.storage_path is None or self._process_lock is None:
            return contextlib.nullcontext()
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        return _acquire(self._process_lock, self.storage_path)

    def _read_storage(self) -> Optional[Snapshot]:
        """Load entries from disk; None when the file is unreadable or corrupted."""
        assert self.storage_path is not None
        if not self.storage_path.exists():
            return ()
        try:
            with open(self.storage_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable registry %s: %s", self.storage_path, exc)
            return None

        raw_entries = data.get("runtimes", []) if isinstance(data, dict) else []
        if not isinstance(raw_entries, list):
            logger.warning("Ignoring malformed registry %s", self.storage_path)
            return None

        entries: list[LocalRuntime] = []
        seen: set[RuntimeKey] = set()
        for raw in raw_entries:
            try:
                runtime = LocalRuntime.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping invalid registry entry %r: %s", raw, exc)
                continue
            if runtime.key in seen:
                logger.warning("Skipping duplicate registry entry %s", runtime.key)
                continue
            seen.add(runtime.key)
            entries.append(runtime)
        return tuple(entries)

    def _write_storage(self, entries: Sequence[LocalRuntime]) -> None:
        if self.storage_path is None:
            return
        data = {
            "schema_version": SCHEMA_VERSION,
            "runtimes": [entry.model_dump(mode="json") for entry in entries],
        }
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            # Atomic write: temp file in the same directory, then rename
            fd, tmp_path = tempfile.mkstemp(
                dir=self.storage_path.parent,
                prefix=".registry-",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, self.storage_path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise RegistryPersistenceError(
                f"Cannot write registry {self.storage_path}: {exc}"
            ) from exc


def _index_of(entries: Sequence[LocalRuntime], key: RuntimeKey) -> int:
    for index, entry in enumerate(entries):
        if entry.key == key:
            return index
    raise NotFound(key)


def _clear_active(entries: list[LocalRuntime], platform: Platform) -> None:
    for index, entry in enumerate(entries):
        if entry.platform == platform and entry.active:
            entries[index] = entry.with_active(False)


@contextlib.contextmanager
def _acquire(lock: FileLock, storage_path: Path):
    try:
        lock.acquire()
    except Timeout as exc:
        raise RegistryPersistenceError(
            f"Cannot acquire lock on {storage_path}. Another process may be using it."
        ) from exc
    try:
        yield lock
    finally:
        lock.release()


@contextlib.contextmanager
def _combined(thread_lock: threading.RLock, file_lock: ContextManager[object]):
    with thread_lock:
        with file_lock:
            yield

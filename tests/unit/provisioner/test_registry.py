"""Tests for jvm_provisioner.registry: ordering, activation and persistence."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from jvm_provisioner.errors import DuplicateEntry, NotFound, RegistryPersistenceError
from jvm_provisioner.models import RuntimeKey, Vendor
from jvm_provisioner.platforms import Platform
from jvm_provisioner.registry import RuntimeRegistry


@pytest.fixture
def registry(home: Path) -> RuntimeRegistry:
    return RuntimeRegistry.open(home)


class TestQueries:
    def test_find_all_orders_newest_first(self, registry, local_runtime) -> None:
        for version in ("1.8.145", "11.0.1", "1.8.220"):
            registry.insert(local_runtime(version))
        versions = [str(r.version) for r in registry.find_all()]
        assert versions == ["11.0.1", "1.8.220", "1.8.145"]

    def test_preferred_vendor_first(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.2", vendor="oracle"))
        registry.insert(local_runtime("11.0.1", vendor="adopt"))
        registry.insert(local_runtime("1.8.145", vendor="adopt"))
        found = registry.find_all(preferred_vendor=Vendor("adopt"))
        assert [(str(r.vendor), str(r.version)) for r in found] == [
            ("adopt", "11.0.1"),
            ("adopt", "1.8.145"),
            ("oracle", "11.0.2"),
        ]

    def test_predicate(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.1", platform="linux64"))
        registry.insert(local_runtime("11.0.1", platform="win64"))
        found = registry.find_all(lambda r: r.platform is Platform.WIN64)
        assert [r.platform for r in found] == [Platform.WIN64]

    def test_get_missing(self, registry) -> None:
        with pytest.raises(NotFound):
            registry.get(RuntimeKey.of("11", "adopt", "linux64"))

    def test_snapshots_are_immutable(self, registry, local_runtime) -> None:
        before = registry.snapshot()
        registry.insert(local_runtime("11.0.1"))
        assert before == ()
        assert len(registry.snapshot()) == 1


class TestInsert:
    def test_duplicate_triple(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.1"))
        with pytest.raises(DuplicateEntry):
            registry.insert(local_runtime("11.0.1", vendor="ADOPT", java_home=Path("/elsewhere")))
        assert len(registry) == 1

    def test_same_version_other_vendor_is_distinct(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.1", vendor="adopt"))
        registry.insert(local_runtime("11.0.1", vendor="oracle"))
        assert len(registry) == 2

    def test_inserting_active_entry_clears_previous(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("1.8.145", active=True))
        registry.insert(local_runtime("11.0.1", active=True))
        active = [r for r in registry.snapshot() if r.active]
        assert [str(r.version) for r in active] == ["11.0.1"]


class TestSetActive:
    def test_exactly_one_active_per_platform(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("1.8.145"))
        registry.insert(local_runtime("11.0.1"))
        registry.insert(local_runtime("11.0.1", platform="win64", active=True))

        key = RuntimeKey.of("1.8.145", "adopt", "linux64")
        registry.set_active(key)
        registry.set_active(key)

        linux_active = [r for r in registry.snapshot() if r.platform is Platform.LINUX64 and r.active]
        assert [r.key for r in linux_active] == [key]
        assert registry.active_for(Platform.WIN64) is not None

    def test_switching_active(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("1.8.145"))
        registry.insert(local_runtime("11.0.1"))
        registry.set_active(RuntimeKey.of("1.8.145", "adopt", "linux64"))
        registry.set_active(RuntimeKey.of("11.0.1", "adopt", "linux64"))
        assert str(registry.active_for(Platform.LINUX64).version) == "11.0.1"
        assert sum(r.active for r in registry.snapshot()) == 1

    def test_missing(self, registry) -> None:
        with pytest.raises(NotFound):
            registry.set_active(RuntimeKey.of("11", "adopt", "linux64"))


class TestRemove:
    def test_remove_returns_entry(self, registry, local_runtime) -> None:
        runtime = registry.insert(local_runtime("11.0.1"))
        assert registry.remove(runtime.key) == runtime
        assert len(registry) == 0

    def test_remove_missing(self, registry) -> None:
        with pytest.raises(NotFound):
            registry.remove(RuntimeKey.of("11", "adopt", "linux64"))


class TestPersistence:
    def test_survives_reopen(self, home, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.1", managed=True))
        registry.set_active(RuntimeKey.of("11.0.1", "adopt", "linux64"))

        reopened = RuntimeRegistry.open(home)
        (runtime,) = reopened.snapshot()
        assert runtime.active and runtime.managed
        assert runtime.java_home == Path("/opt/java/adopt-11.0.1-linux64")

    def test_file_format(self, home, registry, local_runtime) -> None:
        registry.insert(local_runtime("1.8.0_252"))
        data = json.loads((home / "registry.json").read_text())
        assert data["schema_version"] == 1
        assert data["runtimes"][0]["version"] == "1.8.0_252"
        assert data["runtimes"][0]["platform"] == "linux64"

    def test_mutation_sees_other_writers(self, home, local_runtime) -> None:
        first = RuntimeRegistry.open(home)
        second = RuntimeRegistry.open(home)
        first.insert(local_runtime("1.8.145"))
        second.insert(local_runtime("11.0.1"))
        assert len(second) == 2
        assert len(first.reload()) == 2

    def test_corrupt_file_is_treated_as_empty(self, home, local_runtime) -> None:
        (home / "registry.json").write_text("{not json")
        registry = RuntimeRegistry.open(home)
        assert registry.snapshot() == ()
        registry.insert(local_runtime("11.0.1"))
        assert len(RuntimeRegistry.open(home)) == 1

    def test_invalid_entries_are_skipped(self, home) -> None:
        (home / "registry.json").write_text(
            json.dumps(
                {
                    "runtimes": [
                        {"version": "11.0.1", "vendor": "adopt", "platform": "linux64", "java_home": "/a"},
                        {"version": "", "vendor": "adopt", "platform": "linux64", "java_home": "/b"},
                        {"version": "11.0.1", "vendor": "*", "platform": "linux64", "java_home": "/c"},
                    ]
                }
            )
        )
        assert len(RuntimeRegistry.open(home)) == 1

    def test_write_failure_leaves_registry_unchanged(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("1.8.145"))
        with patch("jvm_provisioner.registry.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(RegistryPersistenceError):
                registry.insert(local_runtime("11.0.1"))
        assert [str(r.version) for r in registry.snapshot()] == ["1.8.145"]
        assert not list(registry.storage_path.parent.glob(".registry-*.tmp"))


class TestImportDiscovered:
    def test_skips_known_runtimes_and_paths(self, registry, local_runtime) -> None:
        registry.insert(local_runtime("11.0.1", java_home=Path("/opt/jdk11")))
        added = registry.import_discovered(
            [
                local_runtime("11.0.1"),
                local_runtime("17.0.9", java_home=Path("/opt/jdk11")),
                local_runtime("1.8.145", vendor="oracle", java_home=Path("/opt/jdk8"), active=True),
            ]
        )
        assert added == 1
        imported = registry.get(RuntimeKey.of("1.8.145", "oracle", "linux64"))
        assert not imported.active
        assert not imported.managed


class TestSubscribe:
    def test_listener_receives_committed_snapshots(self, registry, local_runtime) -> None:
        seen = []
        unsubscribe = registry.subscribe(seen.append)
        registry.insert(local_runtime("11.0.1"))
        registry.insert(local_runtime("1.8.145"))
        unsubscribe()
        registry.insert(local_runtime("17.0.9"))
        assert [len(snapshot) for snapshot in seen] == [1, 2]
        assert all(isinstance(snapshot, tuple) for snapshot in seen)

    def test_failing_listener_does_not_break_mutation(self, registry, local_runtime) -> None:
        def broken(snapshot):
            raise RuntimeError("boom")

        registry.subscribe(broken)
        registry.insert(local_runtime("11.0.1"))
        assert len(registry) == 1

    def test_failed_mutation_is_not_published(self, registry, local_runtime) -> None:
        seen = []
        registry.insert(local_runtime("11.0.1"))
        registry.subscribe(seen.append)
        with pytest.raises(DuplicateEntry):
            registry.insert(local_runtime("11.0.1"))
        assert seen == []


class TestInMemory:
    def test_without_storage(self, local_runtime) -> None:
        registry = RuntimeRegistry()
        registry.insert(local_runtime("11.0.1"))
        assert len(registry) == 1
        assert registry.reload() == registry.snapshot()

"""Tests for the Installer: idempotence, atomicity, verification, dedupe."""

from __future__ import annotations

import asyncio
import shutil
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from fakes import FakeRegistry, unreachable
from lunepack.core.manifest import Lockfile, Manifest
from lunepack.core.resolver import resolve
from lunepack.core.versioning import Version
from lunepack.exceptions import FingerprintMismatch, InstallError, LockfileError
from lunepack.install import Installer, PackageStore, fingerprint_tree, verify_installed
from lunepack.install.store import STAGING_DIR


def _lock(registry: FakeRegistry, deps: dict[str, str]) -> Lockfile:
    lf = asyncio.run(resolve(Manifest(name="demo", dependencies=deps), registry))
    registry.calls.clear()
    registry.fetches.clear()
    return lf


def _staging_is_empty(store: PackageStore) -> bool:
    staging = store.root / STAGING_DIR
    return not staging.exists() or not any(staging.iterdir())


class CrashingRegistry(FakeRegistry):
    """Writes part of a tree, then fails, for the packages in ``crash``."""

    def __init__(self) -> None:
        super().__init__()
        self.crash: set[str] = set()

    async def fetch_source(
        self, name: str, version: Version, dest: Path, *, source: str | None = None
    ) -> None:
        if name in self.crash:
            (dest / "half-written.luau").write_text("return", encoding="utf-8")
            raise RuntimeError("process killed mid-fetch")
        await super().fetch_source(name, version, dest, source=source)


class CountingRegistry(FakeRegistry):
    """Tracks the peak number of concurrent fetches."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.peak = 0

    async def fetch_source(
        self, name: str, version: Version, dest: Path, *, source: str | None = None
    ) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            await super().fetch_source(name, version, dest, source=source)
        finally:
            self.active -= 1


# ===========================================================================
# Fresh installs and idempotence
# ===========================================================================


class TestInstall:
    """Every entry ends up in the store exactly once."""

    def test_fresh_install(self, registry: FakeRegistry, store: PackageStore) -> None:
        """All entries are fetched and committed."""
        lf = _lock(registry, {"router": "*", "json": "*"})
        report = asyncio.run(Installer(registry, store).install(lf))
        assert report.fetched_count == 3
        assert report.reused == []
        for entry in lf:
            assert store.contains(entry)
            assert report.paths[entry.name] == store.path_for(entry)
            assert (store.path_for(entry) / "init.luau").is_file()

    def test_second_install_fetches_nothing(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Re-running on an unchanged lockfile performs zero fetches."""
        lf = _lock(registry, {"router": "*"})
        asyncio.run(Installer(registry, store).install(lf))
        registry.fetches.clear()
        report = asyncio.run(Installer(registry, store).install(lf))
        assert registry.fetches == []
        assert report.fetched_count == 0
        assert len(report.reused) == 2

    def test_empty_lockfile(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Nothing to install is not an error."""
        report = asyncio.run(Installer(registry, store).install(Lockfile()))
        assert report.installed == [] and report.reused == []

    def test_invalid_lockfile(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Inconsistent lockfiles are refused before any fetch."""
        lf = _lock(registry, {"router": "*"})
        lf.remove_entry("http")
        with pytest.raises(LockfileError, match="not in the lockfile"):
            asyncio.run(Installer(registry, store).install(lf))
        assert registry.fetches == []

    def test_worker_bound(self, store: PackageStore) -> None:
        """No more than ``workers`` fetches run at once."""
        reg = CountingRegistry()
        for i in range(6):
            reg.publish(f"pkg{i}", "1.0.0")
        lf = _lock(reg, {f"pkg{i}": "*" for i in range(6)})
        reg.peak = 0
        asyncio.run(Installer(reg, store, workers=2).install(lf))
        assert 1 <= reg.peak <= 2


# ===========================================================================
# Failures and atomicity
# ===========================================================================


class TestFailures:
    """Failed fetches never leave a visible entry."""

    def test_crash_mid_fetch_leaves_no_entry(self, store: PackageStore) -> None:
        """A fetch that dies halfway leaves nothing at the final key; a retry succeeds."""
        reg = CrashingRegistry()
        reg.publish("http", "1.0.0")
        lf = _lock(reg, {"http": "*"})
        entry = lf.get_entry("http")
        assert entry is not None

        reg.crash.add("http")
        with pytest.raises(RuntimeError, match="mid-fetch"):
            asyncio.run(Installer(reg, store).install(lf))
        assert not store.path_for(entry).exists()
        assert _staging_is_empty(store)

        reg.crash.clear()
        report = asyncio.run(Installer(reg, store).install(lf))
        assert report.fetched_count == 1
        assert store.contains(entry)

    def test_moved_tag_is_fingerprint_mismatch(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Content behind a force-moved tag is rejected."""
        lf = _lock(registry, {"http": "1.3.0"})
        registry.retag("http", "v1.3.0", {"init.luau": "return 'tampered'"})
        with pytest.raises(FingerprintMismatch) as info:
            asyncio.run(Installer(registry, store).install(lf))
        assert info.value.expected == lf.get_entry("http").fingerprint  # type: ignore[union-attr]
        assert store.entries() == []

    def test_registry_failure_wrapped(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Registry errors surface as InstallError naming the package."""
        lf = _lock(registry, {"json": "*"})
        registry.fail_fetch["json"] = unreachable("json")
        with pytest.raises(InstallError, match="json@0.4.2") as info:
            asyncio.run(Installer(registry, store).install(lf))
        assert info.value.name == "json"

    def test_deleted_tag(self, registry: FakeRegistry, store: PackageStore) -> None:
        """A tag removed after locking is reported through InstallError."""
        lf = _lock(registry, {"json": "*"})
        registry.delete_tag("json", "v0.4.2")
        with pytest.raises(InstallError, match="no longer exists"):
            asyncio.run(Installer(registry, store).install(lf))

    def test_failure_keeps_committed_entries(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Entries committed before a failure stay in the store."""
        lf = _lock(registry, {"http": "*", "json": "*"})
        registry.fail_fetch["json"] = unreachable("json")
        with pytest.raises(InstallError):
            asyncio.run(Installer(registry, store, workers=1).install(lf))
        assert store.contains(lf.get_entry("http"))  # type: ignore[arg-type]


# ===========================================================================
# Cancellation
# ===========================================================================


class TestCancellation:
    """Cancelling an install aborts fetches and leaves the store consistent."""

    def test_cancel_mid_fetch(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Outstanding fetches stop; staging is cleared and no entry appears."""
        lf = _lock(registry, {"router": "*"})
        registry.fetch_delay = 5.0

        async def main() -> None:
            task = asyncio.ensure_future(Installer(registry, store).install(lf))
            await asyncio.sleep(0.05)
            assert registry.fetches
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())
        assert _staging_is_empty(store)
        for entry in lf:
            assert not store.path_for(entry).exists()
        assert store.entries() == []

    def test_cancelled_run_does_not_break_concurrent_run(
        self, registry: FakeRegistry, store: PackageStore
    ) -> None:
        """A second install sharing the same fetches still completes."""
        lf = _lock(registry, {"router": "*"})
        registry.fetch_delay = 0.05
        installer = Installer(registry, store)

        async def main() -> int:
            first = asyncio.ensure_future(installer.install(lf))
            await asyncio.sleep(0.01)
            second = asyncio.ensure_future(installer.install(lf))
            await asyncio.sleep(0.01)
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first
            return (await second).fetched_count

        assert asyncio.run(main()) == 2
        assert sorted(registry.fetches) == [("http", "1.3.0"), ("router", "2.0.0")]
        assert verify_installed(store, lf) == {}

    def test_fingerprint_computed_off_loop(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Hashing a fetched tree runs in a worker thread."""
        lf = _lock(registry, {"json": "*"})
        threads: list[threading.Thread] = []

        def recording(path: Path) -> str:
            threads.append(threading.current_thread())
            return fingerprint_tree(path)

        with patch("lunepack.install.installer.fingerprint_tree", side_effect=recording):
            asyncio.run(Installer(registry, store).install(lf))
        assert threads and threads[0] is not threading.main_thread()


# ===========================================================================
# Deduplication
# ===========================================================================


class TestDedupe:
    """Concurrent requests for one key share a fetch."""

    def test_concurrent_installs_fetch_once(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Two overlapping install runs fetch each entry once."""
        lf = _lock(registry, {"router": "*"})
        registry.fetch_delay = 0.02
        installer = Installer(registry, store)

        async def both() -> None:
            await asyncio.gather(installer.install(lf), installer.install(lf))

        asyncio.run(both())
        assert sorted(registry.fetches) == [("http", "1.3.0"), ("router", "2.0.0")]


# ===========================================================================
# Verification
# ===========================================================================


class TestVerifyInstalled:
    """verify_installed recomputes fingerprints."""

    def test_clean(self, registry: FakeRegistry, store: PackageStore) -> None:
        """A fresh install verifies."""
        lf = _lock(registry, {"json": "*"})
        asyncio.run(Installer(registry, store).install(lf))
        assert verify_installed(store, lf) == {}

    def test_missing_and_tampered(self, registry: FakeRegistry, store: PackageStore) -> None:
        """Missing entries and edited files are reported per package."""
        lf = _lock(registry, {"json": "*", "http": "*"})
        asyncio.run(Installer(registry, store).install(lf))
        shutil.rmtree(store.path_for(lf.get_entry("http")))  # type: ignore[arg-type]
        json_dir = store.path_for(lf.get_entry("json"))  # type: ignore[arg-type]
        (json_dir / "init.luau").write_text("return 'edited'", encoding="utf-8")
        problems = verify_installed(store, lf)
        assert problems["http"] == "not installed"
        assert problems["json"].startswith("fingerprint")

"""Materializes a lockfile into the package store.

Usage::

    installer = Installer(registry, PackageStore(settings.store_dir), workers=8)
    report = asyncio.run(installer.install(lockfile))
    print(report.fetched_count, "fetched,", len(report.reused), "reused")
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path

from lunepack.aio import gather_bounded
from lunepack.core.manifest import LockEntry, Lockfile
from lunepack.core.versioning import Version
from lunepack.exceptions import FingerprintMismatch, InstallError, LockfileError, RegistryError
from lunepack.install.fingerprint import fingerprint_tree
from lunepack.install.singleflight import SingleFlight
from lunepack.install.store import PackageStore
from lunepack.registry.base import Registry

logger = logging.getLogger(__name__)


@dataclass
class InstallReport:
    """Outcome of one install run.

    Attributes:
        installed: Entries fetched and committed during this run.
        reused: Entries already present in the store.
        paths: Package name -> store entry directory, for every entry.
    """

    installed: list[LockEntry] = field(default_factory=list)
    reused: list[LockEntry] = field(default_factory=list)
    paths: dict[str, Path] = field(default_factory=dict)

    @property
    def fetched_count(self) -> int:
        return len(self.installed)


class Installer:
    """Fetches locked packages into a :class:`PackageStore`.

    Independent entries are installed concurrently, at most ``workers`` at a
    time. Concurrent requests for the same ``(name, version, fingerprint)``
    share one fetch. The first failure cancels outstanding work; entries
    already committed stay in the store.
    """

    def __init__(self, registry: Registry, store: PackageStore, *, workers: int = 8) -> None:
        self.registry = registry
        self.store = store
        self.workers = workers
        self._flight: SingleFlight[tuple[str, str, str], bool] = SingleFlight()

    async def install(self, lockfile: Lockfile) -> InstallReport:
        """Ensure every lockfile entry is present in the store.

        Raises:
            LockfileError: If the lockfile is internally inconsistent.
            InstallError: If any entry cannot be fetched or verified.
        """
        problems = lockfile.validate()
        if problems:
            raise LockfileError("Lockfile is invalid: " + "; ".join(problems))

        entries = lockfile.entries

        def _factory(entry: LockEntry):
            return lambda: self._install_one(entry)

        fetched = await gather_bounded([_factory(e) for e in entries], limit=self.workers)

        report = InstallReport()
        for entry, was_fetched in zip(entries, fetched):
            (report.installed if was_fetched else report.reused).append(entry)
            report.paths[entry.name] = self.store.path_for(entry)
        logger.info(
            "Installed %d package(s), reused %d", len(report.installed), len(report.reused)
        )
        return report

    async def _install_one(self, entry: LockEntry) -> bool:
        if self.store.contains(entry):
            logger.debug("%s@%s already in store", entry.name, entry.version)
            return False
        return await self._flight.do(entry.key, lambda: self._fetch(entry))

    async def _fetch(self, entry: LockEntry) -> bool:
        # A writer may have finished between the first check and now.
        if self.store.contains(entry):
            return False
        try:
            version = dataclasses.replace(Version.parse(entry.version), tag=entry.tag)
        except ValueError as exc:
            raise LockfileError(f"{entry.name}: invalid locked version {entry.version!r}") from exc

        with self.store.staging() as staged:
            try:
                await self.registry.fetch_source(entry.name, version, staged, source=entry.source)
            except RegistryError as exc:
                raise InstallError(
                    f"Cannot fetch {entry.name}@{entry.version}: {exc}",
                    name=entry.name,
                    version=entry.version,
                ) from exc
            actual = await asyncio.to_thread(fingerprint_tree, staged)
            if actual != entry.fingerprint:
                raise FingerprintMismatch(entry.name, entry.version, entry.fingerprint, actual)
            self.store.commit(staged, entry)
        return True


def verify_installed(store: PackageStore, lockfile: Lockfile) -> dict[str, str]:
    """Recompute fingerprints of installed entries.

    Returns a mapping of package name to problem for every entry that is
    missing from the store or whose tree no longer matches.
    """
    problems: dict[str, str] = {}
    for entry in lockfile.entries:
        if not store.contains(entry):
            problems[entry.name] = "not installed"
            continue
        actual = fingerprint_tree(store.path_for(entry))
        if actual != entry.fingerprint:
            problems[entry.name] = f"fingerprint {actual} != {entry.fingerprint}"
    return problems

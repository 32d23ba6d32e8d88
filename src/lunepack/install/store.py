"""The content-addressed package store.

Layout::

    <root>/
        .staging/<random>/                 in-progress fetches
        <safe-name>/<version>-<fp16>/      committed entries
            .lunepack-entry.json           marker with the full fingerprint

An entry directory only ever appears through an atomic ``os.rename`` of a
fully populated staging directory whose marker is already written, so a
directory at the final key is always complete. Two processes installing the
same key race harmlessly: the loser discards its staging copy.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from lunepack.core.manifest import LockEntry
from lunepack.exceptions import InstallError
from lunepack.fsutil import safe_name
from lunepack.install.fingerprint import STORE_MARKER

logger = logging.getLogger(__name__)

STAGING_DIR = ".staging"


@dataclass(frozen=True)
class StoreEntry:
    """A committed package in the store, as described by its marker."""

    name: str
    version: str
    fingerprint: str
    source: str
    path: Path

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.fingerprint)


def _read_marker(entry_dir: Path) -> dict | None:
    try:
        data = json.loads((entry_dir / STORE_MARKER).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class PackageStore:
    """Filesystem store of installed package trees keyed by
    ``(name, version, fingerprint)``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"PackageStore({str(self.root)!r})"

    # -- Lookup -------------------------------------------------------------

    def path_for(self, entry: LockEntry) -> Path:
        fp16 = entry.fingerprint.split(":", 1)[-1][:16]
        return self.root / safe_name(entry.name) / f"{entry.version}-{fp16}"

    def contains(self, entry: LockEntry) -> bool:
        """True when the entry directory exists and its marker matches *entry*."""
        marker = _read_marker(self.path_for(entry))
        return (
            marker is not None
            and marker.get("name") == entry.name
            and marker.get("version") == entry.version
            and marker.get("fingerprint") == entry.fingerprint
        )

    def entries(self) -> list[StoreEntry]:
        """All committed entries, sorted by key. Directories without a valid
        marker are skipped."""
        found: list[StoreEntry] = []
        if not self.root.is_dir():
            return found
        for pkg_dir in sorted(self.root.iterdir()):
            if pkg_dir.name == STAGING_DIR or not pkg_dir.is_dir():
                continue
            for entry_dir in sorted(pkg_dir.iterdir()):
                marker = _read_marker(entry_dir)
                if marker is None:
                    continue
                found.append(StoreEntry(
                    name=str(marker.get("name", "")),
                    version=str(marker.get("version", "")),
                    fingerprint=str(marker.get("fingerprint", "")),
                    source=str(marker.get("source", "")),
                    path=entry_dir,
                ))
        return sorted(found, key=lambda e: e.key)

    # -- Mutation -----------------------------------------------------------

    @contextmanager
    def staging(self) -> Iterator[Path]:
        """Yield a fresh staging directory, removed on every exit path."""
        base = self.root / STAGING_DIR
        base.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix="fetch-", dir=base))
        try:
            yield path
        finally:
            if path.exists():
                shutil.rmtree(path, ignore_errors=True)

    def commit(self, staged: Path, entry: LockEntry) -> Path:
        """Move a populated staging directory onto the entry's final key.

        Raises:
            InstallError: If the rename fails for a reason other than a
                concurrent writer having committed the same entry.
        """
        marker = {
            "name": entry.name,
            "version": entry.version,
            "fingerprint": entry.fingerprint,
            "source": entry.source,
        }
        (staged / STORE_MARKER).write_text(
            json.dumps(marker, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        target = self.path_for(entry)
        target.parent.mkdir(parents=True, exist_ok=True)

        for _ in range(2):
            try:
                os.rename(staged, target)
                logger.debug("Committed %s@%s to %s", entry.name, entry.version, target)
                return target
            except OSError as exc:
                if self.contains(entry):
                    logger.debug("%s already committed by another writer", target)
                    shutil.rmtree(staged, ignore_errors=True)
                    return target
                if not target.exists():
                    raise InstallError(
                        f"Cannot commit {entry.name}@{entry.version} to {target}: {exc}",
                        name=entry.name,
                        version=entry.version,
                    ) from exc
                # Leftover without a valid marker; never a committed entry.
                logger.warning("Replacing incomplete store entry %s", target)
                shutil.rmtree(target)
        raise InstallError(
            f"Cannot commit {entry.name}@{entry.version} to {target}",
            name=entry.name,
            version=entry.version,
        )

    def prune(self, keep: Iterable[LockEntry], *, dry_run: bool = False) -> list[StoreEntry]:
        """Delete every committed entry whose key is not in *keep*, and any
        abandoned staging directories. Returns the removed entries.

        With *dry_run* nothing is deleted; the entries that would go are
        returned.
        """
        keep_keys = {e.key for e in keep}
        removed = [stored for stored in self.entries() if stored.key not in keep_keys]
        if dry_run:
            return removed
        for stored in removed:
            shutil.rmtree(stored.path)
            try:
                stored.path.parent.rmdir()
            except OSError:
                pass
        staging = self.root / STAGING_DIR
        if staging.is_dir():
            shutil.rmtree(staging, ignore_errors=True)
        logger.info("Pruned %d store entries", len(removed))
        return removed

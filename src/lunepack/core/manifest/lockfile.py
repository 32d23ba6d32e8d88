"""Lockfile core class --- entry management and deterministic serialization.

The ``Lockfile`` class is the central data structure representing a
``lunepack.lock`` file. It is the resolver's sole output and the
installer's sole input.

Determinism guarantee: ``to_json()`` produces byte-identical output for
identical content. Entries are ordered by package name, all keys are
sorted, and no timestamps are recorded. Reproducible builds depend on this:
resolving the same manifest against the same registry state twice yields
the same bytes, and an untouched lockfile is rewritten byte-for-byte.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from lunepack.core.manifest.models import LockEntry, LockfileMetadata, Manifest
from lunepack.fsutil import atomic_write_text


class Lockfile:
    """Pinned versions for every package a project depends on.

    Example::

        lf = Lockfile()
        lf.add_entry(LockEntry(
            name="http",
            version="1.2.3",
            tag="v1.2.3",
            source="https://github.com/lune-org/http.git",
            fingerprint="sha256:abcd...",
        ))
        lf.write(Path("lunepack.lock"))
    """

    LOCKFILE_VERSION: str = "1"

    def __init__(self) -> None:
        self._entries: dict[str, LockEntry] = {}
        self._metadata = LockfileMetadata()

    # -- Entry management ---------------------------------------------------

    def add_entry(self, entry: LockEntry) -> None:
        """Add a locked entry, replacing any entry with the same name."""
        self._entries[entry.name] = entry
        self._metadata.total_packages = len(self._entries)

    def remove_entry(self, name: str) -> LockEntry | None:
        entry = self._entries.pop(name, None)
        self._metadata.total_packages = len(self._entries)
        return entry

    def get_entry(self, name: str) -> LockEntry | None:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[LockEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[LockEntry]:
        """Entries ordered by package name."""
        return [self._entries[name] for name in sorted(self._entries)]

    @property
    def package_names(self) -> list[str]:
        return sorted(self._entries)

    def pins(self) -> dict[str, str]:
        """Mapping of package name to pinned version."""
        return {name: self._entries[name].version for name in sorted(self._entries)}

    # -- Manifest consistency ------------------------------------------------

    def matches_manifest(self, manifest: Manifest) -> bool:
        """True when this lockfile was produced from *manifest*'s constraints."""
        if self._metadata.manifest_digest != manifest.digest():
            return False
        return all(name in self._entries for name in manifest.dependencies)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        packages: list[dict[str, Any]] = []
        for entry in self.entries:
            packages.append({
                "name": entry.name,
                "version": entry.version,
                "tag": entry.tag,
                "source": entry.source,
                "fingerprint": entry.fingerprint,
                "dependencies": dict(sorted(entry.dependencies.items())),
            })
        return {
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": "lunepack",
            "manifest_digest": self._metadata.manifest_digest,
            "packages": packages,
            "metadata": {
                "total_packages": self._metadata.total_packages,
                "resolution_strategy": self._metadata.resolution_strategy,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> None:
        """Atomically write the lockfile; a crash never leaves a partial file."""
        atomic_write_text(path, self.to_json())

    # -- Metadata access ----------------------------------------------------

    @property
    def metadata(self) -> LockfileMetadata:
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockfileMetadata) -> None:
        self._metadata = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lockfile):
            return NotImplemented
        return self.to_dict() == other.to_dict()

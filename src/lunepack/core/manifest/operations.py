"""Reading, checking and comparing lockfiles.

Functions here become ``Lockfile`` methods:

- ``from_dict`` / ``from_json`` / ``read``: parse ``lunepack.lock``.
- ``validate``: pins, fingerprints and counts agree with each other.
- ``diff``: packages added, removed or changed between two lockfiles.

They are attached to the ``Lockfile`` class at import time (in
``__init__.py``) so callers see a single unified API.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from lunepack.core.manifest.models import (
    LockEntry,
    LockfileMetadata,
    is_valid_fingerprint,
)
from lunepack.core.versioning import Version
from lunepack.exceptions import LockfileError


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Raises:
        LockfileError: If the structure is not a lockfile or its version is
            not understood.
    """
    if not isinstance(data, dict):
        raise LockfileError("Lockfile must be a JSON object")
    version = str(data.get("lockfile_version", cls.LOCKFILE_VERSION))
    if version != cls.LOCKFILE_VERSION:
        raise LockfileError(f"Unsupported lockfile version {version!r}")

    lf = cls()
    packages = data.get("packages", [])
    if not isinstance(packages, list):
        raise LockfileError("'packages' must be a list")
    for raw in packages:
        if not isinstance(raw, dict) or not raw.get("name"):
            raise LockfileError(f"Malformed lockfile entry: {raw!r}")
        entry = LockEntry(
            name=str(raw["name"]),
            version=str(raw.get("version", "")),
            tag=str(raw.get("tag", raw.get("version", ""))),
            source=str(raw.get("source", "")),
            fingerprint=str(raw.get("fingerprint", "")),
            dependencies={str(k): str(v) for k, v in (raw.get("dependencies") or {}).items()},
        )
        lf._entries[entry.name] = entry

    meta = data.get("metadata", {}) or {}
    lf._metadata = LockfileMetadata(
        total_packages=int(meta.get("total_packages", len(lf._entries))),
        resolution_strategy=str(meta.get("resolution_strategy", "greedy-latest")),
        manifest_digest=str(data.get("manifest_digest", "")),
    )
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockfileError: If the string is not valid JSON or not a lockfile.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockfileError: If the file is corrupt.
    """
    text = path.read_text(encoding="utf-8")
    try:
        return cls.from_json(text)
    except LockfileError as exc:
        raise LockfileError(f"{path}: {exc}") from exc


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Versions:** every entry has a valid semantic version.
    2. **Fingerprints:** every fingerprint matches ``sha256:<64-hex>``.
    3. **Pins:** every dependency pin names a locked package at exactly the
       locked version.
    4. **Sources:** every entry has a source location.
    5. **Metadata:** ``total_packages`` matches the number of entries.

    Returns:
        List of validation error messages. Empty means the lockfile is valid.
    """
    errors: list[str] = []

    for name, entry in sorted(self._entries.items()):
        if Version.try_parse(entry.version) is None:
            errors.append(f"Package {name!r} has invalid version {entry.version!r}")
        if not is_valid_fingerprint(entry.fingerprint):
            errors.append(
                f"Package {name!r} has invalid fingerprint format: {entry.fingerprint!r}"
            )
        if not entry.source:
            errors.append(f"Package {name!r} has no source location")
        for dep_name, dep_version in sorted(entry.dependencies.items()):
            locked = self._entries.get(dep_name)
            if locked is None:
                errors.append(
                    f"Package {name!r} depends on {dep_name!r} which is not in the lockfile"
                )
            elif locked.version != dep_version:
                errors.append(
                    f"Package {name!r} pins {dep_name}@{dep_version} but the "
                    f"lockfile has {dep_name}@{locked.version}"
                )

    if self._metadata.total_packages != len(self._entries):
        errors.append(
            f"Metadata total_packages ({self._metadata.total_packages}) "
            f"does not match actual count ({len(self._entries)})"
        )

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles.

    - **added**: packages present in ``other`` but not in ``self``.
    - **removed**: packages present in ``self`` but not in ``other``.
    - **changed**: packages in both with a different version, fingerprint
      or source.

    Args:
        other: The lockfile to compare against (typically the newer one).
    """
    self_names = set(self._entries)
    other_names = set(other._entries)

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._entries[name]
        new = other._entries[name]
        for field_name in ("version", "fingerprint", "source"):
            if getattr(old, field_name) != getattr(new, field_name):
                changes.append({
                    "name": name,
                    "field": field_name,
                    "old": getattr(old, field_name),
                    "new": getattr(new, field_name),
                })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }

"""Maintains the ``aliases`` section of a project's ``.luaurc``.

After an install every locked package gets an alias pointing at its store
entry, so editors and the runtime resolve ``require("@<package>")`` the same
way the graph builder does. Aliases pointing into the store that no longer
correspond to a locked package are dropped; every other key in the file is
kept as-is.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from lunepack import LUAURC_FILENAME
from lunepack.exceptions import ManifestError
from lunepack.fsutil import atomic_write_text, safe_name

logger = logging.getLogger(__name__)

_INIT_FILES = ("init.luau", "init.lua")
_MAIN_FILES = ("init.luau", "init.lua", "main.luau", "main.lua")
_SOURCE_DIRS = ("lib", "src")


def detect_entry_dir(package_dir: Path) -> Path:
    """Directory that ``require("@<package>")`` should resolve to.

    The package root when it holds an ``init`` file; otherwise the first of
    ``lib/`` or ``src/`` holding an ``init`` or ``main`` file; otherwise the
    package root.
    """
    if any((package_dir / f).is_file() for f in _INIT_FILES):
        return package_dir
    for sub in _SOURCE_DIRS:
        candidate = package_dir / sub
        if any((candidate / f).is_file() for f in _MAIN_FILES):
            return candidate
    return package_dir


def alias_name(package: str) -> str:
    return safe_name(package)


def read_luaurc(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ManifestError(f"{path}: not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path}: expected a JSON object")
    return data


def _is_inside(value: str, root: Path) -> bool:
    try:
        Path(value).resolve().relative_to(root.resolve())
    except (ValueError, OSError):
        return False
    return True


def write_luaurc(
    project_root: Path,
    packages: Mapping[str, Path],
    *,
    store_root: Path,
    project_aliases: Mapping[str, str] | None = None,
) -> Path:
    """Rewrite ``<project_root>/.luaurc`` with package and project aliases.

    Args:
        project_root: Directory containing the manifest.
        packages: Package name -> store entry directory.
        store_root: Root of the package store; stale aliases into it are removed.
        project_aliases: Manifest aliases (alias -> project-relative path).

    Returns:
        The path written.
    """
    path = project_root / LUAURC_FILENAME
    config = read_luaurc(path)
    existing = config.get("aliases")
    aliases: dict[str, str] = dict(existing) if isinstance(existing, dict) else {}

    for key in [k for k, v in aliases.items() if isinstance(v, str) and _is_inside(v, store_root)]:
        del aliases[key]
    for alias, rel in (project_aliases or {}).items():
        aliases[alias] = rel
    for name in sorted(packages):
        aliases[alias_name(name)] = detect_entry_dir(packages[name]).as_posix()

    config["aliases"] = dict(sorted(aliases.items()))
    atomic_write_text(path, json.dumps(config, indent=2, sort_keys=True) + "\n")
    logger.debug("Wrote %d aliases to %s", len(aliases), path)
    return path

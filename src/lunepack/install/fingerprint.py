"""Content fingerprints of package trees.

The fingerprint covers every file's POSIX relative path and contents,
visited in sorted order, so it is independent of filesystem enumeration
order and of the machine the tree was fetched on. ``.git`` directories and
the store's own marker file are excluded.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

STORE_MARKER = ".lunepack-entry.json"

_EXCLUDED = frozenset({".git", STORE_MARKER})
_CHUNK = 1 << 16


def _file_digest(path: Path) -> bytes:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            h.update(chunk)
    return h.digest()


def fingerprint_tree(root: Path) -> str:
    """Compute the ``sha256:<hex>`` fingerprint of the tree under *root*."""
    records: list[tuple[str, bytes]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in _EXCLUDED]
        base = Path(dirpath)
        for fname in filenames:
            if fname in _EXCLUDED:
                continue
            path = base / fname
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                records.append((rel, b"L" + os.readlink(path).encode("utf-8")))
            else:
                records.append((rel, b"F" + _file_digest(path)))
        for dname in list(dirnames):
            link = base / dname
            if link.is_symlink():
                rel = link.relative_to(root).as_posix()
                records.append((rel, b"L" + os.readlink(link).encode("utf-8")))
                dirnames.remove(dname)

    h = hashlib.sha256()
    for rel, payload in sorted(records):
        h.update(rel.encode("utf-8"))
        h.update(b"\0")
        h.update(payload)
        h.update(b"\0")
    return "sha256:" + h.hexdigest()

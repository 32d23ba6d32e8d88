"""Small filesystem helpers shared by the manifest store, lockfile and installer."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* so readers see either the old or the new file.

    The bytes go to a temporary file in the same directory, are flushed and
    fsynced, then moved over *path* with ``os.replace``. On failure the
    temporary file is removed and *path* is untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write_bytes(path, text.encode("utf-8"))


def safe_name(name: str) -> str:
    """Map a package name to a single path component (``owner/pkg`` -> ``owner__pkg``)."""
    return name.replace("/", "__").replace("\\", "__")

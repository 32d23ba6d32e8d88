"""lunepack: Package manager and standalone builder for Lune/Luau projects."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

MANIFEST_FILENAME = "lunepack.yaml"
LOCKFILE_FILENAME = "lunepack.lock"
LUAURC_FILENAME = ".luaurc"

"""Manifest Store --- the project manifest and its lockfile.

The package is split into focused submodules:

- ``models``: Data classes (``Manifest``, ``LockEntry``, ``LockfileMetadata``).
- ``manifest``: Reading and writing ``lunepack.yaml``.
- ``lockfile``: The ``Lockfile`` class with entry management and
  deterministic serialization.
- ``operations``: Deserialization (``from_dict``, ``from_json``, ``read``),
  validation, and diffing.

All public names are re-exported here so that imports like
``from lunepack.core.manifest import Lockfile`` work.
"""

from lunepack.core.manifest.models import (
    LockEntry,
    LockfileMetadata,
    Manifest,
    is_valid_fingerprint,
    is_valid_package_name,
)
from lunepack.core.manifest.manifest import (
    dump_manifest,
    manifest_from_dict,
    parse_manifest,
    read_manifest,
    write_manifest,
)
from lunepack.core.manifest.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from lunepack.core.manifest import operations as _ops

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff

__all__ = [
    "LockEntry",
    "Lockfile",
    "LockfileMetadata",
    "Manifest",
    "dump_manifest",
    "is_valid_fingerprint",
    "is_valid_package_name",
    "manifest_from_dict",
    "parse_manifest",
    "read_manifest",
    "write_manifest",
]

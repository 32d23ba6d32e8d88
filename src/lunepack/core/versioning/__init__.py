"""Semantic versions and version constraints.

Versions are derived from repository tags; constraints are the predicates a
manifest attaches to each dependency. All public names are re-exported here
so callers can write ``from lunepack.core.versioning import Version``.
"""

from lunepack.core.versioning.constraints import (
    Bound,
    VersionConstraint,
    VersionRange,
)
from lunepack.core.versioning.semver import Version, sort_descending

__all__ = [
    "Bound",
    "Version",
    "VersionConstraint",
    "VersionRange",
    "sort_descending",
]

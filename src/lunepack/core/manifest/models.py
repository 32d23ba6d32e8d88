"""Manifest and lockfile data models.

Pure data holders with no I/O, safe to import from anywhere without
circular-dependency concerns.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field

from lunepack.core.versioning import VersionConstraint

# ---------------------------------------------------------------------------
# Fingerprint format: "sha256:<64-hex-characters>"
# ---------------------------------------------------------------------------

_FINGERPRINT_RE = re.compile(r"^sha256:[0-9a-f]{64}$")

_PACKAGE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-]*(?:/[A-Za-z0-9][A-Za-z0-9._\-]*)?$")


def is_valid_package_name(name: str) -> bool:
    return bool(_PACKAGE_NAME_RE.match(name))


def is_valid_fingerprint(value: str) -> bool:
    return bool(_FINGERPRINT_RE.match(value))


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


@dataclass
class Manifest:
    """The user-authored project manifest (``lunepack.yaml``).

    Attributes:
        name: Project or package name.
        description: Free-form description.
        version: Package version; only meaningful for published packages.
        dependencies: Mapping of package name to constraint string.
        aliases: Mapping of ``@alias`` names to project-relative directories,
            used when resolving ``require("@alias/...")``.
        registry: Optional catalog location overriding the default registry.
    """

    name: str
    description: str = ""
    version: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    registry: str | None = None

    def constraints(self) -> dict[str, VersionConstraint]:
        """Return the parsed constraints, sorted by package name."""
        return {
            name: VersionConstraint(self.dependencies[name])
            for name in sorted(self.dependencies)
        }

    def with_dependency(self, name: str, constraint: str) -> Manifest:
        deps = dict(self.dependencies)
        deps[name] = constraint
        return Manifest(
            name=self.name,
            description=self.description,
            version=self.version,
            dependencies=deps,
            aliases=dict(self.aliases),
            registry=self.registry,
        )

    def without_dependencies(self, names: list[str]) -> Manifest:
        dropped = set(names)
        deps = {k: v for k, v in self.dependencies.items() if k not in dropped}
        return Manifest(
            name=self.name,
            description=self.description,
            version=self.version,
            dependencies=deps,
            aliases=dict(self.aliases),
            registry=self.registry,
        )

    def digest(self) -> str:
        """Hash of the dependency constraints.

        Stored in the lockfile so a later run can tell whether constraints
        changed since the last resolution.
        """
        canonical = json.dumps(
            {name: str(VersionConstraint(c)) for name, c in self.dependencies.items()},
            sort_keys=True,
            separators=(",", ":"),
        )
        return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# LockEntry: A single entry in the lockfile
# ---------------------------------------------------------------------------


@dataclass
class LockEntry:
    """The fully resolved state of one package.

    Attributes:
        name: Package name (e.g. "http").
        version: Resolved semantic version (e.g. "1.2.3").
        tag: Source-control tag the version was derived from (e.g. "v1.2.3").
        source: Repository location the tree is fetched from.
        fingerprint: Content hash of the fetched tree, "sha256:<hex>".
        dependencies: Mapping of dependency name to its pinned version.
    """

    name: str
    version: str
    tag: str
    source: str
    fingerprint: str
    dependencies: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        """The package store key ``(name, version, fingerprint)``."""
        return (self.name, self.version, self.fingerprint)


# ---------------------------------------------------------------------------
# LockfileMetadata: Top-level metadata section
# ---------------------------------------------------------------------------


@dataclass
class LockfileMetadata:
    """Metadata section of the lockfile.

    Attributes:
        total_packages: Expected number of entries. Used during validation
            to detect incomplete writes.
        resolution_strategy: The resolution algorithm used.
        manifest_digest: Digest of the manifest constraints that produced
            this lockfile (see :meth:`Manifest.digest`).
    """

    total_packages: int = 0
    resolution_strategy: str = "greedy-latest"
    manifest_digest: str = ""

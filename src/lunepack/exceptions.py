"""lunepack exception hierarchy.

All public exceptions inherit from LunepackError, giving callers a single
base class to catch when they want to handle any lunepack-specific failure
without swallowing unrelated errors.

Every class carries a ``category`` (printed by the CLI so the failure kind
is distinguishable in output) and an ``exit_code``.
"""

from __future__ import annotations


class LunepackError(Exception):
    """Base exception for all lunepack errors."""

    category = "error"
    exit_code = 1


# ---------------------------------------------------------------------------
# Configuration and project files
# ---------------------------------------------------------------------------


class ConfigError(LunepackError):
    """Raised when a setting (environment or CLI option) has an invalid value."""

    category = "config"
    exit_code = 5


class ManifestError(LunepackError):
    """Raised when ``lunepack.yaml`` is missing, malformed, or inconsistent."""

    category = "manifest"
    exit_code = 5


class LockfileError(LunepackError):
    """Raised for lockfile read, validation, or staleness failures.

    Covers corrupted lockfiles, unknown lockfile versions, and lockfiles
    that no longer match the manifest's dependency constraints.
    """

    category = "lockfile"
    exit_code = 5


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RegistryError(LunepackError):
    """Base class for registry client failures."""

    category = "registry"
    exit_code = 1
    retryable = False


class NotFound(RegistryError):
    """The package is not registered in the catalog. Fatal."""

    category = "not-found"

    def __init__(self, name: str, registry: str = "") -> None:
        self.name = name
        self.registry = registry
        where = f" in registry {registry}" if registry else ""
        super().__init__(f"Package {name!r} not found{where}")


class RegistryUnreachable(RegistryError):
    """Transport failure talking to the catalog or a package repository.

    Retryable: the client retries with bounded exponential backoff before
    surfacing this error.
    """

    category = "registry-unreachable"
    retryable = True

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Registry unreachable ({target}): {reason}")


class InvalidDescriptor(RegistryError):
    """A catalog descriptor exists but cannot be parsed. Never retried."""

    category = "invalid-descriptor"

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Invalid package descriptor ({location}): {reason}")


class VersionGone(RegistryError):
    """A version tag disappeared after it was listed. Never retried."""

    category = "version-gone"

    def __init__(self, name: str, version: str, tag: str = "") -> None:
        self.name = name
        self.version = version
        self.tag = tag or version
        super().__init__(
            f"Tag {self.tag!r} of {name}@{version} no longer exists; "
            "run `lunepack update` to re-resolve"
        )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(LunepackError):
    """Raised when dependency resolution fails.

    Covers unsatisfiable version constraints, conflicting constraints from
    different requirers, and resolutions that do not converge.
    """

    category = "resolution"
    exit_code = 1


class ConflictingConstraints(ResolutionError):
    """Two requirers place constraints on a package with an empty intersection."""

    category = "conflicting-constraints"

    def __init__(
        self,
        package: str,
        constraint_a: str,
        required_by_a: str,
        constraint_b: str,
        required_by_b: str,
    ) -> None:
        self.package = package
        self.constraint_a = constraint_a
        self.required_by_a = required_by_a
        self.constraint_b = constraint_b
        self.required_by_b = required_by_b
        super().__init__(
            f"Conflicting constraints on {package!r}: "
            f"{required_by_a} requires {constraint_a!r} but "
            f"{required_by_b} requires {constraint_b!r}"
        )


class NoMatchingVersion(ResolutionError):
    """No listed version of a package satisfies its combined constraints."""

    category = "no-matching-version"

    def __init__(self, package: str, constraint: str, available: list[str]) -> None:
        self.package = package
        self.constraint = constraint
        self.available = list(available)
        shown = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"No version of {package!r} satisfies {constraint!r} "
            f"(available: {shown})"
        )


# ---------------------------------------------------------------------------
# Installation
# ---------------------------------------------------------------------------


class InstallError(LunepackError):
    """Raised when fetching or committing a package into the store fails."""

    category = "install"
    exit_code = 2

    def __init__(self, message: str, *, name: str = "", version: str = "") -> None:
        self.name = name
        self.version = version
        super().__init__(message)


class FingerprintMismatch(InstallError):
    """The fetched tree does not hash to the locked fingerprint.

    Usually means the tag was force-moved after resolution. Persistent,
    not retried.
    """

    category = "fingerprint-mismatch"

    def __init__(self, name: str, version: str, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Fingerprint mismatch for {name}@{version}: expected {expected}, "
            f"got {actual} (was the tag moved?)",
            name=name,
            version=version,
        )


# ---------------------------------------------------------------------------
# Module graph
# ---------------------------------------------------------------------------


class GraphError(LunepackError):
    """Raised when the module graph violates the configured policy."""

    category = "graph"
    exit_code = 3

    def __init__(self, message: str, *, module: str = "", path: str = "") -> None:
        self.module = module
        self.path = path
        super().__init__(message)


class UnresolvedRequire(GraphError):
    """A string-literal require target could not be resolved to a file."""

    category = "unresolved-require"


class DynamicRequire(GraphError):
    """A require whose target is computed at runtime."""

    category = "dynamic-require"


class ModuleCycle(GraphError):
    """A require cycle, reported when the policy treats cycles as errors."""

    category = "module-cycle"

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(
            "Require cycle: " + " -> ".join(self.cycle),
            module=self.cycle[0] if self.cycle else "",
        )


# ---------------------------------------------------------------------------
# Bundling
# ---------------------------------------------------------------------------


class BundleError(LunepackError):
    """Raised when a bundle cannot be assembled or written."""

    category = "bundle"
    exit_code = 4


class BundleFormatError(BundleError):
    """Embedded bundle data is missing or malformed."""

    category = "bundle-format"


class UnsupportedTarget(BundleError):
    """No runtime binary is available for the requested platform. Fatal."""

    category = "unsupported-target"

    def __init__(self, target: str, reason: str = "") -> None:
        self.target = target
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unsupported target {target!r}{detail}")

"""Version Resolver --- turns manifest constraints into a lockfile."""

from lunepack.core.resolver.resolver import (
    ROOT,
    DependencyResolver,
    PackageProbe,
    Requirement,
    canonical_version,
    read_package_dependencies,
    resolve,
)

__all__ = [
    "ROOT",
    "DependencyResolver",
    "PackageProbe",
    "Requirement",
    "canonical_version",
    "read_package_dependencies",
    "resolve",
]

"""Base classes and data models for registry access.

Defines the ``Registry`` abstract base class that the resolver and the
installer talk to, along with the ``PackageDescriptor`` catalog record.

The registry is a *derived* catalog: it only records where each package's
repository lives. The installable versions are exactly the version tags in
that repository's history, so there is no separately curated version list
that could drift out of sync with the repository.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lunepack.core.versioning import Version

logger = logging.getLogger(__name__)

_GITHUB_SHORTHAND_RE = re.compile(r"^github:(?P<owner>[\w.\-]+)/(?P<repo>[\w.\-]+?)(?:\.git)?$")


def normalize_repository(location: str) -> str:
    """Expand ``github:owner/repo`` to a cloneable URL; other values pass through."""
    m = _GITHUB_SHORTHAND_RE.match(location.strip())
    if m:
        return f"https://github.com/{m.group('owner')}/{m.group('repo')}.git"
    return location.strip()


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackageDescriptor:
    """A catalog entry: where a package's repository lives.

    Attributes:
        name: Package name as registered.
        repository: Cloneable repository location.
        description: Short description from the catalog.
    """

    name: str
    repository: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Any, *, expected_name: str) -> PackageDescriptor:
        """Validate a parsed descriptor file.

        Raises:
            ValueError: If required fields are missing.
        """
        if not isinstance(data, dict):
            raise ValueError("descriptor must be a mapping")
        repository = data.get("repository") or data.get("source")
        if not isinstance(repository, str) or not repository.strip():
            raise ValueError("descriptor has no 'repository'")
        name = str(data.get("name") or expected_name)
        return cls(
            name=name,
            repository=normalize_repository(repository),
            description=str(data.get("description") or ""),
        )


# ---------------------------------------------------------------------------
# Abstract registry
# ---------------------------------------------------------------------------


class Registry(ABC):
    """Query interface over the package catalog and package repositories.

    Implementations must not hold process-global state; a registry handle
    is passed explicitly to the resolver and the installer.
    """

    @property
    @abstractmethod
    def registry_name(self) -> str:
        """Human-readable location of this registry."""

    @abstractmethod
    async def describe(self, name: str) -> PackageDescriptor:
        """Return the catalog descriptor for *name*.

        Raises:
            NotFound: If the package is not registered.
            RegistryUnreachable: On transport failure.
        """

    @abstractmethod
    async def list_versions(self, name: str) -> list[Version]:
        """Return the versions available for *name*, newest first.

        Raises:
            NotFound: If the package is not registered.
            RegistryUnreachable: On transport failure.
        """

    @abstractmethod
    async def fetch_source(
        self,
        name: str,
        version: Version,
        dest: Path,
        *,
        source: str | None = None,
    ) -> None:
        """Materialize the package tree at *version* into the empty directory *dest*.

        Args:
            name: Package name.
            version: Version to fetch; its ``tag`` names the git tag.
            dest: Existing empty directory owned by the caller.
            source: Repository location, when already known (e.g. from the
                lockfile). Skips the catalog lookup.

        Raises:
            VersionGone: If the tag no longer exists. Never retried.
            NotFound: If the package is not registered.
            RegistryUnreachable: On transport failure.
        """

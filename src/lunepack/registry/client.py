"""The git-backed registry client.

Combines a :class:`~lunepack.registry.catalog.Catalog` (package name ->
repository location) with a :class:`~lunepack.registry.git.GitTransport`
(repository -> version tags and trees). Every remote call goes through
:func:`~lunepack.registry.retry.with_retries`.

Usage::

    registry = GitRegistryClient.from_settings(settings)
    versions = await registry.list_versions("http")
    await registry.fetch_source("http", versions[0], staging_dir)
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from lunepack.config import Settings
from lunepack.core.versioning import Version, sort_descending
from lunepack.exceptions import InvalidDescriptor, NotFound, RegistryUnreachable, VersionGone
from lunepack.registry.base import PackageDescriptor, Registry
from lunepack.registry.catalog import Catalog, open_catalog
from lunepack.registry.git import GitCommandError, GitTransport
from lunepack.registry.retry import with_retries

logger = logging.getLogger(__name__)


class GitRegistryClient(Registry):
    """Registry whose versions are the semantic-version tags of each repository.

    Descriptors are memoized per client instance only; a new client sees a
    fresh view of the catalog.

    Args:
        catalog: Source of package descriptors.
        transport: git runner for tag listing and checkouts.
        retries: Attempts per remote call.
        backoff: Base delay for exponential backoff between attempts.
    """

    def __init__(
        self,
        catalog: Catalog,
        transport: GitTransport,
        *,
        retries: int = 3,
        backoff: float = 0.5,
    ) -> None:
        self._catalog = catalog
        self._transport = transport
        self._retries = retries
        self._backoff = backoff
        self._descriptors: dict[str, PackageDescriptor] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> GitRegistryClient:
        return cls(
            open_catalog(settings.registry_url, timeout=settings.timeout),
            GitTransport(settings.git, timeout=settings.timeout),
            retries=settings.retries,
            backoff=settings.backoff,
        )

    @property
    def registry_name(self) -> str:
        return self._catalog.location

    async def describe(self, name: str) -> PackageDescriptor:
        cached = self._descriptors.get(name)
        if cached is not None:
            return cached

        data = await with_retries(
            lambda: self._catalog.load(name),
            attempts=self._retries,
            backoff=self._backoff,
            what=f"catalog lookup of {name!r}",
        )
        if data is None:
            raise NotFound(name, self.registry_name)
        try:
            descriptor = PackageDescriptor.from_dict(data, expected_name=name)
        except ValueError as exc:
            raise InvalidDescriptor(f"{self.registry_name}/{name}", str(exc)) from exc
        self._descriptors[name] = descriptor
        return descriptor

    async def list_versions(self, name: str) -> list[Version]:
        descriptor = await self.describe(name)

        async def _list() -> list[str]:
            try:
                return await self._transport.list_tags(descriptor.repository)
            except GitCommandError as exc:
                if exc.missing_repository:
                    raise NotFound(name, descriptor.repository) from exc
                raise RegistryUnreachable(descriptor.repository, exc.stderr or str(exc)) from exc

        tags = await with_retries(
            _list,
            attempts=self._retries,
            backoff=self._backoff,
            what=f"listing tags of {name!r}",
        )
        versions = [v for v in (Version.try_parse(t) for t in tags) if v is not None]
        skipped = len(tags) - len(versions)
        if skipped:
            logger.debug("Ignored %d non-version tags in %s", skipped, descriptor.repository)
        return sort_descending(versions)

    async def fetch_source(
        self,
        name: str,
        version: Version,
        dest: Path,
        *,
        source: str | None = None,
    ) -> None:
        repository = source or (await self.describe(name)).repository
        tag = version.tag or str(version)

        async def _checkout() -> None:
            # A failed clone may leave files behind; git refuses a non-empty dest.
            await asyncio.to_thread(_clear_directory, dest)
            try:
                await self._transport.checkout(repository, tag, dest)
            except GitCommandError as exc:
                if exc.missing_ref:
                    raise VersionGone(name, str(version), tag) from exc
                if exc.missing_repository:
                    raise NotFound(name, repository) from exc
                raise RegistryUnreachable(repository, exc.stderr or str(exc)) from exc

        logger.info("Fetching %s@%s (%s)", name, version, tag)
        await with_retries(
            _checkout,
            attempts=self._retries,
            backoff=self._backoff,
            what=f"fetching {name}@{version}",
        )


def _clear_directory(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir():
            shutil.rmtree(child)
        else:
            child.unlink()

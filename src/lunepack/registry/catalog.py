"""Catalog sources: where package descriptors are read from.

A catalog is a directory with one descriptor file per package. It is
either served over HTTP(S) (the default catalog is a directory in a GitHub
repository, read through ``raw.githubusercontent.com``) or present on the
local filesystem. Descriptor files are named after the package, with ``/``
in scoped names replaced by ``__``::

    manifest/
        http.json
        owner__json.json

Each descriptor declares ``name``, ``description`` and ``repository``.
Local catalogs also accept ``.yaml`` / ``.yml`` descriptors.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml

from lunepack.exceptions import InvalidDescriptor, RegistryUnreachable
from lunepack.fsutil import safe_name
from lunepack.registry.http_client import DEFAULT_TIMEOUT, fetch_json

logger = logging.getLogger(__name__)


class Catalog(ABC):
    """A read-only source of raw descriptor data."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Where the catalog lives (URL or directory)."""

    @abstractmethod
    async def load(self, name: str) -> Any | None:
        """Return the parsed descriptor for *name*, or None if absent.

        Raises:
            RegistryUnreachable: If the catalog cannot be read.
        """


class HttpCatalog(Catalog):
    """Catalog served over HTTP(S), one ``<name>.json`` per package."""

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def location(self) -> str:
        return self._base_url

    async def load(self, name: str) -> Any | None:
        url = f"{self._base_url}/{safe_name(name)}.json"
        logger.debug("Fetching descriptor %s", url)
        return await fetch_json(url, timeout=self._timeout)


class DirectoryCatalog(Catalog):
    """Catalog on the local filesystem."""

    _SUFFIXES = (".json", ".yaml", ".yml")

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def location(self) -> str:
        return str(self._root)

    async def load(self, name: str) -> Any | None:
        if not self._root.is_dir():
            raise RegistryUnreachable(str(self._root), "catalog directory does not exist")
        stem = safe_name(name)
        for suffix in self._SUFFIXES:
            path = self._root / f"{stem}{suffix}"
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise RegistryUnreachable(str(path), f"unreadable descriptor: {exc}") from exc
            try:
                if suffix == ".json":
                    return json.loads(text)
                return yaml.safe_load(text)
            except (ValueError, yaml.YAMLError) as exc:
                raise InvalidDescriptor(str(path), str(exc)) from exc
        return None


def open_catalog(location: str, *, timeout: float = DEFAULT_TIMEOUT) -> Catalog:
    """Pick the catalog implementation for *location*."""
    if location.startswith(("http://", "https://")):
        return HttpCatalog(location, timeout=timeout)
    if location.startswith("file://"):
        location = location[len("file://"):]
    return DirectoryCatalog(Path(location).expanduser())

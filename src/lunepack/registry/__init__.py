"""Registry access: the package catalog and the git repositories behind it."""

from lunepack.registry.base import PackageDescriptor, Registry, normalize_repository
from lunepack.registry.catalog import Catalog, DirectoryCatalog, HttpCatalog, open_catalog
from lunepack.registry.client import GitRegistryClient
from lunepack.registry.git import GitCommandError, GitTransport
from lunepack.registry.retry import with_retries

__all__ = [
    "Catalog",
    "DirectoryCatalog",
    "GitCommandError",
    "GitRegistryClient",
    "GitTransport",
    "HttpCatalog",
    "PackageDescriptor",
    "Registry",
    "normalize_repository",
    "open_catalog",
    "with_retries",
]

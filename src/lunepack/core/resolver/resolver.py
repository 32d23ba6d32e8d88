"""Dependency resolution against a tag-derived registry.

The resolver turns a manifest's constraints into a lockfile with exactly
one version per package name:

1. Collect ``(constraint, required_by)`` requirements for every package
   reachable from the manifest through the current picks.
2. Fetch the version lists of newly seen packages concurrently (bounded by
   ``workers``) and join all results before deciding anything.
3. For each package, in name order: intersect its constraints
   symbolically (empty -> ``ConflictingConstraints``), then pick the
   greatest listed version satisfying all of them. A version pinned by the
   previous lockfile is kept while it still satisfies and the package was
   not explicitly unlocked.
4. Probe newly picked versions concurrently: fetch the tree into a
   temporary directory, fingerprint it, and read the package's own
   ``lunepack.yaml`` for transitive requirements.
5. Repeat until the picks stop changing.

Because every decision is made on fully gathered data in a fixed order,
the resulting lockfile is byte-identical for identical manifests and
registry states, regardless of network timing.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import yaml

from lunepack import MANIFEST_FILENAME
from lunepack.aio import gather_bounded
from lunepack.core.manifest import LockEntry, Lockfile, Manifest, manifest_from_dict
from lunepack.core.versioning import Version, VersionConstraint, sort_descending
from lunepack.exceptions import (
    ConflictingConstraints,
    ManifestError,
    NoMatchingVersion,
    ResolutionError,
)
from lunepack.install.fingerprint import fingerprint_tree
from lunepack.registry.base import Registry

logger = logging.getLogger(__name__)

ROOT = "<root>"


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Requirement:
    """One requirer's constraint on a package."""

    package: str
    constraint: VersionConstraint
    required_by: str


@dataclass
class PackageProbe:
    """What the resolver learned by fetching one package version."""

    name: str
    version: Version
    source: str
    fingerprint: str
    dependencies: dict[str, str] = field(default_factory=dict)


def canonical_version(version: Version) -> str:
    """Version string recorded in lockfiles (no tag prefix, no build metadata)."""
    text = f"{version.major}.{version.minor}.{version.patch}"
    if version.pre:
        text += "-" + ".".join(version.pre)
    return text


def read_package_dependencies(tree: Path, name: str) -> dict[str, str]:
    """Read the dependency constraints a fetched package declares.

    Packages without a manifest have no dependencies. A package manifest
    may omit ``name``; the registry name is used.

    Raises:
        ManifestError: If the package manifest is malformed.
    """
    path = tree / MANIFEST_FILENAME
    if not path.is_file():
        return {}
    source = f"{name}/{MANIFEST_FILENAME}"
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ManifestError(f"{source}: invalid YAML: {exc}") from exc
    if isinstance(data, dict):
        data.setdefault("name", name)
    return dict(manifest_from_dict(data, source=source).dependencies)


# ---------------------------------------------------------------------------
# DependencyResolver
# ---------------------------------------------------------------------------


class DependencyResolver:
    """Greedy newest-compatible resolver.

    Args:
        registry: Registry handle used for version lists and probes.
        workers: Maximum number of concurrent registry operations.
        locked: Previous lockfile whose pins are preferred when still valid.
        unlock: Package names whose previous pins are ignored.
        max_rounds: Upper bound on refinement rounds before giving up.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        workers: int = 8,
        locked: Lockfile | None = None,
        unlock: Iterable[str] = (),
        max_rounds: int = 64,
    ) -> None:
        self._registry = registry
        self._workers = workers
        self._locked = locked
        self._unlock = frozenset(unlock)
        self._max_rounds = max_rounds
        self._versions: dict[str, list[Version]] = {}
        self._probes: dict[tuple[str, Version], PackageProbe] = {}

    async def resolve(self, manifest: Manifest) -> Lockfile:
        """Resolve *manifest* into a lockfile.

        Raises:
            ConflictingConstraints: Two requirers' constraints cannot both hold.
            NoMatchingVersion: No listed version satisfies the constraints.
            ResolutionError: Resolution did not converge, or a package
                manifest is invalid.
            NotFound, RegistryUnreachable, VersionGone: From the registry.
        """
        picks: dict[str, Version] = {}
        for round_no in range(1, self._max_rounds + 1):
            requirements = self._collect(manifest, picks)
            await self._load_versions(sorted(requirements))

            new_picks: dict[str, Version] = {}
            for name in sorted(requirements):
                reqs = requirements[name]
                self._check_conflicts(name, reqs)
                new_picks[name] = self._choose(name, reqs)

            await self._probe_all(sorted(new_picks.items()))
            logger.debug("Resolution round %d: %s", round_no,
                         {n: str(v) for n, v in new_picks.items()})
            if new_picks == picks:
                return self._to_lockfile(manifest, picks)
            picks = new_picks

        raise ResolutionError(
            f"Resolution did not converge after {self._max_rounds} rounds"
        )

    # -- Requirement collection ---------------------------------------------

    def _collect(
        self, manifest: Manifest, picks: dict[str, Version]
    ) -> dict[str, list[Requirement]]:
        """Requirements of every package reachable from the root through *picks*."""
        requirements: dict[str, list[Requirement]] = {}
        for name, constraint in manifest.constraints().items():
            requirements.setdefault(name, []).append(Requirement(name, constraint, ROOT))

        visited: set[str] = set()
        frontier = sorted(requirements)
        while frontier:
            nxt: set[str] = set()
            for name in frontier:
                if name in visited:
                    continue
                visited.add(name)
                version = picks.get(name)
                probe = self._probes.get((name, version)) if version is not None else None
                if probe is None:
                    continue
                requirer = f"{name}@{canonical_version(version)}"
                for dep, raw in sorted(probe.dependencies.items()):
                    requirements.setdefault(dep, []).append(
                        Requirement(dep, VersionConstraint(raw), requirer)
                    )
                    if dep not in visited:
                        nxt.add(dep)
            frontier = sorted(nxt)
        return requirements

    # -- Registry queries ---------------------------------------------------

    async def _load_versions(self, names: list[str]) -> None:
        missing = [n for n in names if n not in self._versions]
        if not missing:
            return

        def _factory(name: str):
            return lambda: self._registry.list_versions(name)

        results = await gather_bounded([_factory(n) for n in missing], limit=self._workers)
        for name, versions in zip(missing, results):
            self._versions[name] = sort_descending(list(versions))

    async def _probe_all(self, picks: list[tuple[str, Version]]) -> None:
        todo = [(n, v) for n, v in picks if (n, v) not in self._probes]
        if not todo:
            return

        def _factory(name: str, version: Version):
            return lambda: self._probe(name, version)

        results = await gather_bounded([_factory(n, v) for n, v in todo], limit=self._workers)
        for probe in results:
            self._probes[(probe.name, probe.version)] = probe

    async def _probe(self, name: str, version: Version) -> PackageProbe:
        descriptor = await self._registry.describe(name)
        with tempfile.TemporaryDirectory(prefix="lunepack-probe-") as tmp:
            tree = Path(tmp) / "tree"
            tree.mkdir()
            await self._registry.fetch_source(
                name, version, tree, source=descriptor.repository
            )
            fingerprint = fingerprint_tree(tree)
            try:
                dependencies = read_package_dependencies(tree, name)
            except ManifestError as exc:
                raise ResolutionError(
                    f"{name}@{canonical_version(version)} has an invalid manifest: {exc}"
                ) from exc
        logger.debug("Probed %s@%s: %s", name, version, fingerprint)
        return PackageProbe(
            name=name,
            version=version,
            source=descriptor.repository,
            fingerprint=fingerprint,
            dependencies=dependencies,
        )

    # -- Decisions ----------------------------------------------------------

    @staticmethod
    def _check_conflicts(name: str, reqs: list[Requirement]) -> None:
        for i, a in enumerate(reqs):
            for b in reqs[i + 1:]:
                if not a.constraint.is_compatible_with(b.constraint):
                    raise ConflictingConstraints(
                        name, str(a.constraint), a.required_by,
                        str(b.constraint), b.required_by,
                    )

    def _choose(self, name: str, reqs: list[Requirement]) -> Version:
        available = self._versions.get(name, [])
        candidates = [
            v for v in available
            if all(r.constraint.satisfies(v) for r in reqs)
        ]
        if not candidates:
            combined = ",".join(str(r.constraint) for r in reqs)
            raise NoMatchingVersion(name, combined, [str(v) for v in available])

        if self._locked is not None and name not in self._unlock:
            entry = self._locked.get_entry(name)
            if entry is not None:
                pinned = Version.try_parse(entry.version)
                for candidate in candidates:
                    if candidate == pinned:
                        return candidate
        return candidates[0]

    def _to_lockfile(self, manifest: Manifest, picks: dict[str, Version]) -> Lockfile:
        lockfile = Lockfile()
        for name in sorted(picks):
            probe = self._probes[(name, picks[name])]
            version = picks[name]
            lockfile.add_entry(LockEntry(
                name=name,
                version=canonical_version(version),
                tag=version.tag or canonical_version(version),
                source=probe.source,
                fingerprint=probe.fingerprint,
                dependencies={
                    dep: canonical_version(picks[dep])
                    for dep in sorted(probe.dependencies)
                    if dep in picks
                },
            ))
        lockfile.metadata.manifest_digest = manifest.digest()
        return lockfile


async def resolve(
    manifest: Manifest,
    registry: Registry,
    *,
    workers: int = 8,
    locked: Lockfile | None = None,
    unlock: Iterable[str] = (),
) -> Lockfile:
    """Convenience wrapper around :class:`DependencyResolver`."""
    resolver = DependencyResolver(registry, workers=workers, locked=locked, unlock=unlock)
    return await resolver.resolve(manifest)

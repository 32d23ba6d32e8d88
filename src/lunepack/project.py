"""Project pipelines: init, install, update, remove, build, graph, verify.

Each pipeline is a synchronous function over a project directory that runs
its network-bound stages with ``asyncio.run``. The registry and store are
built from :class:`~lunepack.config.Settings` unless passed in explicitly.

Writes happen only after the stage producing them succeeds: a failed
resolution leaves both the manifest and the lockfile untouched, and the
lockfile is always replaced atomically.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from lunepack import LOCKFILE_FILENAME, LUAURC_FILENAME, MANIFEST_FILENAME
from lunepack.bundle import BuildResult, BundleBuilder, RuntimeLocator, resolve_target
from lunepack.config import Settings, load_settings
from lunepack.core.manifest import (
    LockEntry,
    Lockfile,
    Manifest,
    is_valid_package_name,
    read_manifest,
    write_manifest,
)
from lunepack.core.resolver import resolve
from lunepack.core.versioning import Version, VersionConstraint
from lunepack.exceptions import LockfileError, ManifestError, ResolutionError
from lunepack.fsutil import atomic_write_text
from lunepack.graph import GraphPolicy, ModuleGraph, build_graph
from lunepack.install import (
    InstallReport,
    Installer,
    PackageStore,
    StoreEntry,
    verify_installed,
    write_luaurc,
)
from lunepack.registry import GitRegistryClient, Registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Project files
# ---------------------------------------------------------------------------


class Project:
    """Paths and file access for one project directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def lockfile_path(self) -> Path:
        return self.root / LOCKFILE_FILENAME

    @property
    def luaurc_path(self) -> Path:
        return self.root / LUAURC_FILENAME

    def read_manifest(self) -> Manifest:
        return read_manifest(self.manifest_path)

    def read_lockfile(self) -> Lockfile | None:
        """The current lockfile, or None when the project has none yet."""
        if not self.lockfile_path.exists():
            return None
        return Lockfile.read(self.lockfile_path)

    def require_lockfile(self, manifest: Manifest) -> Lockfile:
        """The lockfile, which must exist and match *manifest*.

        Raises:
            LockfileError: If the lockfile is missing or out of date.
        """
        lockfile = self.read_lockfile()
        if lockfile is None:
            raise LockfileError(f"No lockfile at {self.lockfile_path}; run `lunepack install`")
        if not lockfile.matches_manifest(manifest):
            raise LockfileError(
                f"{self.lockfile_path.name} is out of date with {self.manifest_path.name}; "
                "run `lunepack install`"
            )
        return lockfile


@dataclass
class Context:
    """Everything a pipeline needs besides the project itself."""

    settings: Settings
    registry: Registry
    store: PackageStore


def _context(
    manifest: Manifest,
    settings: Settings | None,
    registry: Registry | None,
    store: PackageStore | None,
) -> Context:
    settings = settings or load_settings(manifest_registry=manifest.registry)
    return Context(
        settings=settings,
        registry=registry or GitRegistryClient.from_settings(settings),
        store=store or PackageStore(settings.store_dir),
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class InitResult:
    created: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


@dataclass
class InstallOutcome:
    """Result of ``install``, ``update`` and ``remove``.

    Attributes:
        lockfile: The lockfile now on disk.
        report: What the installer fetched and reused.
        resolved: False when the existing lockfile was reused as-is.
        added: Dependencies added to the manifest, name -> constraint.
        changes: Lockfile diff against the previous lockfile.
    """

    lockfile: Lockfile
    report: InstallReport
    resolved: bool = True
    added: dict[str, str] = field(default_factory=dict)
    changes: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_package_spec(spec: str) -> tuple[str, str | None]:
    """Split ``name@constraint`` (or a bare ``name``).

    Raises:
        ManifestError: On an invalid name or constraint.
    """
    name, sep, constraint = spec.partition("@")
    name = name.strip()
    if not is_valid_package_name(name):
        raise ManifestError(f"Invalid package name {name!r}")
    if not sep:
        return name, None
    constraint = constraint.strip()
    try:
        VersionConstraint(constraint)
    except ValueError as exc:
        raise ManifestError(f"Invalid constraint {constraint!r} for {name!r}: {exc}") from exc
    return name, constraint


def _diff(old: Lockfile | None, new: Lockfile) -> dict[str, Any]:
    if old is None:
        return {"added": new.package_names, "removed": [], "changed": []}
    return old.diff(new)


async def _install_and_alias(
    project: Project, manifest: Manifest, lockfile: Lockfile, ctx: Context
) -> InstallReport:
    installer = Installer(ctx.registry, ctx.store, workers=ctx.settings.workers)
    report = await installer.install(lockfile)
    write_luaurc(
        project.root,
        report.paths,
        store_root=ctx.store.root,
        project_aliases=manifest.aliases,
    )
    return report


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


def init_project(root: Path, name: str | None = None) -> InitResult:
    """Scaffold a manifest, an empty lockfile and ``.luaurc``.

    Existing files are never overwritten.
    """
    project = Project(root)
    project.root.mkdir(parents=True, exist_ok=True)
    result = InitResult()

    if project.manifest_path.exists():
        result.skipped.append(project.manifest_path)
        manifest = project.read_manifest()
    else:
        manifest = Manifest(name=name or project.root.name)
        write_manifest(project.manifest_path, manifest)
        result.created.append(project.manifest_path)

    if project.lockfile_path.exists():
        result.skipped.append(project.lockfile_path)
    else:
        lockfile = Lockfile()
        lockfile.metadata.manifest_digest = manifest.digest()
        lockfile.write(project.lockfile_path)
        result.created.append(project.lockfile_path)

    if project.luaurc_path.exists():
        result.skipped.append(project.luaurc_path)
    else:
        atomic_write_text(project.luaurc_path, '{\n  "aliases": {}\n}\n')
        result.created.append(project.luaurc_path)

    logger.info("Initialized %s (%d created, %d skipped)",
                project.root, len(result.created), len(result.skipped))
    return result


def install(
    root: Path,
    names: Sequence[str] = (),
    settings: Settings | None = None,
    *,
    registry: Registry | None = None,
    store: PackageStore | None = None,
) -> InstallOutcome:
    """Add packages (``name`` or ``name@constraint``), resolve, and install.

    Without *names* an up-to-date lockfile is reused without contacting the
    registry for resolution.
    """
    project = Project(root)
    manifest = project.read_manifest()
    ctx = _context(manifest, settings, registry, store)
    locked = project.read_lockfile()

    requested = [parse_package_spec(spec) for spec in names]
    candidate = manifest
    for name, constraint in requested:
        candidate = candidate.with_dependency(
            name, constraint or manifest.dependencies.get(name, "*")
        )

    async def _run() -> InstallOutcome:
        if not requested and locked is not None and locked.matches_manifest(candidate):
            logger.info("Lockfile is up to date")
            report = await _install_and_alias(project, candidate, locked, ctx)
            return InstallOutcome(lockfile=locked, report=report, resolved=False)

        lockfile = await resolve(
            candidate, ctx.registry, workers=ctx.settings.workers, locked=locked
        )
        final = candidate
        added: dict[str, str] = {}
        for name, constraint in requested:
            if constraint is None and name in manifest.dependencies:
                continue
            if constraint is None:
                entry = lockfile.get_entry(name)
                if entry is None:
                    raise ResolutionError(f"Resolution did not produce a pin for {name!r}")
                constraint = str(VersionConstraint.compatible_with(Version.parse(entry.version)))
            added[name] = constraint
            final = final.with_dependency(name, constraint)
        lockfile.metadata.manifest_digest = final.digest()

        if final != manifest:
            write_manifest(project.manifest_path, final)
        lockfile.write(project.lockfile_path)
        report = await _install_and_alias(project, final, lockfile, ctx)
        return InstallOutcome(
            lockfile=lockfile,
            report=report,
            added=added,
            changes=_diff(locked, lockfile),
        )

    return asyncio.run(_run())


def update(
    root: Path,
    names: Sequence[str] = (),
    settings: Settings | None = None,
    *,
    registry: Registry | None = None,
    store: PackageStore | None = None,
) -> InstallOutcome:
    """Re-resolve ignoring lock pins for *names* (every package when empty)."""
    project = Project(root)
    manifest = project.read_manifest()
    ctx = _context(manifest, settings, registry, store)
    locked = project.read_lockfile()

    known = set(manifest.dependencies) | set(locked.package_names if locked else [])
    unknown = sorted(n for n in names if n not in known)
    if unknown:
        raise ManifestError(f"Not a dependency: {', '.join(unknown)}")

    async def _run() -> InstallOutcome:
        lockfile = await resolve(
            manifest,
            ctx.registry,
            workers=ctx.settings.workers,
            locked=locked if names else None,
            unlock=names,
        )
        lockfile.write(project.lockfile_path)
        report = await _install_and_alias(project, manifest, lockfile, ctx)
        return InstallOutcome(lockfile=lockfile, report=report, changes=_diff(locked, lockfile))

    return asyncio.run(_run())


def remove(
    root: Path,
    names: Sequence[str],
    settings: Settings | None = None,
    *,
    registry: Registry | None = None,
    store: PackageStore | None = None,
) -> InstallOutcome:
    """Drop dependencies from the manifest and re-resolve the rest."""
    project = Project(root)
    manifest = project.read_manifest()
    missing = sorted(n for n in names if n not in manifest.dependencies)
    if missing:
        raise ManifestError(f"Not a dependency: {', '.join(missing)}")
    ctx = _context(manifest, settings, registry, store)
    locked = project.read_lockfile()
    trimmed = manifest.without_dependencies(list(names))

    async def _run() -> InstallOutcome:
        lockfile = await resolve(
            trimmed, ctx.registry, workers=ctx.settings.workers, locked=locked
        )
        write_manifest(project.manifest_path, trimmed)
        lockfile.write(project.lockfile_path)
        report = await _install_and_alias(project, trimmed, lockfile, ctx)
        return InstallOutcome(lockfile=lockfile, report=report, changes=_diff(locked, lockfile))

    return asyncio.run(_run())


def _prepared_graph(
    project: Project,
    entry: Path,
    ctx: Context,
    manifest: Manifest,
    policy: GraphPolicy | None,
) -> ModuleGraph:
    lockfile = project.require_lockfile(manifest)
    asyncio.run(_install_and_alias(project, manifest, lockfile, ctx))
    return build_graph(
        entry,
        project.root,
        lockfile=lockfile,
        store=ctx.store,
        policy=policy,
        aliases=manifest.aliases,
    )


def graph(
    root: Path,
    entry: Path,
    settings: Settings | None = None,
    *,
    policy: GraphPolicy | None = None,
    registry: Registry | None = None,
    store: PackageStore | None = None,
) -> ModuleGraph:
    """Build the module graph of *entry* against the locked packages."""
    project = Project(root)
    manifest = project.read_manifest()
    ctx = _context(manifest, settings, registry, store)
    return _prepared_graph(project, entry, ctx, manifest, policy)


def build(
    root: Path,
    entry: Path,
    output: Path,
    settings: Settings | None = None,
    *,
    target: str | None = None,
    runtime: Path | None = None,
    policy: GraphPolicy | None = None,
    registry: Registry | None = None,
    store: PackageStore | None = None,
) -> BuildResult:
    """Bundle *entry* and its requires with a runtime into *output*.

    Never re-resolves: the lockfile must already match the manifest.
    Missing store entries are installed from the lockfile.
    """
    project = Project(root)
    manifest = project.read_manifest()
    ctx = _context(manifest, settings, registry, store)

    resolved_target = resolve_target(target)
    runtime_path = RuntimeLocator(ctx.settings.runtime_dirs).locate(resolved_target, runtime)

    module_graph = _prepared_graph(project, entry, ctx, manifest, policy)
    output_path = Path(output)
    if not output_path.is_absolute():
        output_path = project.root / output_path
    if resolved_target.exe_suffix and not output_path.suffix:
        output_path = output_path.with_suffix(resolved_target.exe_suffix)
    return BundleBuilder().build(module_graph, runtime_path, output_path)


def verify(
    root: Path,
    settings: Settings | None = None,
    *,
    store: PackageStore | None = None,
) -> dict[str, str]:
    """Check store entries against the lockfile; returns name -> problem."""
    project = Project(root)
    manifest = project.read_manifest()
    settings = settings or load_settings(manifest_registry=manifest.registry)
    store = store or PackageStore(settings.store_dir)
    lockfile = project.read_lockfile()
    if lockfile is None:
        raise LockfileError(f"No lockfile at {project.lockfile_path}; run `lunepack install`")
    problems = {f"lockfile:{i}": p for i, p in enumerate(lockfile.validate())}
    problems.update(verify_installed(store, lockfile))
    return problems


def prune(
    root: Path,
    keep_projects: Sequence[Path] = (),
    settings: Settings | None = None,
    *,
    store: PackageStore | None = None,
    dry_run: bool = False,
) -> list[StoreEntry]:
    """Delete store entries not locked by *root* or any of *keep_projects*.

    The store is shared between projects, so every project whose packages
    must survive has to be listed. Each listed project needs a lockfile.
    """
    project = Project(root)
    manifest = project.read_manifest()
    settings = settings or load_settings(manifest_registry=manifest.registry)
    store = store or PackageStore(settings.store_dir)

    keep: list[LockEntry] = []
    for owner in [project, *(Project(p) for p in keep_projects)]:
        lockfile = owner.read_lockfile()
        if lockfile is None:
            raise LockfileError(f"No lockfile at {owner.lockfile_path}; refusing to prune")
        keep.extend(lockfile.entries)
    return store.prune(keep, dry_run=dry_run)

"""Resolution of require targets to files on disk.

Supported forms, relative to the requiring module:

- ``./x`` and ``../x``: relative to the requiring file's directory, never
  escaping the root of its project or package.
- ``@self/x``: relative to the requiring module's own project or package root.
- ``@<alias>/x``: a manifest alias (project-relative directory).
- ``@<package>`` and ``@<package>/x``: an installed package.
- ``<package>/x``: an installed package, without the ``@``.
- ``@owner__pkg/x``: a scoped package through its ``.luaurc`` alias name.

Each resolved path is tried as ``<p>.luau``, ``<p>.lua``, ``<p>/init.luau``
and ``<p>/init.lua``, in that order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Mapping, Sequence

from lunepack.install.luaurc import alias_name, detect_entry_dir

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES: tuple[str, ...] = (".luau", ".lua")
INIT_NAMES: tuple[str, ...] = ("init.luau", "init.lua")
DEFAULT_BUILTIN_PREFIXES: tuple[str, ...] = ("@lune/",)


@dataclass(frozen=True)
class ResolvedModule:
    """A module file and the identity it is bundled under.

    Attributes:
        module_id: ``lib/util`` for project modules, ``@pkg/init`` for
            package modules.
        path: Absolute path of the source file.
        package: Owning package name, or None for project modules.
    """

    module_id: str
    path: Path
    package: str | None = None


class ModuleResolver:
    """Maps ``(target, requiring module)`` to a :class:`ResolvedModule`.

    Args:
        project_root: Directory holding the manifest.
        packages: Package name -> store entry directory.
        aliases: Alias -> project-relative directory.
        builtin_prefixes: Target prefixes provided by the runtime itself.
    """

    def __init__(
        self,
        project_root: Path,
        *,
        packages: Mapping[str, Path] | None = None,
        aliases: Mapping[str, str] | None = None,
        builtin_prefixes: Sequence[str] = DEFAULT_BUILTIN_PREFIXES,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.packages = {name: Path(p).resolve() for name, p in (packages or {}).items()}
        self._alias_packages = {
            alias_name(name): name for name in self.packages if alias_name(name) != name
        }
        self.aliases = {k.lstrip("@"): v for k, v in (aliases or {}).items()}
        self.builtin_prefixes = tuple(builtin_prefixes)

    # -- Identity -----------------------------------------------------------

    def root_of(self, package: str | None) -> Path:
        if package is None:
            return self.project_root
        return self.packages[package]

    def module_for_path(self, path: Path, package: str | None = None) -> ResolvedModule:
        """Build the :class:`ResolvedModule` for a file under a known root."""
        path = Path(path).resolve()
        rel = PurePosixPath(path.relative_to(self.root_of(package)).as_posix())
        stem = str(rel.with_suffix("")) if rel.suffix in SOURCE_SUFFIXES else str(rel)
        module_id = stem if package is None else f"@{package}/{stem}"
        return ResolvedModule(module_id=module_id, path=path, package=package)

    def owner_of(self, path: Path) -> str | None:
        """Package owning *path*, or None when it belongs to the project."""
        resolved = Path(path).resolve()
        for name, root in sorted(self.packages.items(), key=lambda kv: -len(str(kv[1]))):
            if resolved == root or root in resolved.parents:
                return name
        return None

    # -- Resolution ---------------------------------------------------------

    def is_builtin(self, target: str) -> bool:
        return any(target.startswith(p) or target == p.rstrip("/") for p in self.builtin_prefixes)

    def resolve(self, target: str, requirer: ResolvedModule) -> ResolvedModule | None:
        """Resolve *target* as required from *requirer*; None when unresolvable."""
        if target.startswith("./") or target.startswith("../"):
            root = self.root_of(requirer.package)
            return self._find(requirer.path.parent / target, root, requirer.package)

        if target.startswith("@"):
            head, _, rest = target[1:].partition("/")
            if head == "self":
                return self._find(self.root_of(requirer.package) / rest, self.root_of(requirer.package), requirer.package)
            if head in self.aliases:
                root = self.project_root
                return self._find(root / self.aliases[head] / rest, root, None)
            return self._resolve_package(target[1:])

        return self._resolve_package(target)

    def _resolve_package(self, spec: str) -> ResolvedModule | None:
        parts = spec.split("/")
        # owner/pkg names take precedence over a pkg named "owner".
        for width in (2, 1):
            name = "/".join(parts[:width])
            if len(parts) >= width and name in self.packages:
                return self._package_module(name, "/".join(parts[width:]))
        aliased = self._alias_packages.get(parts[0])
        if aliased is not None:
            return self._package_module(aliased, "/".join(parts[1:]), from_entry=True)
        return None

    def _package_module(self, name: str, rest: str, *, from_entry: bool = False) -> ResolvedModule | None:
        """Resolve *rest* inside package *name*.

        Paths are tried against the package root, then its entry directory.
        With *from_entry* (the ``.luaurc`` alias form, which points at the
        entry directory) the order is reversed.
        """
        if not rest:
            return self._package_entry(name)
        root = self.packages[name]
        bases = [root, detect_entry_dir(root)]
        if from_entry:
            bases.reverse()
        for base in dict.fromkeys(bases):
            found = self._find(base / rest, root, name)
            if found is not None:
                return found
        return None

    def _package_entry(self, name: str) -> ResolvedModule | None:
        root = self.packages[name]
        entry_dir = detect_entry_dir(root)
        found = self._find(entry_dir, root, name)
        if found is not None:
            return found
        for main in ("main.luau", "main.lua"):
            candidate = entry_dir / main
            if candidate.is_file():
                return self.module_for_path(candidate, name)
        return None

    def _find(self, base: Path, root: Path, package: str | None) -> ResolvedModule | None:
        base = Path(base)
        candidates = [base.with_name(base.name + s) for s in SOURCE_SUFFIXES]
        candidates += [base / n for n in INIT_NAMES]
        for candidate in candidates:
            if not candidate.is_file():
                continue
            resolved = candidate.resolve()
            if resolved != root and root not in resolved.parents:
                logger.debug("%s escapes %s", candidate, root)
                continue
            return self.module_for_path(resolved, package)
        return None

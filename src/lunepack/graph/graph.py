"""Module graph construction.

Starting from an entry file, every statically required module is loaded
once (a visited set keyed by module id), so diamonds share a node. Cycles
are found with a depth-first colour stack and handled according to the
:class:`GraphPolicy`, as are unresolved and dynamic requires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping

from lunepack.core.manifest import Lockfile
from lunepack.exceptions import (
    ConfigError,
    DynamicRequire,
    GraphError,
    ModuleCycle,
    UnresolvedRequire,
)
from lunepack.graph.requires import extract_requires
from lunepack.graph.resolver import DEFAULT_BUILTIN_PREFIXES, ModuleResolver, ResolvedModule
from lunepack.install.store import PackageStore

logger = logging.getLogger(__name__)

KIND_MODULE = "module"
KIND_BUILTIN = "builtin"
KIND_UNRESOLVED = "unresolved"
KIND_DYNAMIC = "dynamic"

_CYCLE_MODES = ("ignore", "warn", "error")
_STRICT_MODES = ("warn", "error")


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequireRef:
    """One require in a module, with how it resolved."""

    target: str
    line: int
    resolved_id: str | None
    kind: str


@dataclass
class ModuleNode:
    module_id: str
    path: Path
    source: bytes
    requires: list[RequireRef] = field(default_factory=list)
    package: str | None = None

    def dependencies(self) -> list[str]:
        """Resolved module ids in require order, without duplicates."""
        seen: dict[str, None] = {}
        for ref in self.requires:
            if ref.kind == KIND_MODULE and ref.resolved_id is not None:
                seen.setdefault(ref.resolved_id, None)
        return list(seen)


@dataclass(frozen=True)
class GraphIssue:
    """A policy violation recorded as a warning."""

    kind: str
    module_id: str
    message: str
    line: int = 0


@dataclass(frozen=True)
class GraphPolicy:
    """How the graph builder treats cycles, unresolved and dynamic requires.

    ``cycles`` accepts ``ignore``, ``warn`` or ``error``; ``unresolved`` and
    ``dynamic`` accept ``warn`` or ``error``.
    """

    cycles: str = "warn"
    unresolved: str = "warn"
    dynamic: str = "warn"
    builtin_prefixes: tuple[str, ...] = DEFAULT_BUILTIN_PREFIXES

    def __post_init__(self) -> None:
        if self.cycles not in _CYCLE_MODES:
            raise ConfigError(f"cycles must be one of {', '.join(_CYCLE_MODES)} (got {self.cycles!r})")
        for attr in ("unresolved", "dynamic"):
            value = getattr(self, attr)
            if value not in _STRICT_MODES:
                raise ConfigError(f"{attr} must be one of {', '.join(_STRICT_MODES)} (got {value!r})")

    @classmethod
    def strict(cls, *, cycles: str = "error") -> GraphPolicy:
        return cls(cycles=cycles, unresolved="error", dynamic="error")


@dataclass
class ModuleGraph:
    """Modules reachable from an entry, in discovery order."""

    entry_id: str
    nodes: dict[str, ModuleNode] = field(default_factory=dict)
    issues: list[GraphIssue] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self.nodes

    def __iter__(self) -> Iterator[ModuleNode]:
        return iter(self.nodes.values())

    @property
    def entry(self) -> ModuleNode:
        return self.nodes[self.entry_id]

    def edges(self) -> list[tuple[str, str]]:
        return [(node.module_id, dep) for node in self for dep in node.dependencies()]

    def builtins(self) -> list[str]:
        found = {ref.target for node in self for ref in node.requires if ref.kind == KIND_BUILTIN}
        return sorted(found)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class GraphBuilder:
    """Walks require edges from an entry module."""

    def __init__(self, resolver: ModuleResolver, policy: GraphPolicy | None = None) -> None:
        self.resolver = resolver
        self.policy = policy or GraphPolicy()
        self._targets: dict[str, ResolvedModule] = {}

    def _flag(self, graph: ModuleGraph, error: GraphError, kind: str, mode: str, line: int = 0) -> None:
        if mode == "error":
            raise error
        logger.warning("%s", error)
        graph.issues.append(GraphIssue(kind=kind, module_id=error.module, message=str(error), line=line))

    def _load(self, module: ResolvedModule, graph: ModuleGraph) -> ModuleNode:
        try:
            source = module.path.read_bytes()
        except OSError as exc:
            raise GraphError(
                f"Cannot read {module.path}: {exc}", module=module.module_id, path=str(module.path)
            ) from exc

        node = ModuleNode(
            module_id=module.module_id, path=module.path, source=source, package=module.package
        )
        for call in extract_requires(source):
            where = f"{module.module_id}:{call.line}"
            if call.target is None:
                node.requires.append(RequireRef(call.expression, call.line, None, KIND_DYNAMIC))
                self._flag(
                    graph,
                    DynamicRequire(
                        f"Dynamic require at {where}: require({call.expression})",
                        module=module.module_id,
                        path=str(module.path),
                    ),
                    KIND_DYNAMIC,
                    self.policy.dynamic,
                    call.line,
                )
                continue
            if self.resolver.is_builtin(call.target):
                node.requires.append(RequireRef(call.target, call.line, None, KIND_BUILTIN))
                continue
            target = self.resolver.resolve(call.target, module)
            if target is None:
                node.requires.append(RequireRef(call.target, call.line, None, KIND_UNRESOLVED))
                self._flag(
                    graph,
                    UnresolvedRequire(
                        f"Cannot resolve require({call.target!r}) at {where}",
                        module=module.module_id,
                        path=str(module.path),
                    ),
                    KIND_UNRESOLVED,
                    self.policy.unresolved,
                    call.line,
                )
                continue
            node.requires.append(RequireRef(call.target, call.line, target.module_id, KIND_MODULE))
            self._targets[target.module_id] = target
        return node

    def build(self, entry: Path) -> ModuleGraph:
        """Build the graph reachable from the *entry* file.

        Raises:
            GraphError: If the entry cannot be read, or (per policy) on an
                unresolved require, a dynamic require, or a cycle.
        """
        entry_path = Path(entry)
        if not entry_path.is_absolute():
            entry_path = self.resolver.project_root / entry_path
        if not entry_path.is_file():
            raise GraphError(f"Entry module not found: {entry_path}", path=str(entry_path))

        try:
            root = self.resolver.module_for_path(entry_path, self.resolver.owner_of(entry_path))
        except ValueError as exc:
            raise GraphError(
                f"Entry module {entry_path} is outside the project {self.resolver.project_root}",
                path=str(entry_path),
            ) from exc
        graph = ModuleGraph(entry_id=root.module_id)
        self._targets = {}

        on_stack: list[str] = []
        finished: set[str] = set()
        graph.nodes[root.module_id] = self._load(root, graph)
        stack: list[tuple[str, Iterator[str]]] = [
            (root.module_id, iter(graph.nodes[root.module_id].dependencies()))
        ]
        on_stack.append(root.module_id)

        while stack:
            current, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_stack.pop()
                finished.add(current)
                continue
            if child in finished:
                continue
            if child in on_stack:
                cycle = on_stack[on_stack.index(child):] + [child]
                graph.cycles.append(cycle)
                if self.policy.cycles == "error":
                    raise ModuleCycle(cycle)
                if self.policy.cycles == "warn":
                    message = "Require cycle: " + " -> ".join(cycle)
                    logger.warning("%s", message)
                    graph.issues.append(GraphIssue(kind="cycle", module_id=child, message=message))
                continue
            graph.nodes[child] = self._load(self._targets[child], graph)
            stack.append((child, iter(graph.nodes[child].dependencies())))
            on_stack.append(child)

        logger.info("Module graph: %d module(s) from %s", len(graph), graph.entry_id)
        return graph


def build_graph(
    entry: Path,
    project_root: Path,
    *,
    lockfile: Lockfile | None = None,
    store: PackageStore | None = None,
    policy: GraphPolicy | None = None,
    aliases: Mapping[str, str] | None = None,
) -> ModuleGraph:
    """Build the module graph of a project.

    Packages named in *lockfile* resolve to their entries in *store*.
    """
    packages: dict[str, Path] = {}
    if lockfile is not None and store is not None:
        packages = {e.name: store.path_for(e) for e in lockfile.entries}
    policy = policy or GraphPolicy()
    resolver = ModuleResolver(
        project_root,
        packages=packages,
        aliases=aliases,
        builtin_prefixes=policy.builtin_prefixes,
    )
    return GraphBuilder(resolver, policy).build(entry)

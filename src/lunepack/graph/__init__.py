"""Module Graph Builder --- static require analysis of Luau sources."""

from lunepack.graph.graph import (
    GraphBuilder,
    GraphIssue,
    GraphPolicy,
    ModuleGraph,
    ModuleNode,
    RequireRef,
    build_graph,
)
from lunepack.graph.requires import RequireCall, extract_requires
from lunepack.graph.resolver import ModuleResolver, ResolvedModule

__all__ = [
    "GraphBuilder",
    "GraphIssue",
    "GraphPolicy",
    "ModuleGraph",
    "ModuleNode",
    "ModuleResolver",
    "RequireCall",
    "RequireRef",
    "ResolvedModule",
    "build_graph",
    "extract_requires",
]

"""Tests for require resolution and module graph construction."""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import write_files
from lunepack.exceptions import (
    ConfigError,
    DynamicRequire,
    GraphError,
    ModuleCycle,
    UnresolvedRequire,
)
from lunepack.graph import GraphBuilder, GraphPolicy, ModuleGraph, ModuleResolver, build_graph
from lunepack.graph.graph import KIND_BUILTIN, KIND_DYNAMIC, KIND_UNRESOLVED
from lunepack.install.luaurc import read_luaurc, write_luaurc


def _build(
    root: Path, entry: str = "main.luau", policy: GraphPolicy | None = None, **kwargs: object
) -> ModuleGraph:
    resolver = ModuleResolver(root, **kwargs)  # type: ignore[arg-type]
    return GraphBuilder(resolver, policy).build(root / entry)


@pytest.fixture
def diamond(tmp_path: Path) -> Path:
    """main -> a, b; a -> c; b -> c; main also requires a runtime builtin."""
    root = tmp_path / "project"
    write_files(root, {
        "main.luau": 'local fs = require("@lune/fs")\nlocal a = require("./a")\nlocal b = require("./b")\n',
        "a.luau": 'return require("./c")\n',
        "b.luau": 'return require("./c")\n',
        "c.luau": "return {}\n",
        "unused.luau": "return 'never required'\n",
    })
    return root


@pytest.fixture
def packages(tmp_path: Path) -> dict[str, Path]:
    """Two installed package trees with different entry layouts."""
    http = tmp_path / "store" / "http" / "1.3.0-aaaa"
    write_files(http, {
        "init.luau": 'return require("./client")\n',
        "client.luau": 'return require("@self/util")\n',
        "util.luau": "return {}\n",
    })
    json_pkg = tmp_path / "store" / "owner__json" / "0.4.2-bbbb"
    write_files(json_pkg, {
        "lib/init.luau": 'return require("./codec")\n',
        "lib/codec.luau": "return {}\n",
    })
    return {"http": http, "owner/json": json_pkg}


# ===========================================================================
# Graph completeness
# ===========================================================================


class TestGraphCompleteness:
    """Every statically required module appears exactly once."""

    def test_diamond(self, diamond: Path) -> None:
        """Shared dependencies are loaded once; unreferenced files are absent."""
        graph = _build(diamond)
        assert set(graph.nodes) == {"main", "a", "b", "c"}
        assert graph.entry_id == "main"
        assert graph.entry.dependencies() == ["a", "b"]
        assert sorted(graph.edges()) == [("a", "c"), ("b", "c"), ("main", "a"), ("main", "b")]
        assert graph.issues == []

    def test_builtins_recorded_not_loaded(self, diamond: Path) -> None:
        """Runtime builtins are edges to nowhere."""
        graph = _build(diamond)
        assert graph.builtins() == ["@lune/fs"]
        assert graph.entry.requires[0].kind == KIND_BUILTIN

    def test_sources_loaded(self, diamond: Path) -> None:
        """Nodes carry the exact file bytes."""
        graph = _build(diamond)
        assert graph.nodes["c"].source == b"return {}\n"

    def test_init_directories(self, tmp_path: Path) -> None:
        """A directory require resolves to its init file."""
        write_files(tmp_path, {
            "main.luau": 'require("./lib")',
            "lib/init.lua": "return 1",
        })
        assert set(_build(tmp_path).nodes) == {"main", "lib/init"}

    def test_luau_preferred_over_lua(self, tmp_path: Path) -> None:
        """x.luau wins over x.lua."""
        write_files(tmp_path, {"main.luau": 'require("./x")', "x.luau": "", "x.lua": ""})
        graph = _build(tmp_path)
        assert graph.nodes["x"].path.name == "x.luau"


# ===========================================================================
# Policies
# ===========================================================================


class TestCycles:
    """Cycles are detected and handled per policy."""

    @pytest.fixture
    def cyclic(self, tmp_path: Path) -> Path:
        write_files(tmp_path, {
            "main.luau": 'require("./x")',
            "x.luau": 'require("./y")',
            "y.luau": 'require("./x")',
        })
        return tmp_path

    def test_warn(self, cyclic: Path) -> None:
        """The default records the cycle as a warning and completes."""
        graph = _build(cyclic)
        assert graph.cycles == [["x", "y", "x"]]
        assert [i.kind for i in graph.issues] == ["cycle"]
        assert set(graph.nodes) == {"main", "x", "y"}

    def test_ignore(self, cyclic: Path) -> None:
        """ignore records the cycle without an issue."""
        graph = _build(cyclic, policy=GraphPolicy(cycles="ignore"))
        assert graph.cycles == [["x", "y", "x"]]
        assert graph.issues == []

    def test_error(self, cyclic: Path) -> None:
        """error raises ModuleCycle with the path."""
        with pytest.raises(ModuleCycle) as info:
            _build(cyclic, policy=GraphPolicy(cycles="error"))
        assert info.value.cycle == ["x", "y", "x"]

    def test_self_require(self, tmp_path: Path) -> None:
        """A module requiring itself is a cycle of length one."""
        write_files(tmp_path, {"main.luau": 'require("./main")'})
        assert _build(tmp_path).cycles == [["main", "main"]]


class TestUnresolvedAndDynamic:
    """Unresolvable and computed requires."""

    def test_unresolved_warns(self, tmp_path: Path) -> None:
        """By default a missing target is recorded and skipped."""
        write_files(tmp_path, {"main.luau": 'require("./missing")'})
        graph = _build(tmp_path)
        assert [i.kind for i in graph.issues] == [KIND_UNRESOLVED]
        assert graph.entry.requires[0].kind == KIND_UNRESOLVED

    def test_unresolved_strict(self, tmp_path: Path) -> None:
        """Strict mode fails on the first unresolved require."""
        write_files(tmp_path, {"main.luau": 'require("./missing")'})
        with pytest.raises(UnresolvedRequire, match="main:1"):
            _build(tmp_path, policy=GraphPolicy.strict())

    def test_dynamic_warns(self, tmp_path: Path) -> None:
        """Dynamic requires are warnings by default."""
        write_files(tmp_path, {"main.luau": "local m = require(name)"})
        graph = _build(tmp_path)
        assert graph.issues[0].kind == KIND_DYNAMIC
        assert "require(name)" in graph.issues[0].message

    def test_dynamic_strict(self, tmp_path: Path) -> None:
        """Strict mode rejects dynamic requires."""
        write_files(tmp_path, {"main.luau": "local m = require(name)"})
        with pytest.raises(DynamicRequire):
            _build(tmp_path, policy=GraphPolicy.strict())

    def test_escape_from_project(self, tmp_path: Path) -> None:
        """../ cannot leave the project root."""
        root = tmp_path / "project"
        write_files(tmp_path, {"outside.luau": "return 1", "project/main.luau": 'require("../outside")'})
        graph = _build(root)
        assert graph.issues[0].kind == KIND_UNRESOLVED

    def test_sibling_outside_root_does_not_hide_init(self, tmp_path: Path) -> None:
        """@self falls through an out-of-root candidate to the root init file."""
        write_files(tmp_path, {
            "proj.luau": "return 'outside'",
            "proj/init.luau": "return 1",
            "proj/main.luau": 'require("@self")',
        })
        graph = _build(tmp_path / "proj")
        assert graph.issues == []
        assert "init" in graph

    def test_invalid_policy(self) -> None:
        """Unknown modes are configuration errors."""
        with pytest.raises(ConfigError):
            GraphPolicy(cycles="sometimes")
        with pytest.raises(ConfigError):
            GraphPolicy(dynamic="ignore")


# ===========================================================================
# Packages and aliases
# ===========================================================================


class TestPackagesAndAliases:
    """Installed packages and manifest aliases."""

    def test_package_entry_and_internal_requires(self, tmp_path: Path, packages: dict[str, Path]) -> None:
        """@pkg resolves to its init; internal ./ and @self requires stay inside."""
        write_files(tmp_path / "p", {"main.luau": 'require("@http")'})
        graph = _build(tmp_path / "p", packages=packages)
        assert set(graph.nodes) == {"main", "@http/init", "@http/client", "@http/util"}
        assert graph.nodes["@http/client"].package == "http"

    def test_scoped_package_with_lib_entry(self, tmp_path: Path, packages: dict[str, Path]) -> None:
        """owner/pkg names and lib/ entry directories resolve."""
        write_files(tmp_path / "p", {"main.luau": 'require("@owner/json")\nrequire("owner/json/codec")'})
        graph = _build(tmp_path / "p", packages=packages)
        assert set(graph.nodes) == {"main", "@owner/json/lib/init", "@owner/json/lib/codec"}
        assert graph.issues == []

    def test_scoped_package_through_luaurc_alias(self, tmp_path: Path, packages: dict[str, Path]) -> None:
        """The alias name written to .luaurc reaches the same modules as @owner/pkg."""
        root = tmp_path / "p"
        root.mkdir()
        write_luaurc(root, packages, store_root=tmp_path / "store")
        alias = next(k for k in read_luaurc(root / ".luaurc")["aliases"] if k != "http")
        assert alias == "owner__json"

        write_files(root, {"main.luau": f'require("@{alias}")\nrequire("@{alias}/codec")'})
        graph = _build(root, packages=packages)
        assert set(graph.nodes) == {"main", "@owner/json/lib/init", "@owner/json/lib/codec"}
        assert graph.issues == []

    def test_package_subpath_without_at(self, tmp_path: Path, packages: dict[str, Path]) -> None:
        """pkg/x resolves inside the package."""
        write_files(tmp_path / "p", {"main.luau": 'require("http/util")'})
        graph = _build(tmp_path / "p", packages=packages)
        assert "@http/util" in graph

    def test_unknown_package(self, tmp_path: Path) -> None:
        """A package that is not installed is unresolved."""
        write_files(tmp_path, {"main.luau": 'require("@nope/x")'})
        assert _build(tmp_path).issues[0].kind == KIND_UNRESOLVED

    def test_alias(self, tmp_path: Path) -> None:
        """@alias/x resolves against the aliased directory."""
        write_files(tmp_path, {
            "main.luau": 'require("@shared/util")',
            "src/shared/util.luau": "return 1",
        })
        graph = _build(tmp_path, aliases={"@shared": "src/shared"})
        assert "src/shared/util" in graph

    def test_custom_builtin_prefix(self, tmp_path: Path) -> None:
        """Extra runtime prefixes are treated as builtins."""
        write_files(tmp_path, {"main.luau": 'require("@roblox/task")'})
        graph = _build(tmp_path, builtin_prefixes=("@lune/", "@roblox/"))
        assert graph.builtins() == ["@roblox/task"]


# ===========================================================================
# Entry handling
# ===========================================================================


class TestEntry:
    """Entry paths are validated."""

    def test_missing_entry(self, tmp_path: Path) -> None:
        """A missing entry file is a graph error."""
        with pytest.raises(GraphError, match="not found"):
            build_graph(Path("main.luau"), tmp_path)

    def test_relative_entry(self, diamond: Path) -> None:
        """Relative entries are taken from the project root."""
        graph = build_graph(Path("main.luau"), diamond)
        assert len(graph) == 4

    def test_entry_outside_project(self, tmp_path: Path) -> None:
        """An entry outside the project is refused."""
        write_files(tmp_path, {"elsewhere/main.luau": "return 1"})
        (tmp_path / "project").mkdir()
        with pytest.raises(GraphError, match="outside the project"):
            build_graph(tmp_path / "elsewhere" / "main.luau", tmp_path / "project")

"""Rich output formatting helpers for the lunepack CLI.

Results go to stdout through a shared console; errors are printed with
their category so the failure kind is distinguishable at a glance.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from lunepack.bundle import BuildResult
from lunepack.exceptions import LunepackError
from lunepack.graph import ModuleGraph
from lunepack.install import StoreEntry
from lunepack.project import InitResult, InstallOutcome

console = Console()
err_console = Console(stderr=True)

_CATEGORY_STYLES: dict[int, str] = {
    1: "bold red",
    2: "red",
    3: "yellow",
    4: "magenta",
    5: "cyan",
}


def print_error(exc: LunepackError) -> None:
    """Print a lunepack error with its category and context."""
    style = _CATEGORY_STYLES.get(exc.exit_code, "bold red")
    header = Text.assemble(("error", "bold red"), ("[", "dim"), (exc.category, style), ("]", "dim"), ": ")
    header.append(str(exc))
    err_console.print(header)


def print_init(result: InitResult) -> None:
    for path in result.created:
        console.print(f"[green]created[/green] {path.name}")
    for path in result.skipped:
        console.print(f"[dim]exists[/dim]  {path.name}")


def print_install_outcome(outcome: InstallOutcome) -> None:
    """Print the locked packages and what the installer did."""
    if outcome.added:
        for name, constraint in sorted(outcome.added.items()):
            console.print(f"[green]+[/green] {name} [dim]{constraint}[/dim]")

    changes = outcome.changes or {}
    for name in changes.get("removed", []):
        console.print(f"[red]-[/red] {name}")
    for change in changes.get("changed", []):
        if change["field"] == "version":
            console.print(f"[yellow]~[/yellow] {change['name']} {change['old']} -> {change['new']}")

    entries = outcome.lockfile.entries
    if entries:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Package", style="bold")
        table.add_column("Version")
        table.add_column("Tag", style="dim")
        table.add_column("Status", justify="center")
        installed = {e.name for e in outcome.report.installed}
        for entry in entries:
            status = Text("fetched", style="green") if entry.name in installed else Text("cached", style="dim")
            table.add_row(entry.name, entry.version, entry.tag, status)
        console.print(table)
    else:
        console.print("[dim]No dependencies.[/dim]")

    verb = "Resolved" if outcome.resolved else "Lockfile up to date;"
    console.print(
        f"{verb} {len(entries)} package(s): "
        f"[green]{len(outcome.report.installed)} fetched[/green], "
        f"{len(outcome.report.reused)} cached"
    )


def print_graph(graph: ModuleGraph) -> None:
    """Print the module graph as a tree rooted at the entry module."""
    tree = Tree(Text(graph.entry_id, style="bold"))
    shown: set[str] = set()

    def _add(branch: Tree, module_id: str, path: tuple[str, ...]) -> None:
        for dep in graph.nodes[module_id].dependencies():
            if dep in path:
                branch.add(Text(f"{dep} (cycle)", style="yellow"))
                continue
            if dep in shown:
                branch.add(Text(f"{dep} ...", style="dim"))
                continue
            shown.add(dep)
            _add(branch.add(dep), dep, path + (dep,))

    shown.add(graph.entry_id)
    _add(tree, graph.entry_id, (graph.entry_id,))
    console.print(tree)

    builtins = graph.builtins()
    if builtins:
        console.print(f"[dim]runtime builtins: {', '.join(builtins)}[/dim]")
    for issue in graph.issues:
        console.print(f"[yellow]warning[/yellow] {escape(f'[{issue.kind}] {issue.message}')}")
    console.print(f"{len(graph)} module(s)")


def print_build(result: BuildResult) -> None:
    console.print(
        Panel(
            f"[bold green]{result.output}[/bold green]\n"
            f"{result.module_count} module(s), table {result.table_size} bytes, "
            f"total {result.total_size} bytes\n"
            f"[dim]runtime: {result.runtime}[/dim]",
            title="Build",
        )
    )


def print_verify(problems: dict[str, str]) -> None:
    if not problems:
        console.print("[bold green]All locked packages verified.[/bold green]")
        return
    table = Table(title="Verification problems", show_header=True)
    table.add_column("Package", style="bold")
    table.add_column("Problem", style="red")
    for name in sorted(problems):
        table.add_row(name, problems[name])
    console.print(table)


def print_prune(removed: list[StoreEntry], *, dry_run: bool = False) -> None:
    if not removed:
        console.print("[green]Nothing to prune.[/green]")
        return
    verb = "would remove" if dry_run else "removed"
    for entry in removed:
        console.print(f"[red]{verb}[/red] {entry.name}@{entry.version} [dim]{entry.path}[/dim]")
    console.print(f"{len(removed)} store entr{'y' if len(removed) == 1 else 'ies'} {verb}")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))

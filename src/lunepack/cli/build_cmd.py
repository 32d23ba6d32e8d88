"""``lunepack build`` and ``lunepack graph``.

Exit Codes:
    0 --- Executable written (or graph printed).
    2 --- A locked package could not be installed.
    3 --- The module graph violates the policy.
    4 --- Bundling failed or the target is unsupported.
    5 --- Manifest or lockfile problem (e.g. lockfile out of date).
"""

from __future__ import annotations

from pathlib import Path

import click

from lunepack import project
from lunepack.cli.common import (
    CliState,
    cycles_option,
    graph_policy,
    pass_state,
    reported_errors,
    strict_option,
)
from lunepack.cli.output import print_build, print_graph, print_json


@click.command("build")
@click.argument("entry", type=click.Path(path_type=Path))
@click.argument("output", type=click.Path(path_type=Path))
@click.option("--target", "-t", default="native", show_default=True,
              help="native, <os>-<arch>, or a target triple.")
@click.option("--runtime", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Runtime binary to embed instead of searching the runtime directories.")
@strict_option
@cycles_option
@pass_state
def build_command(
    state: CliState,
    entry: Path,
    output: Path,
    target: str,
    runtime: Path | None,
    strict: bool,
    cycles: str | None,
) -> None:
    """Bundle ENTRY and everything it requires into the executable OUTPUT."""
    with reported_errors():
        result = project.build(
            state.project,
            entry,
            output,
            target=target,
            runtime=runtime,
            policy=graph_policy(strict, cycles),
        )
    print_build(result)


@click.command("graph")
@click.argument("entry", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the graph as JSON.")
@strict_option
@cycles_option
@pass_state
def graph_command(
    state: CliState,
    entry: Path,
    as_json: bool,
    strict: bool,
    cycles: str | None,
) -> None:
    """Print the module graph reachable from ENTRY."""
    with reported_errors():
        module_graph = project.graph(state.project, entry, policy=graph_policy(strict, cycles))
    if as_json:
        print_json({
            "entry": module_graph.entry_id,
            "modules": [
                {
                    "id": node.module_id,
                    "path": str(node.path),
                    "package": node.package,
                    "requires": [
                        {"target": r.target, "line": r.line, "kind": r.kind, "resolved": r.resolved_id}
                        for r in node.requires
                    ],
                }
                for node in module_graph
            ],
            "cycles": module_graph.cycles,
            "issues": [issue.message for issue in module_graph.issues],
        })
        return
    print_graph(module_graph)

"""lunepack CLI --- package manager and bundler for Lune projects.

Entry point for the ``lunepack`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    init     --- Scaffold lunepack.yaml, lunepack.lock and .luaurc.
    install  --- Resolve, lock and install dependencies.
    update   --- Re-resolve to the newest allowed versions.
    remove   --- Drop dependencies.
    build    --- Bundle an entry module with a runtime into one executable.
    graph    --- Print the module graph of an entry module.
    verify   --- Check installed packages against the lockfile.
    prune    --- Remove store entries no listed project locks.

Usage::

    lunepack init
    lunepack install http@^1.2 json
    lunepack build src/main.luau dist/server --target linux-x86_64
    lunepack -C ../other-project graph src/main.luau
"""

from __future__ import annotations

from pathlib import Path

import click

from lunepack import __version__
from lunepack.cli.build_cmd import build_command, graph_command
from lunepack.cli.common import CliState
from lunepack.cli.init_cmd import init_command
from lunepack.cli.install_cmd import install_command, remove_command, update_command
from lunepack.cli.prune_cmd import prune_command
from lunepack.cli.verify_cmd import verify_command
from lunepack.logging_setup import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="lunepack")
@click.option("-v", "--verbose", count=True, help="More log output (-v info, -vv debug).")
@click.option(
    "-C", "--project", "project_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Project directory (default: current directory).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, project_dir: Path) -> None:
    """lunepack: dependencies and standalone builds for Lune projects."""
    configure_logging(verbose)
    ctx.obj = CliState(project=project_dir, verbose=verbose)


# Register all subcommands
cli.add_command(init_command)
cli.add_command(install_command)
cli.add_command(update_command)
cli.add_command(remove_command)
cli.add_command(build_command)
cli.add_command(graph_command)
cli.add_command(verify_command)
cli.add_command(prune_command)

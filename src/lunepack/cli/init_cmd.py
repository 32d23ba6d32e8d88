"""``lunepack init`` --- scaffold a project."""

from __future__ import annotations

import click

from lunepack.cli.common import CliState, pass_state, reported_errors
from lunepack.cli.output import print_init
from lunepack.project import init_project


@click.command("init")
@click.option("--name", default=None, help="Project name (default: the directory name).")
@pass_state
def init_command(state: CliState, name: str | None) -> None:
    """Create lunepack.yaml, an empty lunepack.lock and .luaurc.

    Existing files are left untouched.
    """
    with reported_errors():
        result = init_project(state.project, name)
    print_init(result)

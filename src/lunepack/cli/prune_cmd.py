"""``lunepack prune`` --- remove store entries no project still locks.

The store is shared, so entries locked by other projects survive only when
those projects are passed with ``--keep``.
"""

from __future__ import annotations

from pathlib import Path

import click

from lunepack import project
from lunepack.cli.common import CliState, pass_state, reported_errors
from lunepack.cli.output import print_prune


@click.command("prune")
@click.option(
    "--keep", "keep_projects",
    multiple=True,
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    help="Another project whose locked packages must stay (repeatable).",
)
@click.option("--dry-run", is_flag=True, help="List what would be removed without deleting.")
@pass_state
def prune_command(state: CliState, keep_projects: tuple[Path, ...], dry_run: bool) -> None:
    """Delete store entries not locked by this project or any --keep project."""
    with reported_errors():
        removed = project.prune(state.project, keep_projects, dry_run=dry_run)
    print_prune(removed, dry_run=dry_run)

"""``lunepack install``, ``update`` and ``remove``.

Exit Codes:
    0 --- Lockfile written and every package present in the store.
    1 --- Resolution failed (conflict, no matching version, registry error).
    2 --- A package could not be fetched or did not match its fingerprint.
    5 --- Manifest, lockfile or configuration problem.
"""

from __future__ import annotations

import click

from lunepack import project
from lunepack.cli.common import CliState, pass_state, reported_errors
from lunepack.cli.output import print_install_outcome


@click.command("install")
@click.argument("names", nargs=-1)
@pass_state
def install_command(state: CliState, names: tuple[str, ...]) -> None:
    """Install dependencies, optionally adding NAMES (``name`` or ``name@constraint``).

    Without NAMES an up-to-date lockfile is installed as-is.
    """
    with reported_errors():
        outcome = project.install(state.project, names)
    print_install_outcome(outcome)


@click.command("update")
@click.argument("names", nargs=-1)
@pass_state
def update_command(state: CliState, names: tuple[str, ...]) -> None:
    """Re-resolve NAMES (all packages when omitted) to their newest allowed versions."""
    with reported_errors():
        outcome = project.update(state.project, names)
    print_install_outcome(outcome)


@click.command("remove")
@click.argument("names", nargs=-1, required=True)
@pass_state
def remove_command(state: CliState, names: tuple[str, ...]) -> None:
    """Remove NAMES from the manifest and re-resolve."""
    with reported_errors():
        outcome = project.remove(state.project, names)
    print_install_outcome(outcome)

"""``lunepack verify`` --- check installed packages against the lockfile.

Exit Codes:
    0 --- Every locked package is installed and matches its fingerprint.
    2 --- At least one package is missing or modified.
    5 --- Manifest or lockfile problem.
"""

from __future__ import annotations

import sys

import click

from lunepack import project
from lunepack.cli.common import CliState, pass_state, reported_errors
from lunepack.cli.output import print_verify
from lunepack.exceptions import InstallError


@click.command("verify")
@pass_state
def verify_command(state: CliState) -> None:
    """Recompute store fingerprints and compare them with lunepack.lock."""
    with reported_errors():
        problems = project.verify(state.project)
    print_verify(problems)
    if problems:
        sys.exit(InstallError.exit_code)

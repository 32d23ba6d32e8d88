"""State and error handling shared by every lunepack command."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import click

from lunepack.cli.output import err_console, print_error
from lunepack.exceptions import LunepackError
from lunepack.graph import GraphPolicy

EXIT_INTERRUPTED = 130


@dataclass
class CliState:
    project: Path
    verbose: int = 0


pass_state = click.make_pass_decorator(CliState, ensure=True)


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print lunepack errors with their category and exit with their code."""
    try:
        yield
    except LunepackError as exc:
        print_error(exc)
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        err_console.print("[red]Interrupted[/red]")
        sys.exit(EXIT_INTERRUPTED)


def graph_policy(strict: bool, cycles: str | None) -> GraphPolicy:
    if strict:
        return GraphPolicy.strict(cycles=cycles or "error")
    return GraphPolicy(cycles=cycles or "warn")


strict_option = click.option(
    "--strict",
    is_flag=True,
    help="Fail on unresolved or dynamic requires (and on cycles unless --cycles says otherwise).",
)
cycles_option = click.option(
    "--cycles",
    type=click.Choice(["ignore", "warn", "error"]),
    default=None,
    help="How to treat require cycles (default: warn, or error with --strict).",
)

"""Command-line interface."""

from lunepack.cli.main import cli

__all__ = ["cli"]

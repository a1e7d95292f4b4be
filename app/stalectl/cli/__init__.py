"""CLI package for stalectl.

This package contains the Typer application and all subcommands.
"""

from stalectl.cli.main import app

__all__ = ["app"]

"""CLI commands for stalectl.

This package contains all subcommand implementations.
"""

from stalectl.cli.commands import config, run

__all__ = ["config", "run"]

"""Rich console formatting utilities.

Provides consistent formatting for CLI output and log records using Rich.
"""

import logging
import sys
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler

from stalectl.core.theme import get_theme

TIME_FORMAT = "%Y-%m-%d %H:%M"
INVALID_TIME = "Invalid date    "


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route log records through Rich on stderr.

    Args:
        verbose: Log DEBUG and above.
        quiet: Log ERROR and above only.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    handler = RichHandler(console=err_console, show_path=verbose, markup=False, rich_tracebacks=True)
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)


def format_timestamp(ts: float) -> str:
    """Format an epoch timestamp as local ``YYYY-MM-DD HH:MM``.

    Timestamps outside the platform's representable range yield a
    fixed-width placeholder.
    """
    try:
        return datetime.fromtimestamp(ts).strftime(TIME_FORMAT)
    except (OverflowError, OSError, ValueError):
        return INVALID_TIME


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")

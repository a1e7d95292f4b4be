"""Utility modules for stalectl.

This module exports commonly used utility functions.
"""

from stalectl.utils.formatting import (
    console,
    err_console,
    format_timestamp,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_logging,
)
from stalectl.utils.shell import escape_path, unescape_path

__all__ = [
    "console",
    "err_console",
    "escape_path",
    "format_timestamp",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "setup_logging",
    "unescape_path",
]

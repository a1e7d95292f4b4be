"""Run command implementation.

Scans a tree and moves stale files into the destination, printing one
line per selected file and a final summary.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.text import Text

from stalectl.core.settings import load_settings
from stalectl.relocation.errors import ConfigError
from stalectl.relocation.models import RelocationResult, RunSummary
from stalectl.relocation.runner import build_config, execute
from stalectl.utils.formatting import (
    console,
    format_timestamp,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from stalectl.utils.shell import escape_path

# Exit code for invalid configuration (bad flags, exclude rules, filesystem mismatch)
EXIT_CONFIG_ERROR = 2

LISTING_HEADER = "atime             ctime             mtime             UID     Path"


def run_cleanup(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(help="Path to scan."),
    ],
    dest: Annotated[
        Path,
        typer.Option("--dest", help="Destination path for the move."),
    ],
    num_threads: Annotated[
        int | None,
        typer.Option(
            "--num-threads",
            "-j",
            help="Number of threads to use [default: number of cores].",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Only print the files that would be moved, but don't move anything.",
        ),
    ] = False,
    exclude_file: Annotated[
        Path | None,
        typer.Option("--exclude-file", help="File containing paths to exclude."),
    ] = None,
    older: Annotated[
        float | None,
        typer.Option("--older", help="Number of days old the files must be to be selected."),
    ] = None,
    noatime: Annotated[
        bool,
        typer.Option("--noatime", help="Don't look at atime to determine age."),
    ] = False,
    nomtime: Annotated[
        bool,
        typer.Option("--nomtime", help="Don't look at mtime to determine age."),
    ] = False,
    noctime: Annotated[
        bool,
        typer.Option("--noctime", help="Don't look at ctime to determine age."),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help="Settings file [default: ~/.config/stalectl/config.toml]."),
    ] = None,
) -> None:
    """Move stale files under PATH into per-owner slots under --dest."""
    quiet = bool(ctx.obj and ctx.obj.get("quiet"))

    try:
        defaults = load_settings(config_path).defaults
        exclude = exclude_file if exclude_file is not None else defaults.exclude_file
        config = build_config(
            path,
            dest,
            num_threads=num_threads if num_threads is not None else defaults.num_threads,
            dry_run=dry_run,
            exclude_file=exclude,
            older_days=older if older is not None else defaults.older,
            noatime=noatime or defaults.noatime,
            nomtime=nomtime or defaults.nomtime,
            noctime=noctime or defaults.noctime,
        )
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from e

    if not quiet:
        console.print(LISTING_HEADER, style="bold_header", markup=False, highlight=False)

    summary = execute(config, on_result=None if quiet else _print_result)
    _print_summary(summary)

    if not summary.ok:
        raise typer.Exit(code=1)


# === Private helper functions ===


def _print_result(result: RelocationResult) -> None:
    """Print the listing line of a selected file (called from workers)."""
    candidate = result.candidate
    line = Text(
        f"{format_timestamp(candidate.atime)}, "
        f"{format_timestamp(candidate.ctime)}, "
        f"{format_timestamp(candidate.mtime)}, "
        f"{candidate.uid:6}, ",
        style="moved" if result.success else "failed",
    )
    line.append(escape_path(candidate.path), style="path")
    console.print(line, highlight=False, soft_wrap=True)


def _print_summary(summary: RunSummary) -> None:
    """Display final counts and failures."""
    for result in summary.failures:
        print_warning(escape(f"{escape_path(result.candidate.path)}: {result.error or 'Unknown error'}"))
    for uid in summary.manifest_errors:
        print_error(f"Manifest for uid {uid} could not be written.")
    if summary.scan_errors:
        print_warning(f"{summary.scan_errors} entries could not be read.")

    counts = f"{summary.moved} moved, {summary.skipped} skipped, {summary.failed} failed"
    if summary.dry_run:
        print_info(f"Dry-run: {summary.moved} file(s) would be moved, {summary.skipped} skipped.")
    elif summary.ok:
        print_success(f"Done: {counts}.")
    else:
        print_warning(counts)

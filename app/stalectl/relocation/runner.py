"""Run orchestration.

Validates user input into a frozen :class:`RunConfig` and wires the
walker, the age predicate and the scheduler together.
"""

import logging
import os
from dataclasses import replace
from pathlib import Path

from stalectl.relocation.age import AgePredicate, compute_cutoff, enabled_kinds
from stalectl.relocation.errors import ConfigError
from stalectl.relocation.models import RunConfig, RunSummary
from stalectl.relocation.patterns import Matcher, compile_rules_bytes
from stalectl.relocation.scheduler import RelocationScheduler, ResultCallback
from stalectl.relocation.walker import DirectoryWalker

logger = logging.getLogger(__name__)


def default_thread_count() -> int:
    """Number of available CPUs, at least 1."""
    return os.cpu_count() or 1


def build_config(
    source: str | Path,
    dest: str | Path,
    *,
    num_threads: int | None = None,
    dry_run: bool = False,
    exclude_file: str | Path | None = None,
    older_days: float = 0,
    noatime: bool = False,
    nomtime: bool = False,
    noctime: bool = False,
    now: float | None = None,
) -> RunConfig:
    """Validate options and build an immutable run configuration.

    The same-filesystem precondition is checked in dry-run mode too,
    since it decides whether a real run is possible at all.

    Args:
        source: Directory to scan.
        dest: Destination root for relocated files.
        num_threads: Worker count (default: CPU count).
        dry_run: Report instead of moving.
        exclude_file: Optional gitignore-style exclude file.
        older_days: Files must be older than this many days.
        noatime: Ignore access time.
        nomtime: Ignore modification time.
        noctime: Ignore status change time.
        now: Reference time in epoch seconds (default: current time).

    Returns:
        RunConfig ready for :func:`execute`.

    Raises:
        ConfigError: On invalid options.
        PatternError: On a malformed exclude rule.
    """
    source_path = _resolve_directory(source, "Source")
    dest_path = _resolve_directory(dest, "Destination")

    threads = default_thread_count() if num_threads is None else num_threads
    if threads < 1:
        msg = f"Thread count must be at least 1, got {threads}"
        raise ConfigError(msg)
    if older_days < 0:
        msg = f"Age in days cannot be negative, got {older_days}"
        raise ConfigError(msg)
    if dest_path == source_path:
        msg = f"Destination cannot be the scanned directory itself: {dest_path}"
        raise ConfigError(msg)

    check_same_filesystem(source_path, dest_path)

    prune: set[str] = set()
    if dest_path.is_relative_to(source_path):
        prune.add(str(dest_path))

    matcher = Matcher()
    if exclude_file is not None:
        exclude_path = Path(exclude_file).expanduser()
        try:
            exclude_path = exclude_path.resolve(strict=True)
            data = exclude_path.read_bytes()
        except OSError as e:
            msg = f"Cannot read exclude file {exclude_file}: {e.strerror or e}"
            raise ConfigError(msg) from e
        matcher = compile_rules_bytes(data)
        if exclude_path.is_relative_to(source_path):
            prune.add(str(exclude_path))

    return RunConfig(
        source=source_path,
        dest=dest_path,
        num_threads=threads,
        dry_run=dry_run,
        older_days=older_days,
        cutoff=compute_cutoff(older_days, now),
        enabled_kinds=enabled_kinds(noatime=noatime, nomtime=nomtime, noctime=noctime),
        matcher=matcher,
        prune=frozenset(prune),
    )


def check_same_filesystem(source: Path, dest: Path) -> None:
    """Require source and destination to live on the same filesystem.

    Raises:
        ConfigError: If the device ids differ or cannot be read.
    """
    try:
        source_dev = _device_id(source)
        dest_dev = _device_id(dest)
    except OSError as e:
        msg = f"Cannot stat {e.filename}: {e.strerror or e}"
        raise ConfigError(msg) from e

    if source_dev != dest_dev:
        msg = f"Destination {dest} is not on the same filesystem as {source}"
        raise ConfigError(msg)


def _device_id(path: Path) -> int:
    return os.stat(path).st_dev


def execute(config: RunConfig, on_result: ResultCallback | None = None) -> RunSummary:
    """Scan the source tree and relocate every stale file.

    Args:
        config: Validated run configuration.
        on_result: Called with each per-file result (from worker threads).

    Returns:
        RunSummary including the walker's skipped and error counts.
    """
    predicate = AgePredicate(cutoff=config.cutoff, kinds=config.enabled_kinds)
    walker = DirectoryWalker(config.source, config.matcher, predicate, prune=config.prune)
    scheduler = RelocationScheduler(config, on_result=on_result)

    logger.info(
        "Scanning %s with %d worker(s)%s",
        config.source,
        config.num_threads,
        " (dry-run)" if config.dry_run else "",
    )
    summary = scheduler.run(walker.walk())
    stats = walker.stats
    logger.info(
        "Scanned %d director(ies), %d file(s); %d selected",
        stats.directories,
        stats.files_seen,
        stats.selected,
    )
    return replace(summary, skipped=stats.skipped, scan_errors=stats.errors)


def _resolve_directory(path: str | Path, label: str) -> Path:
    try:
        resolved = Path(path).expanduser().resolve(strict=True)
    except OSError as e:
        msg = f"{label} path {path} cannot be resolved: {e.strerror or e}"
        raise ConfigError(msg) from e
    if not resolved.is_dir():
        msg = f"{label} path {resolved} is not a directory"
        raise ConfigError(msg)
    return resolved

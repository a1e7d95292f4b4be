"""Relocation domain models.

This module defines the immutable data structures passed between the
walker, the scheduler and the allocator: selected candidates, backup
slots, per-file results, the aggregated run summary and the frozen
run configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stalectl.relocation.patterns import Matcher


class TimestampKind(str, Enum):
    """File timestamp considered by the staleness check.

    Attributes:
        ATIME: Last access time.
        MTIME: Last content modification time.
        CTIME: Last inode status change time.
    """

    ATIME = "atime"
    MTIME = "mtime"
    CTIME = "ctime"


ALL_TIMESTAMP_KINDS: frozenset[TimestampKind] = frozenset(TimestampKind)


@dataclass(frozen=True, slots=True)
class Candidate:
    """A file selected by the walker for relocation.

    Attributes:
        path: Absolute source path (surrogate-escaped for non-UTF-8 bytes).
        uid: Numeric owner id of the entry.
        atime: Access time, epoch seconds.
        mtime: Modification time, epoch seconds.
        ctime: Status change time, epoch seconds.
    """

    path: str
    uid: int
    atime: float
    mtime: float
    ctime: float

    def __post_init__(self) -> None:
        """Validate candidate data after initialization."""
        if not self.path:
            msg = "Path cannot be empty"
            raise ValueError(msg)
        if self.uid < 0:
            msg = f"Owner id must be non-negative, got {self.uid}"
            raise ValueError(msg)

    def timestamp(self, kind: TimestampKind) -> float:
        """Return the timestamp of the given kind."""
        return getattr(self, kind.value)


@dataclass(frozen=True, slots=True)
class BackupSlot:
    """Destination identifier ``<dest-root>/<uid>/<sequence>``.

    Attributes:
        uid: Owner id selecting the backup subdirectory.
        sequence: Per-owner sequence number, also the file name.
    """

    uid: int
    sequence: int

    @property
    def name(self) -> str:
        """File name of the slot inside the owner directory."""
        return str(self.sequence)


@dataclass(frozen=True, slots=True)
class RelocationResult:
    """Result of relocating a single candidate.

    Attributes:
        candidate: The candidate that was processed.
        destination: Slot path the file was (or would be) moved to.
        success: Whether the move completed.
        error: Error message if the move failed, None otherwise.
        dry_run: Whether this was a dry-run (nothing moved).
    """

    candidate: Candidate
    destination: str | None
    success: bool
    error: str | None = None
    dry_run: bool = False

    @property
    def failed(self) -> bool:
        """Check if this result represents a failure."""
        return not self.success


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Aggregated outcome of a run.

    Attributes:
        moved: Files moved (or that would be moved in dry-run).
        skipped: Entries seen but not selected (excluded, fresh, unsupported).
        failed: Files whose relocation failed.
        failures: Failed results, for reporting.
        manifest_errors: Owner ids whose map.json could not be finalized.
        scan_errors: Entries the walker could not read.
        dry_run: Whether the run was a dry-run.
    """

    moved: int = 0
    skipped: int = 0
    failed: int = 0
    failures: tuple[RelocationResult, ...] = ()
    manifest_errors: tuple[int, ...] = ()
    scan_errors: int = 0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """True when nothing failed and every manifest was written."""
        return self.failed == 0 and not self.manifest_errors


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Immutable configuration snapshot shared by all components.

    Attributes:
        source: Canonical root of the tree to scan.
        dest: Canonical destination root.
        num_threads: Number of relocation workers.
        dry_run: Report instead of moving.
        older_days: Staleness threshold in days.
        cutoff: Epoch seconds; enabled timestamps must be strictly older.
        enabled_kinds: Timestamp kinds taking part in the staleness check.
        matcher: Compiled exclude rules.
        prune: Absolute paths never visited (destination, exclude file).
    """

    source: Path
    dest: Path
    num_threads: int
    dry_run: bool
    older_days: float
    cutoff: float
    enabled_kinds: frozenset[TimestampKind]
    matcher: Matcher
    prune: frozenset[str] = field(default_factory=frozenset)

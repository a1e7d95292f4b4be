"""Staleness predicate over file timestamps."""

import time
from collections.abc import Iterable
from dataclasses import dataclass

from stalectl.relocation.models import ALL_TIMESTAMP_KINDS, Candidate, TimestampKind

SECONDS_PER_DAY = 86400


def is_stale(candidate: Candidate, cutoff_time: float, enabled_kinds: Iterable[TimestampKind]) -> bool:
    """Check whether a candidate's timestamps are all older than the cutoff.

    With no enabled kinds every file is stale. Otherwise each enabled
    timestamp must be strictly older than ``cutoff_time``.

    Args:
        candidate: File to evaluate.
        cutoff_time: Epoch seconds.
        enabled_kinds: Timestamp kinds taking part in the check.

    Returns:
        True if the file is stale.
    """
    return all(candidate.timestamp(kind) < cutoff_time for kind in enabled_kinds)


def compute_cutoff(older_days: float, now: float | None = None) -> float:
    """Return ``now - older_days`` as epoch seconds."""
    if now is None:
        now = time.time()
    return now - older_days * SECONDS_PER_DAY


def enabled_kinds(
    *, noatime: bool = False, nomtime: bool = False, noctime: bool = False
) -> frozenset[TimestampKind]:
    """Build the enabled timestamp set from the ``--no<kind>time`` flags."""
    disabled = set()
    if noatime:
        disabled.add(TimestampKind.ATIME)
    if nomtime:
        disabled.add(TimestampKind.MTIME)
    if noctime:
        disabled.add(TimestampKind.CTIME)
    return ALL_TIMESTAMP_KINDS - disabled


@dataclass(frozen=True, slots=True)
class AgePredicate:
    """A staleness check bound to a cutoff and a set of timestamp kinds.

    Attributes:
        cutoff: Epoch seconds.
        kinds: Enabled timestamp kinds.
    """

    cutoff: float
    kinds: frozenset[TimestampKind] = ALL_TIMESTAMP_KINDS

    def is_stale(self, candidate: Candidate) -> bool:
        """Check a candidate against the bound cutoff."""
        return is_stale(candidate, self.cutoff, self.kinds)

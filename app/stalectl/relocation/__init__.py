"""Stale file relocation engine.

This module provides the exclude-rule matcher, the staleness predicate,
the directory walker, the per-owner destination allocator, and the
parallel relocation scheduler.
"""

from stalectl.relocation.age import AgePredicate, compute_cutoff, enabled_kinds, is_stale
from stalectl.relocation.allocator import DestinationAllocator, OwnerAllocator, load_manifest
from stalectl.relocation.errors import (
    AllocatorInitError,
    ConfigError,
    MoveError,
    PatternError,
    ScanError,
    StalectlError,
)
from stalectl.relocation.models import (
    BackupSlot,
    Candidate,
    RelocationResult,
    RunConfig,
    RunSummary,
    TimestampKind,
)
from stalectl.relocation.patterns import ExcludeRule, Matcher, compile_rules, compile_rules_bytes
from stalectl.relocation.runner import build_config, execute
from stalectl.relocation.scheduler import RelocationScheduler
from stalectl.relocation.walker import DirectoryWalker, WalkStats

__all__ = [
    "AgePredicate",
    "AllocatorInitError",
    "BackupSlot",
    "Candidate",
    "ConfigError",
    "DestinationAllocator",
    "DirectoryWalker",
    "ExcludeRule",
    "Matcher",
    "MoveError",
    "OwnerAllocator",
    "PatternError",
    "RelocationResult",
    "RelocationScheduler",
    "RunConfig",
    "RunSummary",
    "ScanError",
    "StalectlError",
    "TimestampKind",
    "WalkStats",
    "build_config",
    "compile_rules",
    "compile_rules_bytes",
    "compute_cutoff",
    "enabled_kinds",
    "execute",
    "is_stale",
    "load_manifest",
]

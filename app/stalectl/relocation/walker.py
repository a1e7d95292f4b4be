"""Lazy, pruning directory walker.

Traverses the source tree with ``os.scandir`` and an explicit stack,
consulting the exclude matcher before descending and the age predicate
before yielding. Symlinks are never followed; a symlink is reported as a
candidate itself. Per-entry I/O errors are logged and skipped.
"""

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from stalectl.relocation.age import AgePredicate
from stalectl.relocation.errors import ScanError
from stalectl.relocation.models import Candidate
from stalectl.relocation.patterns import Matcher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WalkStats:
    """Counters collected during one traversal.

    Attributes:
        directories: Directories opened and listed.
        files_seen: Files and symlinks whose metadata was read.
        selected: Candidates yielded.
        excluded: Entries dropped by exclude rules.
        fresh: Files that were not stale.
        unsupported: Sockets, fifos, devices.
        errors: Entries that could not be read.
    """

    directories: int = 0
    files_seen: int = 0
    selected: int = 0
    excluded: int = 0
    fresh: int = 0
    unsupported: int = 0
    errors: int = 0

    @property
    def skipped(self) -> int:
        """Entries seen but deliberately not selected."""
        return self.excluded + self.fresh + self.unsupported


class DirectoryWalker:
    """Enumerates stale files below a root directory.

    Args:
        root: Directory to scan (absolute).
        matcher: Compiled exclude rules, evaluated relative to ``root``.
        predicate: Staleness check applied to every non-excluded file.
        prune: Absolute paths that are never visited.
    """

    def __init__(
        self,
        root: Path,
        matcher: Matcher,
        predicate: AgePredicate,
        prune: Iterable[str] = (),
    ) -> None:
        self._root = os.fspath(root)
        self._matcher = matcher
        self._predicate = predicate
        self._prune = frozenset(prune)
        self.stats = WalkStats()

    def walk(self) -> Iterator[Candidate]:
        """Yield stale candidates lazily, in no particular order.

        Yields:
            Candidate for each selected file or symlink.
        """
        stack: list[tuple[str, str]] = [(self._root, "")]

        while stack:
            directory, relative_dir = stack.pop()
            try:
                iterator = os.scandir(directory)
            except OSError as e:
                self._report(ScanError(directory, e))
                continue

            self.stats.directories += 1
            with iterator as entries:
                try:
                    for entry in entries:
                        candidate = self._visit(entry, relative_dir, stack)
                        if candidate is not None:
                            yield candidate
                except OSError as e:
                    # Listing broke off midway (directory removed, I/O error)
                    self._report(ScanError(directory, e))

    def _visit(
        self,
        entry: os.DirEntry[str],
        relative_dir: str,
        stack: list[tuple[str, str]],
    ) -> Candidate | None:
        """Classify one directory entry.

        Directories that survive the exclude check are pushed onto the
        stack; files are turned into candidates and filtered by age.
        """
        if entry.path in self._prune:
            logger.debug("Pruned %s", entry.path)
            return None

        relative = f"{relative_dir}/{entry.name}" if relative_dir else entry.name
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as e:
            self._report(ScanError(entry.path, e))
            return None

        if self._matcher.is_excluded(relative, is_dir):
            logger.debug("Excluded %s", relative)
            self.stats.excluded += 1
            return None

        if is_dir:
            stack.append((entry.path, relative))
            return None

        try:
            if not (entry.is_file(follow_symlinks=False) or entry.is_symlink()):
                self.stats.unsupported += 1
                return None
            st = entry.stat(follow_symlinks=False)
        except OSError as e:
            self._report(ScanError(entry.path, e))
            return None

        self.stats.files_seen += 1
        candidate = Candidate(
            path=entry.path,
            uid=st.st_uid,
            atime=st.st_atime,
            mtime=st.st_mtime,
            ctime=st.st_ctime,
        )
        if not self._predicate.is_stale(candidate):
            self.stats.fresh += 1
            return None

        self.stats.selected += 1
        return candidate

    def _report(self, error: ScanError) -> None:
        """Log a per-entry failure and keep walking."""
        self.stats.errors += 1
        logger.warning("%s", error)

"""Parallel relocation of selected files.

One producer (the caller, iterating the lazy walker) feeds a bounded
queue; a fixed pool of worker threads takes candidates off it, reserves
a slot from the owner's allocator, renames the file into place and
records the manifest entry. Failures are isolated per file.
"""

import logging
import os
import queue
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from stalectl.relocation.allocator import DestinationAllocator
from stalectl.relocation.errors import MoveError
from stalectl.relocation.models import Candidate, RelocationResult, RunConfig, RunSummary
from stalectl.utils.shell import escape_path

logger = logging.getLogger(__name__)

# Queue slots per worker; bounds memory regardless of tree size
QUEUE_DEPTH = 4

ResultCallback = Callable[[RelocationResult], None]


@dataclass(slots=True)
class _Tally:
    """Per-worker counters, merged after the workers have joined."""

    moved: int = 0
    failures: list[RelocationResult] = field(default_factory=list)


class RelocationScheduler:
    """Moves candidates into their owners' backup directories.

    Args:
        config: Run configuration.
        allocator: Destination allocator; created from ``config`` if omitted.
        on_result: Called from worker threads with every result.
    """

    def __init__(
        self,
        config: RunConfig,
        allocator: DestinationAllocator | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._config = config
        self._allocator = allocator or DestinationAllocator(config.dest, dry_run=config.dry_run)
        self._on_result = on_result

    @property
    def allocator(self) -> DestinationAllocator:
        """The allocator used by this scheduler."""
        return self._allocator

    def run(self, candidates: Iterable[Candidate]) -> RunSummary:
        """Relocate every candidate and finalize the manifests.

        The calling thread consumes ``candidates`` and blocks while the
        queue is full. Manifests are finalized even if the candidate
        stream raises.

        Args:
            candidates: Lazy stream of selected files.

        Returns:
            RunSummary with moved and failed counts (skipped is left at 0
            for the caller to fill in from the walker).
        """
        num_threads = max(1, self._config.num_threads)
        work: queue.Queue[object] = queue.Queue(maxsize=num_threads * QUEUE_DEPTH)
        sentinel = object()
        tallies = [_Tally() for _ in range(num_threads)]

        workers: list[threading.Thread] = []
        for index, tally in enumerate(tallies):
            thread = threading.Thread(
                target=self._worker,
                args=(work, sentinel, tally),
                name=f"relocate-{index + 1}",
                daemon=True,
            )
            thread.start()
            workers.append(thread)

        try:
            for candidate in candidates:
                work.put(candidate)
        finally:
            for _ in workers:
                work.put(sentinel)
            for thread in workers:
                thread.join()
            manifest_errors = self._allocator.close()

        failures = [result for tally in tallies for result in tally.failures]
        return RunSummary(
            moved=sum(tally.moved for tally in tallies),
            failed=len(failures),
            failures=tuple(failures),
            manifest_errors=tuple(manifest_errors),
            dry_run=self._config.dry_run,
        )

    def _worker(self, work: "queue.Queue[object]", sentinel: object, tally: _Tally) -> None:
        while True:
            item = work.get()
            try:
                if item is sentinel:
                    return
                candidate = cast(Candidate, item)
                try:
                    result = self.relocate(candidate)
                except Exception as e:
                    logger.exception("Unexpected error relocating %s", escape_path(candidate.path))
                    result = RelocationResult(candidate=candidate, destination=None, success=False, error=str(e))

                if result.success:
                    tally.moved += 1
                else:
                    tally.failures.append(result)
                self._notify(result)
            finally:
                work.task_done()

    def relocate(self, candidate: Candidate) -> RelocationResult:
        """Move a single candidate into its next backup slot.

        Args:
            candidate: File to relocate.

        Returns:
            RelocationResult; never raises for per-file failures.
        """
        owner = self._allocator.for_owner(candidate.uid)
        try:
            slot = owner.reserve()
        except MoveError as e:
            return self._failed(candidate, None, e)

        destination = owner.destination(slot)
        if self._config.dry_run:
            return RelocationResult(
                candidate=candidate,
                destination=str(destination),
                success=True,
                dry_run=True,
            )

        try:
            _rename(candidate.path, destination)
        except MoveError as e:
            return self._failed(candidate, destination, e)

        try:
            owner.record(slot, candidate.path)
        except MoveError as e:
            return self._failed(candidate, destination, e)

        logger.debug("Moved %s -> %s", escape_path(candidate.path), destination)
        return RelocationResult(candidate=candidate, destination=str(destination), success=True)

    def _failed(self, candidate: Candidate, destination: Path | None, error: MoveError) -> RelocationResult:
        logger.warning("%s", error)
        return RelocationResult(
            candidate=candidate,
            destination=str(destination) if destination is not None else None,
            success=False,
            error=str(error),
        )

    def _notify(self, result: RelocationResult) -> None:
        if self._on_result is None:
            return
        try:
            self._on_result(result)
        except Exception:
            logger.exception("Result callback failed")


def _rename(source: str, destination: Path) -> None:
    """Atomically rename ``source`` onto a free ``destination``.

    Symlinks are moved as links. Source and destination must be on the
    same filesystem.

    Raises:
        MoveError: If the destination is occupied or the rename fails.
    """
    if os.path.lexists(destination):
        msg = f"Destination already exists: {destination}"
        raise MoveError(msg)
    try:
        os.rename(source, destination)
    except OSError as e:
        msg = f"Cannot move {escape_path(source)} to {destination}: {e.strerror or e}"
        raise MoveError(msg) from e

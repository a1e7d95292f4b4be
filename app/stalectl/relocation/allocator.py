"""Per-owner backup slot allocation and manifest bookkeeping.

Layout under the destination root::

    <dest>/<uid>/0, 1, 2, ...     relocated files
    <dest>/<uid>/map.json         sequence number -> shell-quoted original path
    <dest>/<uid>/.map.journal     entries recorded by the current run

Entries are appended to the journal (one JSON object per line, fsynced)
while a run is in progress and merged into map.json when the owner is
closed. A journal left behind by an interrupted run is merged the next
time that owner is used.
"""

import json
import logging
import os
import threading
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import TextIO

from stalectl.relocation.errors import AllocatorInitError, MoveError
from stalectl.relocation.models import BackupSlot
from stalectl.utils.shell import escape_path

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "map.json"
JOURNAL_FILENAME = ".map.journal"
OWNER_DIR_MODE = 0o700


def _is_sequence_name(name: str) -> bool:
    return name.isascii() and name.isdigit()


def load_manifest(owner_dir: Path) -> dict[str, str]:
    """Read an owner's map.json.

    Args:
        owner_dir: Owner backup directory.

    Returns:
        Mapping of sequence string to quoted original path; empty if the
        manifest does not exist.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not a JSON object.
    """
    path = owner_dir / MANIFEST_FILENAME
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}

    data = json.loads(text)
    if not isinstance(data, dict):
        msg = f"{path} is not a JSON object"
        raise ValueError(msg)
    return {str(key): str(value) for key, value in data.items()}


def read_journal(path: Path) -> dict[str, str]:
    """Read journal entries, ignoring a torn trailing line.

    Returns:
        Mapping of sequence string to quoted original path.
    """
    entries: dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Ignoring unreadable journal line %d in %s", line_number, path)
                    continue
                if isinstance(record, dict):
                    entries.update({str(k): str(v) for k, v in record.items()})
    except FileNotFoundError:
        return {}
    return entries


def write_manifest(owner_dir: Path, manifest: dict[str, str]) -> Path:
    """Atomically replace an owner's map.json.

    The content goes to a temporary file that is fsynced and renamed
    over the manifest, so readers see either the old or the new version.

    Returns:
        Path of the written manifest.
    """
    path = owner_dir / MANIFEST_FILENAME
    ordered = dict(sorted(manifest.items(), key=lambda item: _sort_key(item[0])))

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=owner_dir,
            prefix=f".{MANIFEST_FILENAME}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            json.dump(ordered, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise
    _fsync_directory(owner_dir)
    return path


def _sort_key(key: str) -> tuple[int, int | str]:
    if _is_sequence_name(key):
        return (0, int(key))
    return (1, key)


def _fsync_directory(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _give_to_owner(path: Path, uid: int) -> None:
    """Hand a file or directory to ``uid``; failure is logged, not fatal."""
    try:
        if path.lstat().st_uid == uid:
            return
        os.chown(path, uid, -1, follow_symlinks=False)
    except OSError as e:
        logger.warning("Cannot change owner of %s to uid %d: %s", path, uid, e)


class OwnerAllocator:
    """Slot counter and manifest writer for a single owner.

    All methods are serialized by one lock per owner. The backup
    directory is prepared lazily on first use; if that fails every later
    call raises :class:`AllocatorInitError` for this owner only.

    Args:
        dest_root: Destination root directory.
        uid: Owner id.
        dry_run: Never write to disk.
    """

    def __init__(self, dest_root: Path, uid: int, dry_run: bool = False) -> None:
        self.uid = uid
        self.directory = dest_root / str(uid)
        self._dry_run = dry_run
        self._lock = threading.Lock()
        self._ready = False
        self._init_failure: str | None = None
        self._next_sequence = 0
        self._journal: TextIO | None = None
        self._recorded = 0
        self._closed = False

    @property
    def manifest_path(self) -> Path:
        """Path of this owner's map.json."""
        return self.directory / MANIFEST_FILENAME

    @property
    def journal_path(self) -> Path:
        """Path of this owner's in-progress journal."""
        return self.directory / JOURNAL_FILENAME

    @property
    def recorded(self) -> int:
        """Number of manifest entries recorded in this run."""
        return self._recorded

    def destination(self, slot: BackupSlot) -> Path:
        """Absolute path of a slot."""
        return self.directory / slot.name

    def reserve(self) -> BackupSlot:
        """Hand out the next unused sequence number.

        Returns:
            A slot never returned before for this owner.

        Raises:
            AllocatorInitError: If the owner directory cannot be prepared.
            MoveError: If the allocator was already closed.
        """
        with self._lock:
            self._ensure_ready()
            if self._closed:
                msg = f"Allocator for uid {self.uid} is closed"
                raise MoveError(msg)
            slot = BackupSlot(uid=self.uid, sequence=self._next_sequence)
            self._next_sequence += 1
            return slot

    def record(self, slot: BackupSlot, original_path: str | bytes) -> None:
        """Durably append one manifest entry for a moved file.

        Args:
            slot: Slot the file now occupies.
            original_path: Absolute path the file was moved from.

        Raises:
            MoveError: If the journal cannot be written.
        """
        if self._dry_run:
            return

        line = json.dumps({slot.name: escape_path(original_path)}) + "\n"
        with self._lock:
            self._ensure_ready()
            try:
                if self._journal is None:
                    self._journal = open(self.journal_path, "a", encoding="utf-8")
                self._journal.write(line)
                self._journal.flush()
                os.fsync(self._journal.fileno())
            except OSError as e:
                msg = f"Cannot record {slot.name} in {self.journal_path}: {e}"
                raise MoveError(msg) from e
            self._recorded += 1

    def close(self) -> None:
        """Merge this run's journal into map.json.

        Raises:
            MoveError: If the manifest cannot be written.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._journal is not None:
                try:
                    self._journal.close()
                except OSError as e:
                    logger.warning("Closing %s failed: %s", self.journal_path, e)
                self._journal = None
            if self._dry_run or not self._ready:
                return
            try:
                self._merge_journal()
            except (OSError, ValueError) as e:
                msg = f"Cannot write {self.manifest_path}: {e}"
                raise MoveError(msg) from e

    def _ensure_ready(self) -> None:
        """Prepare the owner directory once. Caller holds the lock."""
        if self._init_failure is not None:
            raise AllocatorInitError(self.uid, self._init_failure)
        if self._ready:
            return

        try:
            self._initialize()
        except (OSError, ValueError) as e:
            self._init_failure = str(e)
            logger.error("Owner uid %d disabled: %s", self.uid, e)
            raise AllocatorInitError(self.uid, self._init_failure) from e
        self._ready = True

    def _initialize(self) -> None:
        if not self._dry_run:
            self.directory.mkdir(mode=OWNER_DIR_MODE, parents=True, exist_ok=True)
            _give_to_owner(self.directory, self.uid)
            if self.journal_path.exists():
                logger.warning("Recovering manifest entries from interrupted run in %s", self.directory)
                self._merge_journal()

        manifest = load_manifest(self.directory)
        manifest.update(read_journal(self.journal_path))
        self._next_sequence = self._scan_next_sequence(manifest)
        logger.debug("Owner uid %d starts at sequence %d", self.uid, self._next_sequence)

    def _scan_next_sequence(self, manifest: dict[str, str]) -> int:
        """One past the highest sequence on disk or in the manifest."""
        try:
            names = os.listdir(self.directory)
        except FileNotFoundError:
            names = []

        highest = -1
        for name in (*names, *manifest):
            if _is_sequence_name(name):
                highest = max(highest, int(name))
        return highest + 1

    def _merge_journal(self) -> None:
        entries = read_journal(self.journal_path)
        if entries:
            manifest = load_manifest(self.directory)
            manifest.update(entries)
            path = write_manifest(self.directory, manifest)
            _give_to_owner(path, self.uid)
            logger.debug("Wrote %d new entries to %s", len(entries), path)
        self.journal_path.unlink(missing_ok=True)


class DestinationAllocator:
    """Thread-safe registry of :class:`OwnerAllocator` per owner id.

    Args:
        dest_root: Destination root directory.
        dry_run: Never write to disk.
    """

    def __init__(self, dest_root: Path, dry_run: bool = False) -> None:
        self.dest_root = dest_root
        self._dry_run = dry_run
        self._owners: dict[int, OwnerAllocator] = {}
        self._lock = threading.Lock()

    def for_owner(self, uid: int) -> OwnerAllocator:
        """Return the single allocator for ``uid``, creating it on first use."""
        with self._lock:
            allocator = self._owners.get(uid)
            if allocator is None:
                allocator = OwnerAllocator(self.dest_root, uid, dry_run=self._dry_run)
                self._owners[uid] = allocator
            return allocator

    def owners(self) -> list[int]:
        """Owner ids seen so far."""
        with self._lock:
            return sorted(self._owners)

    def destination(self, slot: BackupSlot) -> Path:
        """Absolute path of a slot."""
        return self.for_owner(slot.uid).destination(slot)

    def close(self) -> list[int]:
        """Finalize every owner's manifest.

        Returns:
            Owner ids whose manifest could not be written.
        """
        with self._lock:
            allocators = list(self._owners.values())

        failed: list[int] = []
        for allocator in allocators:
            try:
                allocator.close()
            except MoveError as e:
                logger.error("%s", e)
                failed.append(allocator.uid)
        return failed

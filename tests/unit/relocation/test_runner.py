"""Unit tests for run configuration and orchestration."""

import json
import os
import time
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from stalectl.relocation.age import SECONDS_PER_DAY
from stalectl.relocation.allocator import MANIFEST_FILENAME
from stalectl.relocation.errors import ConfigError, PatternError
from stalectl.relocation.models import ALL_TIMESTAMP_KINDS, RelocationResult, TimestampKind
from stalectl.relocation.runner import build_config, default_thread_count, execute

UID = os.getuid()


class TestBuildConfig:
    """Tests for build_config() validation."""

    def test_defaults(self, source_dir: Path, dest_dir: Path) -> None:
        """Paths are resolved and defaults applied."""
        config = build_config(source_dir, dest_dir, now=1000.0)

        assert config.source == source_dir.resolve()
        assert config.dest == dest_dir.resolve()
        assert config.num_threads == default_thread_count()
        assert config.dry_run is False
        assert config.cutoff == 1000.0
        assert config.enabled_kinds == ALL_TIMESTAMP_KINDS
        assert config.matcher.rules == ()
        assert config.prune == frozenset()

    def test_age_and_timestamp_flags(self, source_dir: Path, dest_dir: Path) -> None:
        """--older and --no<kind>time shape the predicate inputs."""
        config = build_config(source_dir, dest_dir, older_days=2, noctime=True, now=10 * SECONDS_PER_DAY)

        assert config.older_days == 2
        assert config.cutoff == 8 * SECONDS_PER_DAY
        assert config.enabled_kinds == {TimestampKind.ATIME, TimestampKind.MTIME}

    def test_missing_source(self, tmp_path: Path, dest_dir: Path) -> None:
        """A source that does not exist is a configuration error."""
        with pytest.raises(ConfigError, match="Source"):
            build_config(tmp_path / "nope", dest_dir)

    def test_missing_destination(self, source_dir: Path, tmp_path: Path) -> None:
        """A destination that does not exist is a configuration error."""
        with pytest.raises(ConfigError, match="Destination"):
            build_config(source_dir, tmp_path / "nope")

    def test_source_is_a_file(self, tmp_path: Path, dest_dir: Path) -> None:
        """The source must be a directory."""
        path = tmp_path / "file"
        path.write_text("")
        with pytest.raises(ConfigError, match="not a directory"):
            build_config(path, dest_dir)

    @pytest.mark.parametrize("threads", [0, -3])
    def test_invalid_thread_count(self, source_dir: Path, dest_dir: Path, threads: int) -> None:
        """At least one worker is required."""
        with pytest.raises(ConfigError, match="at least 1"):
            build_config(source_dir, dest_dir, num_threads=threads)

    def test_negative_age(self, source_dir: Path, dest_dir: Path) -> None:
        """The age threshold cannot be negative."""
        with pytest.raises(ConfigError, match="negative"):
            build_config(source_dir, dest_dir, older_days=-1)

    def test_destination_equal_to_source(self, source_dir: Path) -> None:
        """Moving a tree into itself is refused."""
        with pytest.raises(ConfigError, match="scanned directory itself"):
            build_config(source_dir, source_dir)

    @pytest.mark.parametrize("dry_run", [False, True])
    def test_different_filesystems_rejected(self, source_dir: Path, dest_dir: Path, dry_run: bool) -> None:
        """Source and destination must share a device, in dry-run too."""
        source = source_dir.resolve()

        with (
            patch("stalectl.relocation.runner._device_id", side_effect=lambda p: 1 if p == source else 2),
            pytest.raises(ConfigError, match="same filesystem"),
        ):
            build_config(source_dir, dest_dir, dry_run=dry_run)

    def test_destination_inside_source_is_pruned(self, source_dir: Path) -> None:
        """A destination below the scanned tree is excluded from the scan."""
        dest = source_dir / "backup"
        dest.mkdir()

        config = build_config(source_dir, dest)

        assert str(dest.resolve()) in config.prune

    def test_exclude_file_is_compiled_and_pruned(self, source_dir: Path, dest_dir: Path) -> None:
        """Rules are loaded; an exclude file inside the tree is never moved."""
        exclude = source_dir / ".stalectl-exclude"
        exclude.write_text("# ignore logs\n*.log\n")

        config = build_config(source_dir, dest_dir, exclude_file=exclude)

        assert len(config.matcher.rules) == 1
        assert config.matcher.is_excluded("app.log", False)
        assert str(exclude.resolve()) in config.prune

    def test_exclude_file_outside_source_not_pruned(self, tmp_path: Path, source_dir: Path, dest_dir: Path) -> None:
        """Only paths below the source need pruning."""
        exclude = tmp_path / "exclude"
        exclude.write_text("*.log\n")

        config = build_config(source_dir, dest_dir, exclude_file=exclude)

        assert config.prune == frozenset()

    def test_missing_exclude_file(self, tmp_path: Path, source_dir: Path, dest_dir: Path) -> None:
        """An unreadable exclude file aborts the run."""
        with pytest.raises(ConfigError, match="exclude file"):
            build_config(source_dir, dest_dir, exclude_file=tmp_path / "missing")

    def test_malformed_exclude_rule(self, tmp_path: Path, source_dir: Path, dest_dir: Path) -> None:
        """A bad pattern aborts the run before anything moves."""
        exclude = tmp_path / "exclude"
        exclude.write_text("ok\n[broken\n")

        with pytest.raises(PatternError, match="line 2"):
            build_config(source_dir, dest_dir, exclude_file=exclude)


class TestExecute:
    """End-to-end tests for execute()."""

    def test_moves_only_stale_files(self, source_dir: Path, dest_dir: Path) -> None:
        """Old files move, recent ones stay, map.json records the move."""
        t0 = time.time()
        old = source_dir / "a"
        new = source_dir / "b"
        old.write_text("old")
        new.write_text("new")
        os.utime(old, (t0 - 4 * SECONDS_PER_DAY, t0 - 4 * SECONDS_PER_DAY))
        os.utime(new, (t0 + 5 * SECONDS_PER_DAY, t0 + 5 * SECONDS_PER_DAY))

        config = build_config(source_dir, dest_dir, older_days=5, now=t0 + 6 * SECONDS_PER_DAY)
        summary = execute(config)

        owner_dir = config.dest / str(UID)
        assert summary.moved == 1
        assert summary.skipped == 1
        assert summary.ok
        assert not old.exists()
        assert new.read_text() == "new"
        assert (owner_dir / "0").read_text() == "old"
        manifest = json.loads((owner_dir / MANIFEST_FILENAME).read_text())
        assert manifest == {"0": f"'{config.source / 'a'}'"}

    def test_dry_run_reports_without_moving(
        self, source_dir: Path, dest_dir: Path, make_file: Callable[..., Path]
    ) -> None:
        """Dry-run counts would-be moves and changes nothing."""
        files = [make_file(source_dir / f"f{index}") for index in range(3)]
        config = build_config(
            source_dir, dest_dir, dry_run=True, noatime=True, nomtime=True, noctime=True
        )

        summary = execute(config)

        assert summary.moved == 3
        assert summary.dry_run
        assert all(f.exists() for f in files)
        assert list(dest_dir.iterdir()) == []

    def test_excluded_directory_survives(
        self, tmp_path: Path, source_dir: Path, dest_dir: Path, make_file: Callable[..., Path]
    ) -> None:
        """Files below an excluded directory stay even if a later rule negates them."""
        keep = make_file(source_dir / "secrets" / "keep.txt")
        public = make_file(source_dir / "public.txt")
        exclude = tmp_path / "exclude"
        exclude.write_text("secrets/\n!secrets/keep.txt\n")
        results: list[RelocationResult] = []

        config = build_config(
            source_dir,
            dest_dir,
            exclude_file=exclude,
            noatime=True,
            nomtime=True,
            noctime=True,
        )
        summary = execute(config, on_result=results.append)

        assert keep.exists()
        assert not public.exists()
        assert summary.moved == 1
        assert summary.skipped == 1
        assert [r.candidate.path for r in results] == [str(config.source / "public.txt")]

    def test_destination_inside_source_is_not_rescanned(
        self, source_dir: Path, make_file: Callable[..., Path]
    ) -> None:
        """Relocated files are not picked up again by a later run."""
        dest = source_dir / "backup"
        dest.mkdir()
        make_file(source_dir / "one")
        make_file(source_dir / "two")
        flags = {"noatime": True, "nomtime": True, "noctime": True}

        first = execute(build_config(source_dir, dest, **flags))
        second = execute(build_config(source_dir, dest, **flags))

        assert first.moved == 2
        assert second.moved == 0
        assert sorted(p.name for p in (dest / str(UID)).iterdir()) == ["0", "1", MANIFEST_FILENAME]

    def test_repeated_runs_continue_numbering(
        self, source_dir: Path, dest_dir: Path, make_file: Callable[..., Path]
    ) -> None:
        """A second run appends to the same owner directory and manifest."""
        flags = {"noatime": True, "nomtime": True, "noctime": True}
        make_file(source_dir / "first")
        execute(build_config(source_dir, dest_dir, **flags))
        make_file(source_dir / "second")
        execute(build_config(source_dir, dest_dir, **flags))

        manifest = json.loads((dest_dir / str(UID) / MANIFEST_FILENAME).read_text())
        resolved = source_dir.resolve()
        assert manifest == {"0": f"'{resolved / 'first'}'", "1": f"'{resolved / 'second'}'"}

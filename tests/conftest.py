"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from stalectl.relocation.patterns import Matcher

DAY = 86400.0


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at an empty directory so user settings never leak in."""
    config_home = tmp_path_factory.mktemp("xdg-config")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Empty source tree root."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def dest_dir(tmp_path: Path) -> Path:
    """Empty destination root on the same filesystem as source_dir."""
    path = tmp_path / "backup"
    path.mkdir()
    return path


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Factory creating a file with optional atime/mtime age in days."""

    def _make(path: Path, content: str = "x", age_days: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if age_days is not None:
            stamp = time.time() - age_days * DAY
            os.utime(path, (stamp, stamp))
        return path

    return _make


@pytest.fixture
def empty_matcher() -> Matcher:
    """Matcher without rules."""
    return Matcher()


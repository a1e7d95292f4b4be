"""User defaults for stalectl runs.

Values in ``~/.config/stalectl/config.toml`` fill in any ``stalectl run``
option not given on the command line::

    [defaults]
    num_threads = 8
    older = 30
    exclude_file = "/etc/stalectl/exclude"
    noatime = true
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stalectl.core.paths import get_settings_path
from stalectl.relocation.errors import ConfigError


class RunDefaults(BaseModel):
    """Default values for ``stalectl run`` options.

    Attributes:
        num_threads: Worker count (None = number of CPUs).
        older: Minimum age in days.
        exclude_file: Path to a gitignore-style exclude file.
        noatime: Ignore access time.
        nomtime: Ignore modification time.
        noctime: Ignore status change time.
    """

    model_config = ConfigDict(extra="forbid")

    num_threads: Annotated[
        int | None,
        Field(ge=1, description="Worker threads (None = CPU count)"),
    ] = None
    older: Annotated[float, Field(ge=0, description="Minimum age in days")] = 0
    exclude_file: Annotated[str | None, Field(description="Exclude file path")] = None
    noatime: Annotated[bool, Field(description="Ignore atime")] = False
    nomtime: Annotated[bool, Field(description="Ignore mtime")] = False
    noctime: Annotated[bool, Field(description="Ignore ctime")] = False


class Settings(BaseModel):
    """Root of config.toml."""

    model_config = ConfigDict(extra="forbid")

    defaults: Annotated[
        RunDefaults,
        Field(default_factory=RunDefaults, description="Defaults for stalectl run"),
    ]


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a TOML file.

    A missing file yields built-in defaults.

    Args:
        path: Path to the config file. If None, uses the default location.

    Returns:
        Validated Settings object.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        return Settings()

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax in {settings_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {settings_path}: {e}") from e

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {settings_path}: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to a TOML file atomically.

    Args:
        settings: Settings to write.
        path: Destination. If None, uses the default location.

    Returns:
        Path where the settings were saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    settings_path = path or get_settings_path()
    data = settings.model_dump(exclude_none=True)

    tmp_path: Path | None = None
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(tmp_path, settings_path)
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write {settings_path}: {e}") from e

    return settings_path

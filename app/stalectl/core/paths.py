"""XDG-compliant path management for stalectl.

Configuration lives in ``$XDG_CONFIG_HOME/stalectl`` (default
``~/.config/stalectl``).
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "stalectl"

SETTINGS_FILENAME = "config.toml"
THEME_FILENAME = "theme.toml"


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/stalectl/ (or XDG_CONFIG_HOME/stalectl/).
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_settings_path() -> Path:
    """Get the user settings file path.

    Returns:
        Path to ~/.config/stalectl/config.toml.
    """
    return get_config_dir() / SETTINGS_FILENAME


def get_user_theme_path() -> Path:
    """Get the user theme override path.

    Returns:
        Path to ~/.config/stalectl/theme.toml.
    """
    return get_config_dir() / THEME_FILENAME

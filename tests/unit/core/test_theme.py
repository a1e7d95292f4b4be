"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

from pathlib import Path
from unittest.mock import patch

import pytest
import stalectl.core.theme as theme_module
from rich.theme import Theme
from stalectl.core.theme import (
    ThemeColors,
    _load_toml_colors,
    get_bundled_theme_path,
    get_rich_theme,
    get_theme,
    load_theme,
)


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        """ThemeColors has sensible defaults."""
        colors = ThemeColors()
        assert colors.text == "#ffffff"
        assert colors.header == "#69B9A1"
        assert colors.moved == "#c1ff62"
        assert colors.failed == "#f53263"

    def test_valid_hex_colors(self) -> None:
        """ThemeColors accepts valid hex color codes."""
        colors = ThemeColors(text="#AABBCC", muted="#abc", path=" #123456 ")
        assert colors.text == "#AABBCC"
        assert colors.muted == "#abc"
        assert colors.path == "#123456"

    def test_invalid_hex_no_hash(self) -> None:
        """ThemeColors rejects colors without # prefix."""
        with pytest.raises(ValueError, match="must start with '#'"):
            ThemeColors(text="ffffff")

    def test_invalid_hex_wrong_length(self) -> None:
        """ThemeColors rejects colors with wrong length."""
        with pytest.raises(ValueError, match="must be #RGB or #RRGGBB"):
            ThemeColors(moved="#ff")

    def test_invalid_hex_chars(self) -> None:
        """ThemeColors rejects invalid hex characters."""
        with pytest.raises(ValueError, match="invalid hex color"):
            ThemeColors(failed="#gggggg")

    def test_extra_fields_forbidden(self) -> None:
        """ThemeColors rejects unknown fields."""
        with pytest.raises(ValueError):
            ThemeColors(unknown_field="#ffffff")  # type: ignore[call-arg]


class TestLoadTomlColors:
    """Tests for _load_toml_colors internal function."""

    def test_loads_valid_toml(self, tmp_path: Path) -> None:
        """Loads colors from valid TOML file."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text('[colors]\ntext = "#000000"\nmoved = "#aabbcc"\nbogus = 3\n')

        result = _load_toml_colors(theme_file)

        assert result == {"text": "#000000", "moved": "#aabbcc"}

    def test_returns_none_for_missing_file(self, tmp_path: Path) -> None:
        """Returns None when file doesn't exist."""
        assert _load_toml_colors(tmp_path / "nonexistent.toml") is None

    def test_returns_none_for_invalid_toml(self, tmp_path: Path) -> None:
        """Returns None for malformed TOML."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text("not valid [ toml syntax")

        assert _load_toml_colors(theme_file) is None

    def test_returns_none_for_non_table_colors(self, tmp_path: Path) -> None:
        """A colors key that is not a table is rejected."""
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text('colors = "red"\n')

        assert _load_toml_colors(theme_file) is None


class TestLoadTheme:
    """Tests for load_theme function."""

    def test_bundled_theme_ships_with_package(self) -> None:
        """The bundled theme file exists and lists every color."""
        colors = _load_toml_colors(Path(get_bundled_theme_path()))

        assert colors is not None
        assert set(colors) == set(ThemeColors.model_fields)

    def test_user_theme_overrides_bundled(self, tmp_path: Path) -> None:
        """User theme overrides bundled theme values."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nmoved = "#ff0000"\n')

        with patch("stalectl.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors.moved == "#ff0000"
        assert colors.text == "#ffffff"

    def test_invalid_user_color_falls_back_to_defaults(self, tmp_path: Path) -> None:
        """A user color failing validation yields the default theme."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nheader = "blue"\n')

        with patch("stalectl.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors == ThemeColors()


class TestGetRichTheme:
    """Tests for get_rich_theme function."""

    def test_includes_outcome_styles(self) -> None:
        """Theme includes the styles used by the run listing."""
        theme = get_rich_theme(ThemeColors())

        for style in ("moved", "failed", "path", "bold_header", "dim", "error", "warning"):
            assert style in theme.styles

    def test_uses_provided_colors(self) -> None:
        """Uses provided ThemeColors instance."""
        theme = get_rich_theme(ThemeColors(path="#123456"))

        assert theme.styles["path"].color is not None
        assert theme.styles["path"].color.name == "#123456"


class TestGetTheme:
    """Tests for get_theme caching function."""

    def test_caches_theme(self) -> None:
        """get_theme returns cached instance on subsequent calls."""
        theme_module._cached_theme = None

        theme1 = get_theme()
        theme2 = get_theme()

        assert isinstance(theme1, Theme)
        assert theme1 is theme2

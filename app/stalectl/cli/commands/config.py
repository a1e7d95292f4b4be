"""Settings commands.

Shows and initializes the user defaults file used by ``stalectl run``.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from stalectl.core.paths import get_settings_path
from stalectl.core.settings import Settings, load_settings, save_settings
from stalectl.relocation.errors import ConfigError
from stalectl.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or create default run settings.",
    no_args_is_help=True,
)

ConfigPathOption = Annotated[
    Path | None,
    typer.Option("--config", help="Settings file [default: ~/.config/stalectl/config.toml]."),
]


@app.command()
def show(config_path: ConfigPathOption = None) -> None:
    """Show the effective default settings."""
    path = config_path or get_settings_path()
    try:
        settings = load_settings(path)
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    if not path.exists():
        print_info(f"No settings file at {path}; using built-in defaults.")

    table = Table(title="Run Defaults", header_style="bold_header", border_style="border")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    for name, value in settings.defaults.model_dump().items():
        table.add_row(name, "-" if value is None else escape(str(value)))

    console.print(table)


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
    config_path: ConfigPathOption = None,
) -> None:
    """Write a settings file with the built-in defaults."""
    path = config_path or get_settings_path()
    if path.exists() and not force:
        print_error(f"Settings file already exists: {path} (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        written = save_settings(Settings(), path)
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    print_success(f"Settings written to {written}")

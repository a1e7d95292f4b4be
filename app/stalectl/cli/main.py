"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from typing import Annotated

import typer

from stalectl import __version__
from stalectl.cli.commands import config, run
from stalectl.utils.formatting import setup_logging

# Create main Typer app
app = typer.Typer(
    name="stalectl",
    help="Move stale files into per-owner backup directories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"stalectl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """stalectl - relocate stale files on shared filesystems.

    Files whose timestamps are all older than a cutoff are renamed into
    <dest>/<uid>/<n>, with <dest>/<uid>/map.json recording where each
    one came from.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet


# Register commands
app.command(name="run")(run.run_cleanup)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()

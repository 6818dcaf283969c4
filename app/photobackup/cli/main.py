"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from typing import Annotated

import typer

from photobackup import __version__
from photobackup.cli.commands import config, rules, run

# Create main Typer app
app = typer.Typer(
    name="photo-backup",
    help="Back up photo collections from multiple sources to one destination.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"photo-backup version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
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
) -> None:
    """photo-backup - Multi-source deletion-protected backup.

    Mirrors every source into one destination. Files that belong to
    another source are never deleted by a source's mirror pass.
    """


# Register commands
app.add_typer(run.app, name="run")
app.command(name="rules")(rules.show_rules)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()

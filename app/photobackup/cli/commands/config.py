"""Config command implementation.

Shows the effective configuration and writes new configuration files.
"""

from pathlib import Path
from typing import Annotated

import tomli_w
import typer

from photobackup.core.config import find_config_file, load_config, resolve_config, save_config
from photobackup.core.paths import get_config_path
from photobackup.sync.errors import ConfigurationError
from photobackup.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or create the backup configuration.",
    invoke_without_command=True,
    no_args_is_help=True,
)


@app.command()
def show(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file (default: search standard locations)."),
    ] = None,
) -> None:
    """Display the effective configuration."""
    path = config_path or find_config_file()
    if path is None:
        print_error("No configuration file found.")
        print_info(f"Create one with: photo-backup config init (default: {get_config_path()})")
        raise typer.Exit(code=1)

    try:
        config = load_config(path)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    console.print(f"[muted]# {path}[/]", highlight=False)
    data = config.model_dump(mode="json", exclude={"dry_run", "debug"})
    typer.echo(tomli_w.dumps({k: v for k, v in data.items() if v is not None}))
    console.print(f"[info]Destination:[/] {config.destination}", highlight=False)


@app.command()
def init(
    sources: Annotated[
        list[Path],
        typer.Option("--source", "-s", help="Source path (can be used multiple times)."),
    ],
    dest_path: Annotated[
        str,
        typer.Option("--dest-path", "-p", help="Destination path."),
    ],
    host: Annotated[
        str | None,
        typer.Option("--host", "-H", help="Backup server hostname."),
    ] = None,
    transport: Annotated[
        str | None,
        typer.Option("--transport", "-t", help="Transfer primitive: rsync or local."),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", "-l", help="Log file path."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="File to write (default: user config path)."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file."),
    ] = False,
) -> None:
    """Write a configuration file from the given settings."""
    path = config_path or get_config_path()
    if path.exists() and not force:
        print_error(f"Config file already exists: {path}")
        print_info("Use --force to overwrite.")
        raise typer.Exit(code=1)

    try:
        config = resolve_config(
            overrides={
                "sources": sources,
                "dest_path": dest_path,
                "host": host,
                "transport": transport,
                "log_file": log_file,
            }
        )
        save_config(config, path)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Configuration written to {path}")

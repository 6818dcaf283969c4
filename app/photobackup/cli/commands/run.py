"""Run command implementation.

Validates the configuration, then mirrors every source into the
destination with protection rules built from the other sources.
"""

import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from photobackup.core.config import BackupConfig, load_config
from photobackup.core.log import setup_logging
from photobackup.core.paths import get_default_log_path
from photobackup.sync.errors import BackupError, ConfigurationError
from photobackup.sync.mirror import MirrorExecutor
from photobackup.sync.sequencer import BackupSequencer
from photobackup.sync.transfer import create_transfer
from photobackup.utils.formatting import console, create_summary_table, print_error, print_success

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Back up all sources to the destination.",
    invoke_without_command=True,
)


def build_overrides(
    sources: list[Path] | None,
    host: str | None,
    dest_path: str | None,
    log_file: Path | None,
    transport: str | None,
    dry_run: bool,
    debug: bool,
) -> dict[str, Any]:
    """Turn command-line options into config overrides.

    Flags that were not given map to None so the config file's values
    are kept.
    """
    return {
        "sources": sources or None,
        "host": host,
        "dest_path": dest_path,
        "log_file": log_file,
        "transport": transport,
        "dry_run": True if dry_run else None,
        "debug": True if debug else None,
    }


def execute_run(config: BackupConfig, log_file: Path | None = None) -> None:
    """Run the sequencer for a config and display the summary.

    Raises:
        typer.Exit: With code 1 if the run fails.
    """
    executor = MirrorExecutor(create_transfer(config.transport))
    sequencer = BackupSequencer(config, executor)

    logger.info("Starting photo backup operation.")
    if log_file is not None:
        logger.info("Logging to: %s", log_file)

    try:
        summary = sequencer.run()
    except BackupError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1) from e

    console.print(create_summary_table(summary))
    if summary.dry_run:
        print_success(f"Dry-run complete: {summary.total_changes} change(s) planned.")
    else:
        print_success(f"Backup complete: {summary.total_changes} change(s) applied.")


@app.callback(invoke_without_command=True)
def run_backup(
    sources: Annotated[
        list[Path] | None,
        typer.Option(
            "--source",
            "-s",
            help="Source path (can be used multiple times).",
        ),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", "-H", help="Backup server hostname."),
    ] = None,
    dest_path: Annotated[
        str | None,
        typer.Option("--dest-path", "-p", help="Destination path."),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            "-l",
            help="Log file path (default: ~/.local/state/photobackup/photo-backup.log).",
        ),
    ] = None,
    transport: Annotated[
        str | None,
        typer.Option("--transport", "-t", help="Transfer primitive: rsync or local."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Dry-run mode (no changes are made)."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-d", help="Debug mode (enables verbose logging)."),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file (default: search standard locations)."),
    ] = None,
) -> None:
    """Sync photos from multiple sources to the backup destination.

    Required settings must be provided either in a config file or via
    the options above. Command-line options override file values.
    """
    overrides = build_overrides(sources, host, dest_path, log_file, transport, dry_run, debug)

    try:
        config = load_config(config_path, **overrides)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    log_file = config.log_file or get_default_log_path()
    try:
        setup_logging(log_file, config.debug)
    except OSError as e:
        print_error(f"Cannot open log file {log_file}: {e}")
        raise typer.Exit(code=1) from e

    execute_run(config, log_file)


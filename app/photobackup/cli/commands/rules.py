"""Rules command implementation.

Prints the protection rules a source's mirror pass would receive, in
rsync filter syntax, without touching the destination.
"""

import os
from pathlib import Path
from typing import Annotated

import typer

from photobackup.core.config import find_config_file, read_config_file
from photobackup.sync.errors import BackupError, ConfigurationError
from photobackup.sync.models import SourceTree
from photobackup.sync.protection import build_protection_rules
from photobackup.sync.sequencer import other_sources
from photobackup.utils.formatting import err_console, print_error


def _resolve_sources(sources: list[Path] | None, config_path: Path | None) -> list[Path]:
    """Pick the source list from options, falling back to the config file."""
    if sources:
        return sources

    path = config_path or find_config_file()
    file_values = read_config_file(path) if path is not None else {}
    configured = file_values.get("sources") or []
    if not configured:
        raise ConfigurationError("The following required settings are missing: sources")
    return [Path(s) for s in configured]


def show_rules(
    target: Annotated[
        Path,
        typer.Argument(help="Source whose mirror pass the rules are generated for."),
    ],
    sources: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="Source path (can be used multiple times)."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file (default: search standard locations)."),
    ] = None,
) -> None:
    """Print the protection filter for TARGET against all other sources."""
    try:
        all_sources = [SourceTree(root=p) for p in _resolve_sources(sources, config_path)]
        current = SourceTree(root=target)
        normalized = os.path.normpath(target)
        matches = [t for t in all_sources if os.path.normpath(t.root) == normalized]
        if matches:
            current = matches[0]
        others = other_sources(all_sources, current)
        rules = build_protection_rules(others)
    except BackupError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for rule in rules:
        typer.echo(rule.to_filter_line())

    err_console.print(
        f"[muted]{len(rules)} rule(s) from {len(others)} other source(s)[/]",
        highlight=False,
    )

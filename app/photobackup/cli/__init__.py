"""CLI package for photo-backup.

This package contains the Typer application and all subcommands.
"""

from photobackup.cli.main import app

__all__ = ["app"]

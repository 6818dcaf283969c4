"""CLI commands for photo-backup.

This package contains all subcommand implementations.
"""

from photobackup.cli.commands import config, rules, run

__all__ = ["config", "rules", "run"]

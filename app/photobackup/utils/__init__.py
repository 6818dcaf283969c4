"""Utility modules for photo-backup.

This module exports commonly used utility functions.
"""

from photobackup.utils.formatting import (
    console,
    err_console,
    print_error,
    print_info,
    print_success,
)
from photobackup.utils.shell import CommandResult, command_exists, run_command

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "run_command",
]

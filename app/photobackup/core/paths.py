"""XDG-compliant path management for photo-backup.

XDG defaults:
- Config: ~/.config/photobackup/
- State: ~/.local/state/photobackup/
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "photobackup"

# System-wide configuration file, checked after the user's
SYSTEM_CONFIG_PATH = Path("/etc/photo-backup.toml")


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/photobackup/ (or XDG_CONFIG_HOME/photobackup/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    Returns:
        Path to ~/.local/state/photobackup/ (or XDG_STATE_HOME/photobackup/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_default_log_path() -> Path:
    """Get the log file used when no log_file is configured.

    Returns:
        Path to ~/.local/state/photobackup/photo-backup.log.
    """
    return get_state_dir() / "photo-backup.log"


def get_config_path() -> Path:
    """Get the user configuration file path.

    Returns:
        Path to ~/.config/photobackup/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_config_search_paths() -> list[Path]:
    """Get configuration file candidates in lookup order.

    Returns:
        User config path first, then the system-wide path.
    """
    return [get_config_path(), SYSTEM_CONFIG_PATH]

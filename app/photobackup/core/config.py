"""Backup configuration model and file I/O.

The configuration is an immutable Pydantic model built once at startup
from an optional TOML file and command-line overrides, then passed
explicitly to the sequencer.

Configuration is looked up in:
- $XDG_CONFIG_HOME/photobackup/config.toml (~/.config/photobackup/config.toml)
- /etc/photo-backup.toml
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from photobackup.core.paths import get_config_search_paths
from photobackup.sync.errors import ConfigurationError

TransportName = Literal["rsync", "local"]

DEFAULT_EXCLUDES: tuple[str, ...] = (".*",)


class BackupConfig(BaseModel):
    """Settings for one backup run.

    Attributes:
        sources: Source directories, in processing order.
        host: Backup server hostname (required for the rsync transport).
        dest_path: Destination path on the backup server.
        transport: Transfer primitive to use ("rsync" or "local").
        excludes: Patterns excluded from the mirror on both sides.
        log_file: Optional file receiving timestamped log lines.
        dry_run: Plan the run without changing anything.
        debug: Enable debug logging.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    sources: Annotated[
        tuple[Path, ...],
        Field(min_length=1, description="Source directories, in processing order"),
    ]
    host: Annotated[
        str | None,
        Field(description="Backup server hostname"),
    ] = None
    dest_path: Annotated[
        str,
        Field(min_length=1, description="Destination path"),
    ]
    transport: Annotated[
        TransportName,
        Field(description="Transfer primitive"),
    ] = "rsync"
    excludes: Annotated[
        tuple[str, ...],
        Field(description="Exclude patterns applied on both sides"),
    ] = DEFAULT_EXCLUDES
    log_file: Annotated[
        Path | None,
        Field(description="Log file path"),
    ] = None
    dry_run: bool = False
    debug: bool = False

    @field_validator("sources", mode="after")
    @classmethod
    def validate_unique_sources(cls, v: tuple[Path, ...]) -> tuple[Path, ...]:
        """Reject a source listed more than once."""
        seen: set[Path] = set()
        for source in v:
            key = Path(os.path.normpath(source))
            if key in seen:
                msg = f"Source listed more than once: {source}"
                raise ValueError(msg)
            seen.add(key)
        return v

    @field_validator("host", mode="before")
    @classmethod
    def normalize_host(cls, v: object) -> object:
        """Treat an empty host string as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_host_for_rsync(self) -> "BackupConfig":
        """Require a host when mirroring through rsync."""
        if self.transport == "rsync" and self.host is None:
            msg = "host is required for the rsync transport"
            raise ValueError(msg)
        return self

    @property
    def destination(self) -> str:
        """Destination locator handed to the transfer primitive.

        Returns:
            ``host:dest_path`` for rsync, otherwise the local dest_path.
        """
        if self.transport == "rsync" and self.host:
            return f"{self.host}:{self.dest_path}"
        return self.dest_path


def find_config_file() -> Path | None:
    """Return the first existing configuration file, if any."""
    for candidate in get_config_search_paths():
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read raw settings from a TOML configuration file.

    Args:
        path: Path to the TOML file.

    Returns:
        Dictionary of settings as found in the file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid TOML.
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML syntax in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e


def resolve_config(
    file_values: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> BackupConfig:
    """Merge file settings with overrides and validate the result.

    Overrides set to None are ignored, so unset command-line options keep
    the file's values. A non-empty ``sources`` override replaces the file's
    source list rather than extending it.

    Args:
        file_values: Settings read from a configuration file.
        overrides: Settings from the command line.

    Returns:
        Validated, immutable BackupConfig.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    data: dict[str, Any] = dict(file_values or {})
    for key, value in (overrides or {}).items():
        if value is None or (key == "sources" and not value):
            continue
        data[key] = value

    missing = [key for key in ("sources", "dest_path") if not data.get(key)]
    if data.get("transport", "rsync") == "rsync" and not data.get("host"):
        missing.insert(0, "host")
    if missing:
        msg = f"The following required settings are missing: {', '.join(missing)}"
        raise ConfigurationError(msg)

    try:
        return BackupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(path: Path | None = None, **overrides: Any) -> BackupConfig:
    """Load configuration from a file and apply overrides.

    Args:
        path: Explicit config file. If None, the search paths are tried and
            a missing file is not an error.
        **overrides: Command-line settings taking precedence over the file.

    Returns:
        Validated BackupConfig.

    Raises:
        ConfigurationError: If the explicit file is missing or the merged
            settings are invalid.
    """
    config_path = path or find_config_file()
    file_values = read_config_file(config_path) if config_path is not None else {}
    return resolve_config(file_values, overrides)


def config_to_dict(config: BackupConfig) -> dict[str, Any]:
    """Convert a BackupConfig to a dictionary for TOML serialization.

    Only includes non-default optional values to keep the file clean.

    Args:
        config: The BackupConfig to convert.

    Returns:
        Dictionary ready for TOML serialization.
    """
    result: dict[str, Any] = {"sources": [str(s) for s in config.sources]}

    if config.host is not None:
        result["host"] = config.host
    result["dest_path"] = config.dest_path

    if config.transport != "rsync":
        result["transport"] = config.transport

    if config.excludes != DEFAULT_EXCLUDES:
        result["excludes"] = list(config.excludes)

    if config.log_file is not None:
        result["log_file"] = str(config.log_file)

    return result


def save_config(config: BackupConfig, path: Path) -> Path:
    """Save configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename. Runtime-only flags
    (dry_run, debug) are not written.

    Args:
        config: The BackupConfig to save.
        path: Destination file path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config_to_dict(config)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(mode="wb", dir=path.parent, delete=False, suffix=".tmp") as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        # os.replace() is atomic on POSIX
        os.replace(str(tmp_path), str(path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigurationError(f"Failed to write config file: {e}") from e

    return path

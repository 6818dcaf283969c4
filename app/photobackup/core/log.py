"""Logging setup for photo-backup runs.

Console output goes through Rich; an optional log file receives plain
timestamped lines of the form ``[2024-05-01T10:00:00+0200] [INFO]: msg``.
"""

import logging
from pathlib import Path

from rich.logging import RichHandler

from photobackup.utils.formatting import err_console

LOGGER_NAME = "photobackup"
FILE_FORMAT = "[%(asctime)s] [%(levelname)s]: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def setup_logging(log_file: Path | None = None, debug: bool = False) -> logging.Logger:
    """Configure the package logger for a run.

    Existing handlers on the package logger are replaced, so calling this
    twice does not duplicate output.

    Args:
        log_file: File to append log lines to. Its parent directory is
            created if needed.
        debug: If True, log at DEBUG level instead of INFO.

    Returns:
        The configured package logger.

    Raises:
        OSError: If the log file cannot be opened.
    """
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    logger.propagate = False

    console_handler = RichHandler(
        console=err_console,
        show_path=debug,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger

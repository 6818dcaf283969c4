"""Pre-clean stage: strip transient OS and editor metadata from a source.

Runs before enumeration so junk files never enter a protection set or
the mirror. Cleaning is best-effort: a file that cannot be removed is
logged and skipped.
"""

import logging
import os
from pathlib import Path

from photobackup.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

# Finder metadata and exiftool "_original" backup siblings
JUNK_PATTERNS: tuple[str, ...] = (
    ".DS_Store",
    "*_original",
)

DOT_CLEAN = "dot_clean"


def remove_files(directory: Path, pattern: str) -> list[Path]:
    """Remove files matching a glob pattern anywhere below a directory.

    Symlinked directories are not descended into.

    Args:
        directory: Directory to clean.
        pattern: Basename glob pattern (e.g., ``*.tmp``).

    Returns:
        Paths that were removed.
    """
    logger.info("Deleting '%s' files from '%s'...", pattern, directory)
    removed: list[Path] = []

    for root, _dirs, _files in os.walk(directory):
        for candidate in sorted(Path(root).glob(pattern)):
            if candidate.is_dir() and not candidate.is_symlink():
                continue
            try:
                candidate.unlink()
            except OSError as e:
                logger.warning("Could not delete %s: %s", candidate, e)
                continue
            logger.info("%s", candidate)
            removed.append(candidate)

    return removed


def clean_directory(directory: Path) -> list[Path]:
    """Clean a directory of common temporary and metadata files.

    Also runs ``dot_clean`` to merge AppleDouble files when the command is
    available (macOS only).

    Args:
        directory: Source directory to clean in place.

    Returns:
        Paths removed by the pattern passes.
    """
    logger.info("Cleaning temporary files in '%s'...", directory)
    removed: list[Path] = []
    for pattern in JUNK_PATTERNS:
        removed.extend(remove_files(directory, pattern))

    if command_exists(DOT_CLEAN):
        try:
            result = run_command([DOT_CLEAN, "-v", str(directory)], timeout=None)
        except OSError as e:
            logger.warning("Could not run %s: %s", DOT_CLEAN, e)
        else:
            if not result.success:
                logger.warning("%s failed: %s", DOT_CLEAN, result.stderr.strip())
    else:
        logger.info("Skipping '%s': command not found (expected on non-macOS).", DOT_CLEAN)

    return removed

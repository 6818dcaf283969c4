"""Recursive path enumeration relative to a tree root.

Symlinks are listed as entries but never followed, so a link pointing
back up the tree cannot produce a cycle.
"""

import os
from collections.abc import Iterator
from pathlib import Path


def iter_relative_paths(root: Path) -> Iterator[str]:
    """Yield every file, directory and symlink below root.

    Paths are POSIX-style and relative to root. The root itself is not
    yielded. Entries of each directory are yielded in sorted order, and a
    directory is yielded before its contents.

    Args:
        root: Directory to enumerate.

    Yields:
        Relative path of each entry.

    Raises:
        FileNotFoundError: If root or a subdirectory disappears mid-walk.
        PermissionError: If a directory cannot be listed.
        OSError: For any other listing failure.
    """
    yield from _walk(Path(root), "")


def _walk(directory: Path, prefix: str) -> Iterator[str]:
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        relative = f"{prefix}{entry.name}"
        yield relative
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(Path(entry.path), f"{relative}/")


def has_entries(root: Path) -> bool:
    """Check whether a directory holds at least one entry.

    Args:
        root: Directory to check.

    Returns:
        True if the directory is non-empty.

    Raises:
        OSError: If the directory cannot be listed.
    """
    with os.scandir(root) as it:
        return next(it, None) is not None

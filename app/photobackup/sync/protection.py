"""Protection rules derived from the other sources of a run.

When one source is mirrored with delete enabled, every path that exists
in any other source must survive the delete pass. This module builds
that protect-set, renders it as an rsync filter file and validates it.
"""

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from photobackup.sync.enumerator import iter_relative_paths
from photobackup.sync.errors import ProtectionIntegrityError
from photobackup.sync.models import ProtectionRule, SourceTree

logger = logging.getLogger(__name__)

FILTER_FILE_NAME = "filter.rules"


def build_protection_rules(others: Sequence[SourceTree]) -> list[ProtectionRule]:
    """Build one protection rule per path found in the other sources.

    Sources are enumerated in the given order. A path present in several
    sources produces a single rule, kept at its first position.

    Args:
        others: Every source of the run except the one being mirrored.

    Returns:
        Deterministically ordered list of rules. Empty if others is empty.

    Raises:
        ProtectionIntegrityError: If any source cannot be enumerated.
    """
    rules: list[ProtectionRule] = []
    seen: set[str] = set()

    for tree in others:
        logger.info("Generating protection rules for '%s'", tree.name)
        count = 0
        try:
            for relative in iter_relative_paths(tree.root):
                count += 1
                if relative in seen:
                    continue
                seen.add(relative)
                rules.append(ProtectionRule(relative_path=relative))
        except OSError as e:
            msg = f"Cannot enumerate '{tree.name}' for protection rules: {e}"
            raise ProtectionIntegrityError(msg) from e
        logger.debug("Enumerated %d path(s) in '%s'", count, tree.name)

    return rules


def write_filter_file(rules: Iterable[ProtectionRule], path: Path) -> Path:
    """Write protection rules to an rsync merge filter file.

    The file is truncated first, so a stale rule set from an earlier job
    never leaks into the next one.

    Args:
        rules: Rules to render, one per line.
        path: Target file path.

    Returns:
        The path that was written.

    Raises:
        ProtectionIntegrityError: If a path cannot be expressed as a filter
            line or the file cannot be written.
    """
    lines: list[str] = []
    for rule in rules:
        if "\n" in rule.relative_path or "\r" in rule.relative_path:
            msg = f"Path cannot be written as a filter rule: {rule.relative_path!r}"
            raise ProtectionIntegrityError(msg)
        lines.append(rule.to_filter_line())

    try:
        with open(path, "w", encoding="utf-8", errors="surrogateescape") as f:
            for line in lines:
                f.write(f"{line}\n")
    except OSError as e:
        raise ProtectionIntegrityError(f"Cannot write filter file {path}: {e}") from e

    logger.debug("Wrote %d protection rule(s) to %s", len(lines), path)
    return path


def validate_filter_file(path: Path) -> None:
    """Ensure a filter file exists and holds at least one rule.

    Args:
        path: Filter file to check.

    Raises:
        ProtectionIntegrityError: If the file is missing or empty.
    """
    if not path.is_file():
        msg = f"Protection filter file '{path}' was not created."
        raise ProtectionIntegrityError(msg)

    if path.stat().st_size == 0:
        msg = f"Protection filter file '{path}' is empty. Aborting to prevent data loss."
        raise ProtectionIntegrityError(msg)


def is_protected(relative_path: str, protected: set[str]) -> bool:
    """Check whether a destination path is covered by a protection rule.

    Args:
        relative_path: POSIX-style path relative to the destination root.
        protected: Relative paths of the active protection rules.

    Returns:
        True if the path must not be deleted.
    """
    return relative_path.strip("/") in protected

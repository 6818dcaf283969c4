"""Data models for the sync engine.

Plain frozen dataclasses describing source trees, protection rules,
mirror jobs and their reports. Instances are built per run and never
persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# rsync only honours backslash escapes in patterns holding a wildcard
_RSYNC_WILDCARDS = ("*", "?", "[")


class RunState(str, Enum):
    """States of a backup run, in the order a successful run visits them."""

    IDLE = "idle"
    VALIDATING = "validating"
    BUILDING_PROTECTION = "building_protection"
    MIRRORING = "mirroring"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SourceTree:
    """One independently owned directory tree merged into the destination.

    Attributes:
        root: Root directory of the tree. Identity of the source.
    """

    root: Path

    @property
    def name(self) -> str:
        """Display name used in logs and tables."""
        return str(self.root)


@dataclass(frozen=True, slots=True)
class ProtectionRule:
    """Directive exempting one relative path from deletion.

    Attributes:
        relative_path: POSIX-style path relative to the destination root.
    """

    relative_path: str

    @property
    def anchored(self) -> str:
        """The rule path anchored at the destination root."""
        return f"/{self.relative_path}"

    def to_filter_line(self) -> str:
        """Render the rule as an rsync ``protect`` filter line.

        Wildcard characters are backslash-escaped so rsync matches the
        path literally.
        """
        pattern = self.anchored
        if any(char in pattern for char in _RSYNC_WILDCARDS):
            for char in ("\\", *_RSYNC_WILDCARDS):
                pattern = pattern.replace(char, f"\\{char}")
        return f"P {pattern}"


@dataclass(frozen=True, slots=True)
class MirrorJob:
    """A single one-way mirror of one source into the destination.

    Attributes:
        source: Source tree being mirrored.
        destination: Destination locator (``host:path`` or a local path).
        protection_rules: Paths that must survive the delete pass.
        excludes: Basename patterns skipped on both sides.
        dry_run: If True, plan the mirror without touching the destination.
        filter_file: Rendered rule file for transfers that consume one.
    """

    source: SourceTree
    destination: str
    protection_rules: tuple[ProtectionRule, ...] = ()
    excludes: tuple[str, ...] = (".*",)
    dry_run: bool = False
    filter_file: Path | None = None


@dataclass(frozen=True, slots=True)
class TransferReport:
    """What a mirror pass changed, or would change in dry-run.

    Attributes:
        source: Source tree the pass mirrored.
        transferred: Relative paths created or updated in the destination.
        deleted: Relative paths removed from the destination.
        dry_run: Whether the pass only planned the changes.
        output: Raw transfer output, if the primitive produced any.
    """

    source: SourceTree
    transferred: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()
    dry_run: bool = False
    output: str = ""

    @property
    def changes(self) -> int:
        """Total number of transferred and deleted entries."""
        return len(self.transferred) + len(self.deleted)


@dataclass(slots=True)
class RunSummary:
    """Ordered transfer reports of one complete run.

    Attributes:
        reports: One report per source, in processing order.
        dry_run: Whether the run was a dry-run.
    """

    reports: list[TransferReport] = field(default_factory=lambda: [])
    dry_run: bool = False

    @property
    def total_changes(self) -> int:
        """Sum of changes across all reports."""
        return sum(report.changes for report in self.reports)

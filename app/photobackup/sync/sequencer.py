"""Sequencer for multi-source protected backup runs.

Mirrors every configured source into the shared destination, one at a
time and in configuration order. Before each mirror, the paths of all
other sources are collected into a protection set so the delete pass of
one source never removes files that belong to another.

Run lifecycle:

    IDLE -> VALIDATING -> (BUILDING_PROTECTION -> MIRRORING) x N -> DONE

Any error moves the run to FAILED and stops it. Later sources are never
mirrored once an earlier one failed.
"""

import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

from photobackup.core.config import BackupConfig
from photobackup.sync.enumerator import has_entries
from photobackup.sync.errors import SourceUnavailableError
from photobackup.sync.mirror import MirrorExecutor
from photobackup.sync.models import MirrorJob, RunState, RunSummary, SourceTree
from photobackup.sync.preclean import clean_directory
from photobackup.sync.protection import (
    FILTER_FILE_NAME,
    build_protection_rules,
    validate_filter_file,
    write_filter_file,
)

logger = logging.getLogger(__name__)

PrecleanFunc = Callable[[Path], object]


def verify_source_directory(tree: SourceTree) -> None:
    """Verify that a source directory exists, is readable and is not empty.

    An empty source is treated as an unmounted volume: mirroring it with
    delete enabled would wipe its share of the destination.

    Args:
        tree: Source to verify.

    Raises:
        SourceUnavailableError: If any check fails.
    """
    root = tree.root
    if not root.is_dir():
        msg = f"Source directory '{root}' not found or not mounted."
        raise SourceUnavailableError(msg)

    if not os.access(root, os.R_OK | os.X_OK):
        msg = f"Source directory '{root}' is not readable."
        raise SourceUnavailableError(msg)

    try:
        empty = not has_entries(root)
    except OSError as e:
        raise SourceUnavailableError(f"Cannot list source directory '{root}': {e}") from e

    if empty:
        msg = f"Source directory '{root}' appears to be empty. Aborting for safety."
        raise SourceUnavailableError(msg)


def other_sources(sources: Sequence[SourceTree], current: SourceTree) -> list[SourceTree]:
    """Return every source except current, preserving order."""
    return [tree for tree in sources if tree != current]


class BackupSequencer:
    """Runs protected mirrors of all sources, strictly one at a time.

    A sequencer is single-use: ``run()`` may be called once.

    Attributes:
        _config: Immutable run configuration.
        _executor: Mirror executor wrapping the transfer primitive.
        _preclean: Cleaner applied to each source before enumeration.
        _state: Current lifecycle state.
        _history: Every (state, source index) transition, in order.
    """

    def __init__(
        self,
        config: BackupConfig,
        executor: MirrorExecutor,
        preclean: PrecleanFunc = clean_directory,
    ) -> None:
        self._config = config
        self._executor = executor
        self._preclean = preclean
        self._sources = [SourceTree(root=Path(p)) for p in config.sources]
        self._state = RunState.IDLE
        self._history: list[tuple[RunState, int | None]] = [(RunState.IDLE, None)]

    @property
    def state(self) -> RunState:
        """Current lifecycle state."""
        return self._state

    @property
    def history(self) -> list[tuple[RunState, int | None]]:
        """State transitions so far, with the source index where relevant."""
        return list(self._history)

    @property
    def sources(self) -> list[SourceTree]:
        """Configured sources, in processing order."""
        return list(self._sources)

    def _enter(self, state: RunState, index: int | None = None) -> None:
        self._state = state
        self._history.append((state, index))
        if index is None:
            logger.debug("Run state: %s", state.value)
        else:
            logger.debug("Run state: %s (%d)", state.value, index)

    def run(self) -> RunSummary:
        """Validate sources and mirror each of them into the destination.

        The protection filter lives in a scratch directory created for this
        run and removed on every exit path.

        Returns:
            RunSummary with one report per source.

        Raises:
            SourceUnavailableError: If a source is missing, unreadable or empty.
            ProtectionIntegrityError: If a protection set cannot be built or
                is empty while other sources exist.
            TransportError: If a mirror pass fails.
            RuntimeError: If the sequencer has already run.
        """
        if self._state is not RunState.IDLE:
            msg = f"Sequencer already used (state: {self._state.value})"
            raise RuntimeError(msg)

        try:
            self._validate()
            with tempfile.TemporaryDirectory(prefix="photo-backup-") as scratch:
                summary = self._mirror_all(Path(scratch))
        except Exception:
            self._enter(RunState.FAILED)
            raise

        self._enter(RunState.DONE)
        logger.info("Backup operation completed successfully.")
        return summary

    def _validate(self) -> None:
        self._enter(RunState.VALIDATING)
        count = len(self._sources)
        logger.info("Found %d source director%s:", count, "y" if count == 1 else "ies")
        for tree in self._sources:
            logger.info(" -> %s", tree.name)
        logger.info("Destination: %s", self._config.destination)

        for tree in self._sources:
            verify_source_directory(tree)

        if self._config.dry_run:
            logger.info("Dry-run mode is enabled. No files will be changed.")
            return

        for tree in self._sources:
            self._preclean(tree.root)

        # Pre-clean can leave a junk-only mountpoint empty
        for tree in self._sources:
            verify_source_directory(tree)

    def _mirror_all(self, scratch: Path) -> RunSummary:
        summary = RunSummary(dry_run=self._config.dry_run)

        for index, tree in enumerate(self._sources):
            logger.info("--- Starting backup for '%s' ---", tree.name)
            job = self._build_job(index, tree, scratch)

            self._enter(RunState.MIRRORING, index)
            summary.reports.append(self._executor.run(job))

        return summary

    def _build_job(self, index: int, tree: SourceTree, scratch: Path) -> MirrorJob:
        """Build the mirror job for one source, protecting all others."""
        self._enter(RunState.BUILDING_PROTECTION, index)
        others = other_sources(self._sources, tree)

        if not others:
            logger.info(
                "Only one source directory specified; running sync without protection filter."
            )
            return MirrorJob(
                source=tree,
                destination=self._config.destination,
                excludes=self._config.excludes,
                dry_run=self._config.dry_run,
            )

        rules = build_protection_rules(others)
        filter_file = write_filter_file(rules, scratch / FILTER_FILE_NAME)
        validate_filter_file(filter_file)
        logger.info("Protecting %d path(s) from %d other source(s)", len(rules), len(others))

        return MirrorJob(
            source=tree,
            destination=self._config.destination,
            protection_rules=tuple(rules),
            excludes=self._config.excludes,
            dry_run=self._config.dry_run,
            filter_file=filter_file,
        )

"""Transfer primitives for one-way delete-synchronizing mirrors.

A transfer takes a MirrorJob and brings the destination in line with the
job's source: new and changed entries are copied, entries absent from
the source are deleted unless a protection rule covers them. Excluded
entries are ignored on both sides.

Two primitives are provided:
- RsyncTransfer: shells out to rsync, consuming the rendered filter file.
- LocalTransfer: pure-Python mirror into a local directory.
"""

import fnmatch
import logging
import os
import shutil
import stat
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from photobackup.sync.enumerator import iter_relative_paths
from photobackup.sync.errors import ProtectionIntegrityError, TransportError
from photobackup.sync.models import MirrorJob, TransferReport
from photobackup.sync.protection import is_protected
from photobackup.utils.shell import run_command

logger = logging.getLogger(__name__)

RSYNC_BASE_ARGS: tuple[str, ...] = ("-aH", "--delete", "--itemize-changes")

# Itemize codes whose first character marks a content change or creation
_CHANGE_MARKERS = frozenset("<>ch")
_DELETE_MARKER = "*deleting"
_ITEMIZE_WIDTH = 12


class Transfer(ABC):
    """Abstract base class for transfer primitives.

    Example:
        >>> transfer = LocalTransfer()
        >>> report = transfer.transfer(job)
        >>> print(report.changes)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier of the primitive, used in logs."""

    @abstractmethod
    def transfer(self, job: MirrorJob) -> TransferReport:
        """Mirror the job's source into its destination.

        Args:
            job: The mirror job to execute.

        Returns:
            TransferReport describing the applied (or planned) changes.

        Raises:
            TransportError: If the transfer fails. Entries already
                transferred are left in place.
        """


def is_excluded(relative_path: str, patterns: tuple[str, ...]) -> bool:
    """Check whether a relative path falls under an exclude pattern.

    Patterns without a slash match any single path component, so ``.*``
    excludes hidden entries at every depth along with their contents.
    Patterns containing a slash are matched against the path from the
    root, rsync-style.

    Args:
        relative_path: POSIX-style path relative to a tree root.
        patterns: Glob patterns to match.

    Returns:
        True if the path or one of its parents is excluded.
    """
    parts = relative_path.strip("/").split("/")
    for pattern in patterns:
        anchored = pattern.strip("/")
        if "/" in anchored:
            for depth in range(1, len(parts) + 1):
                if fnmatch.fnmatchcase("/".join(parts[:depth]), anchored):
                    return True
        elif any(fnmatch.fnmatchcase(part, anchored) for part in parts):
            return True
    return False


class RsyncTransfer(Transfer):
    """Transfer primitive backed by the rsync command.

    Protection rules reach rsync through the job's filter file, merged
    with ``--filter="merge <file>"``. Timeouts are left to rsync itself.

    Attributes:
        _binary: Name or path of the rsync executable.
        _extra_args: Additional arguments appended before the paths.
    """

    def __init__(self, binary: str = "rsync", extra_args: tuple[str, ...] = ()) -> None:
        self._binary = binary
        self._extra_args = extra_args

    @property
    def name(self) -> str:
        return "rsync"

    def build_args(self, job: MirrorJob) -> list[str]:
        """Build the rsync command line for a job.

        Args:
            job: The mirror job.

        Returns:
            Complete argument list, executable first.

        Raises:
            ProtectionIntegrityError: If the job carries protection rules
                but no rendered filter file.
        """
        if job.protection_rules and job.filter_file is None:
            msg = f"No filter file rendered for {len(job.protection_rules)} protection rule(s)"
            raise ProtectionIntegrityError(msg)

        args = [self._binary, *RSYNC_BASE_ARGS]
        args.extend(f"--exclude={pattern}" for pattern in job.excludes)

        if job.dry_run:
            args.append("--dry-run")

        if job.filter_file is not None:
            args.append(f"--filter=merge {job.filter_file}")

        args.extend(self._extra_args)
        args.extend([f"{job.source.root}/", job.destination])
        return args

    def transfer(self, job: MirrorJob) -> TransferReport:
        args = self.build_args(job)
        logger.debug("Running command: %s", " ".join(args))

        try:
            result = run_command(args, timeout=None)
        except FileNotFoundError as e:
            raise TransportError(f"Transfer command not found: {self._binary}") from e
        except OSError as e:
            raise TransportError(f"Cannot start transfer command: {e}") from e

        for line in result.stdout.splitlines():
            logger.info("%s", line)

        if not result.success:
            detail = result.stderr.strip() or "no error output"
            msg = f"rsync exited with code {result.returncode}: {detail}"
            raise TransportError(msg, returncode=result.returncode)

        transferred, deleted = parse_itemized_output(result.stdout)
        return TransferReport(
            source=job.source,
            transferred=transferred,
            deleted=deleted,
            dry_run=job.dry_run,
            output=result.stdout,
        )


def parse_itemized_output(output: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Split rsync ``--itemize-changes`` output into transfers and deletions.

    Attribute-only updates (codes starting with ``.``) are not counted as
    transfers.

    Args:
        output: Captured rsync stdout.

    Returns:
        Tuple of (transferred, deleted) relative paths.
    """
    transferred: list[str] = []
    deleted: list[str] = []

    for line in output.splitlines():
        if len(line) <= _ITEMIZE_WIDTH:
            continue
        code = line[: _ITEMIZE_WIDTH - 1]
        name = line[_ITEMIZE_WIDTH:]

        if code.startswith(_DELETE_MARKER):
            deleted.append(name.rstrip("/"))
            continue

        if code[0] not in _CHANGE_MARKERS:
            continue

        # Symlinks are reported as "name -> target"
        if len(code) > 1 and code[1] == "L" and " -> " in name:
            name = name.split(" -> ", 1)[0]
        transferred.append(name.rstrip("/"))

    return tuple(transferred), tuple(deleted)


@dataclass(frozen=True, slots=True)
class _Entry:
    """Snapshot of one tree entry, taken with lstat."""

    mode: int
    size: int
    mtime: int
    link_target: str | None = None

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_link(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)


class LocalTransfer(Transfer):
    """Pure-Python mirror into a local destination directory.

    Change detection uses rsync's quick check (size and whole-second
    modification time). Files are copied to a temporary sibling and
    renamed into place, so each file is replaced atomically. Symlinks
    are recreated as symlinks, never followed.
    """

    @property
    def name(self) -> str:
        return "local"

    def transfer(self, job: MirrorJob) -> TransferReport:
        source_root = job.source.root
        dest_root = Path(job.destination)
        protected = {rule.relative_path for rule in job.protection_rules}

        try:
            source = _snapshot(source_root, job.excludes)
            dest = _snapshot(dest_root, job.excludes) if dest_root.exists() else {}
        except OSError as e:
            raise TransportError(f"Cannot scan transfer trees: {e}") from e

        transferred = [rel for rel, entry in source.items() if _needs_transfer(entry, dest.get(rel))]
        deleted = _plan_deletions(source, dest, protected, job.excludes, dest_root)

        if job.dry_run:
            for rel in deleted:
                logger.info("Dry-run: would delete %s", rel)
            for rel in transferred:
                logger.info("Dry-run: would transfer %s", rel)
        else:
            try:
                dest_root.mkdir(parents=True, exist_ok=True)
                for rel in deleted:
                    _remove(dest_root / rel)
                    logger.info("deleting %s", rel)
                for rel in transferred:
                    _apply(source_root / rel, dest_root / rel, source[rel])
                    logger.info("%s", rel)
            except OSError as e:
                raise TransportError(f"Local transfer failed: {e}") from e

        return TransferReport(
            source=job.source,
            transferred=tuple(transferred),
            deleted=tuple(deleted),
            dry_run=job.dry_run,
        )


def _snapshot(root: Path, excludes: tuple[str, ...]) -> dict[str, _Entry]:
    """Capture every non-excluded entry below root, parents first."""
    entries: dict[str, _Entry] = {}
    for rel in iter_relative_paths(root):
        if is_excluded(rel, excludes):
            continue
        st = os.lstat(root / rel)
        link_target = os.readlink(root / rel) if stat.S_ISLNK(st.st_mode) else None
        entries[rel] = _Entry(
            mode=st.st_mode,
            size=st.st_size,
            mtime=int(st.st_mtime),
            link_target=link_target,
        )
    return entries


def _needs_transfer(src: _Entry, dst: _Entry | None) -> bool:
    if dst is None:
        return True
    if src.is_dir:
        return not dst.is_dir
    if src.is_link:
        return not dst.is_link or dst.link_target != src.link_target
    if not dst.is_file:
        return True
    return src.size != dst.size or src.mtime != dst.mtime


def _plan_deletions(
    source: dict[str, _Entry],
    dest: dict[str, _Entry],
    protected: set[str],
    excludes: tuple[str, ...],
    dest_root: Path,
) -> list[str]:
    """Pick destination entries to delete, children before parents.

    A directory is only deleted when nothing below it survives: protected
    entries, entries still present in the source and excluded entries all
    pin their ancestors in place.
    """
    pinned: set[str] = set()
    deletions: list[str] = []

    # Excluded entries are invisible to the snapshot but still occupy
    # their parent directories.
    for rel in dest:
        if dest[rel].is_dir and _holds_excluded(dest_root / rel, excludes):
            pinned.add(rel)

    for rel in reversed(list(dest)):
        keep = rel in source or is_protected(rel, protected) or rel in pinned
        if keep:
            if rel not in source and rel not in pinned:
                logger.debug("Protected from deletion: %s", rel)
            pinned.update(_ancestors(rel))
            continue
        deletions.append(rel)

    return deletions


def _holds_excluded(directory: Path, excludes: tuple[str, ...]) -> bool:
    with os.scandir(directory) as it:
        return any(is_excluded(entry.name, excludes) for entry in it)


def _ancestors(rel: str) -> list[str]:
    parts = rel.split("/")
    return ["/".join(parts[:depth]) for depth in range(1, len(parts))]


def _remove(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        target.rmdir()
    else:
        target.unlink()


def _apply(src: Path, dst: Path, entry: _Entry) -> None:
    """Create or replace one destination entry from its source."""
    if dst.is_dir() and not dst.is_symlink() and not entry.is_dir:
        shutil.rmtree(dst)

    if entry.is_dir:
        if dst.is_symlink() or (dst.exists() and not dst.is_dir()):
            dst.unlink()
        dst.mkdir(exist_ok=True)
        shutil.copystat(src, dst)
        return

    tmp_path: Path | None = None
    try:
        if entry.is_link:
            tmp_path = dst.parent / f".{dst.name}.{os.getpid()}.tmp"
            if tmp_path.is_symlink() or tmp_path.exists():
                tmp_path.unlink()
            os.symlink(entry.link_target or "", tmp_path)
        else:
            with tempfile.NamedTemporaryFile(
                dir=dst.parent,
                prefix=f".{dst.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
            shutil.copy2(src, tmp_path, follow_symlinks=False)
        # os.replace() is atomic on POSIX
        os.replace(tmp_path, dst)
    except OSError:
        if tmp_path is not None and (tmp_path.exists() or tmp_path.is_symlink()):
            tmp_path.unlink()
        raise


def create_transfer(name: str) -> Transfer:
    """Create a transfer primitive by name.

    Args:
        name: "rsync" or "local".

    Returns:
        The matching Transfer instance.

    Raises:
        ValueError: If the name is unknown.
    """
    if name == "rsync":
        return RsyncTransfer()
    if name == "local":
        return LocalTransfer()
    msg = f"Unknown transfer: {name}"
    raise ValueError(msg)

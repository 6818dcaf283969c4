"""Unit tests for transfer primitives.

Covers rsync command building and output parsing, exclusion matching
and the pure-Python local mirror.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from photobackup.sync.errors import ProtectionIntegrityError, TransportError
from photobackup.sync.models import MirrorJob, ProtectionRule, SourceTree
from photobackup.sync.transfer import (
    LocalTransfer,
    RsyncTransfer,
    create_transfer,
    is_excluded,
    parse_itemized_output,
)
from photobackup.utils.shell import CommandResult


def _job(source: Path, destination: Path | str, **kwargs: object) -> MirrorJob:
    return MirrorJob(source=SourceTree(root=source), destination=str(destination), **kwargs)


class TestIsExcluded:
    """Tests for is_excluded."""

    def test_hidden_top_level(self) -> None:
        """Hidden entries at the top level are excluded."""
        assert is_excluded(".DS_Store", (".*",)) is True

    def test_hidden_nested(self) -> None:
        """Basename patterns match at any depth."""
        assert is_excluded("Travel/.thumbs/1.jpg", (".*",)) is True

    def test_visible_path(self) -> None:
        """Regular paths are not excluded."""
        assert is_excluded("Travel/1.jpg", (".*",)) is False

    def test_anchored_pattern(self) -> None:
        """Patterns with a slash match from the root only."""
        assert is_excluded("Travel/raw/1.cr2", ("Travel/raw",)) is True
        assert is_excluded("Other/Travel/raw", ("Travel/raw",)) is False

    def test_no_patterns(self) -> None:
        """Nothing is excluded without patterns."""
        assert is_excluded(".hidden", ()) is False


class TestParseItemizedOutput:
    """Tests for parse_itemized_output."""

    def test_transfers_and_deletions(self) -> None:
        """New files, new directories and deletions are recognised."""
        output = (
            "cd+++++++++ Travel/\n"
            ">f+++++++++ Travel/1.jpg\n"
            ">f.st...... Travel/2.jpg\n"
            "*deleting   Old/gone.jpg\n"
        )

        transferred, deleted = parse_itemized_output(output)

        assert transferred == ("Travel", "Travel/1.jpg", "Travel/2.jpg")
        assert deleted == ("Old/gone.jpg",)

    def test_attribute_only_changes_ignored(self) -> None:
        """Timestamp-only updates are not counted as transfers."""
        output = ".d..t...... Travel/\n"

        assert parse_itemized_output(output) == ((), ())

    def test_symlink_target_stripped(self) -> None:
        """Symlink lines report the link name only."""
        output = "cL+++++++++ latest -> Travel/1.jpg\n"

        transferred, _ = parse_itemized_output(output)

        assert transferred == ("latest",)

    def test_empty_output(self) -> None:
        """No output means no changes."""
        assert parse_itemized_output("") == ((), ())


class TestRsyncTransfer:
    """Tests for RsyncTransfer."""

    def test_build_args_without_filter(self, tmp_path: Path) -> None:
        """A single-source job runs without a filter merge."""
        job = _job(tmp_path / "a", "nas:/backup/photos")

        args = RsyncTransfer().build_args(job)

        assert args == [
            "rsync",
            "-aH",
            "--delete",
            "--itemize-changes",
            "--exclude=.*",
            f"{tmp_path / 'a'}/",
            "nas:/backup/photos",
        ]

    def test_build_args_with_filter_and_dry_run(self, tmp_path: Path) -> None:
        """Protection rules are merged from the filter file."""
        filter_file = tmp_path / "filter.rules"
        job = _job(
            tmp_path / "a",
            "nas:/backup",
            protection_rules=(ProtectionRule("Travel/3.jpg"),),
            filter_file=filter_file,
            dry_run=True,
        )

        args = RsyncTransfer().build_args(job)

        assert "--dry-run" in args
        assert f"--filter=merge {filter_file}" in args
        assert args[-2:] == [f"{tmp_path / 'a'}/", "nas:/backup"]

    def test_rules_without_filter_file_rejected(self, tmp_path: Path) -> None:
        """Rules that never reached a filter file abort the job."""
        job = _job(tmp_path / "a", "nas:/backup", protection_rules=(ProtectionRule("x"),))

        with pytest.raises(ProtectionIntegrityError):
            RsyncTransfer().build_args(job)

    @patch("photobackup.sync.transfer.run_command")
    def test_transfer_success(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """Successful rsync output is parsed into the report."""
        mock_run.return_value = CommandResult(
            stdout=">f+++++++++ Travel/1.jpg\n*deleting   old.jpg\n",
            stderr="",
            returncode=0,
        )
        job = _job(tmp_path / "a", "nas:/backup")

        report = RsyncTransfer().transfer(job)

        assert report.transferred == ("Travel/1.jpg",)
        assert report.deleted == ("old.jpg",)
        assert report.changes == 2
        assert mock_run.call_args.kwargs["timeout"] is None

    @patch("photobackup.sync.transfer.run_command")
    def test_transfer_failure_raises(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """A non-zero rsync exit is a TransportError carrying the code."""
        mock_run.return_value = CommandResult(
            stdout="",
            stderr="rsync: connection unexpectedly closed",
            returncode=12,
        )
        job = _job(tmp_path / "a", "nas:/backup")

        with pytest.raises(TransportError, match="connection unexpectedly closed") as exc_info:
            RsyncTransfer().transfer(job)

        assert exc_info.value.returncode == 12

    @patch("photobackup.sync.transfer.run_command")
    def test_missing_rsync_raises(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """A missing rsync binary is a TransportError."""
        mock_run.side_effect = FileNotFoundError("rsync")
        job = _job(tmp_path / "a", "nas:/backup")

        with pytest.raises(TransportError, match="not found"):
            RsyncTransfer().transfer(job)


class TestLocalTransfer:
    """Tests for LocalTransfer."""

    def test_copies_into_empty_destination(self, make_tree, read_tree, tmp_path: Path) -> None:
        """All files land at their relative paths."""
        src = make_tree("src", {"Travel/1.jpg": "one", "top.jpg": "top"})
        dest = tmp_path / "dest"

        report = LocalTransfer().transfer(_job(src, dest))

        assert read_tree(dest) == {"Travel/1.jpg": "one", "top.jpg": "top"}
        assert set(report.transferred) == {"Travel", "Travel/1.jpg", "top.jpg"}
        assert report.deleted == ()

    def test_unchanged_rerun_reports_nothing(self, make_tree, tmp_path: Path) -> None:
        """A second pass over identical trees changes nothing."""
        src = make_tree("src", {"Travel/1.jpg": "one"})
        dest = tmp_path / "dest"
        LocalTransfer().transfer(_job(src, dest))

        report = LocalTransfer().transfer(_job(src, dest))

        assert report.changes == 0

    def test_changed_file_is_replaced(self, make_tree, read_tree, tmp_path: Path) -> None:
        """A file whose size changed is transferred again."""
        src = make_tree("src", {"a.jpg": "one"})
        dest = tmp_path / "dest"
        LocalTransfer().transfer(_job(src, dest))
        (src / "a.jpg").write_text("longer content")

        report = LocalTransfer().transfer(_job(src, dest))

        assert report.transferred == ("a.jpg",)
        assert read_tree(dest) == {"a.jpg": "longer content"}

    def test_deletes_extraneous_entries(self, make_tree, read_tree) -> None:
        """Destination entries missing from the source are deleted."""
        src = make_tree("src", {"keep.jpg": "k"})
        dest = make_tree("dest", {"keep.jpg": "k", "Old/gone.jpg": "g"})

        report = LocalTransfer().transfer(_job(src, dest))

        assert read_tree(dest) == {"keep.jpg": "k"}
        assert report.deleted == ("Old/gone.jpg", "Old")
        assert not (dest / "Old").exists()

    def test_protected_entries_survive(self, make_tree, read_tree) -> None:
        """Protected paths are kept even though absent from the source."""
        src = make_tree("src", {"Travel/1.jpg": "one"})
        dest = make_tree("dest", {"Travel/3.jpg": "three", "Events/4.jpg": "four"})
        rules = tuple(
            ProtectionRule(p) for p in ("Events", "Events/4.jpg", "Travel", "Travel/3.jpg")
        )

        report = LocalTransfer().transfer(_job(src, dest, protection_rules=rules))

        assert read_tree(dest) == {
            "Travel/1.jpg": "one",
            "Travel/3.jpg": "three",
            "Events/4.jpg": "four",
        }
        assert report.deleted == ()

    def test_directory_with_protected_child_survives(self, make_tree, read_tree) -> None:
        """A directory is kept when a protected entry lives below it."""
        src = make_tree("src", {"a.jpg": "a"})
        dest = make_tree("dest", {"Shared/b.jpg": "b", "Shared/stale.jpg": "s"})

        LocalTransfer().transfer(_job(src, dest, protection_rules=(ProtectionRule("Shared/b.jpg"),)))

        assert read_tree(dest) == {"a.jpg": "a", "Shared/b.jpg": "b"}

    def test_excluded_entries_neither_copied_nor_deleted(
        self, make_tree, read_tree, tmp_path: Path
    ) -> None:
        """Hidden entries are skipped on both sides."""
        src = make_tree("src", {".DS_Store": "junk", "a.jpg": "a"})
        dest = make_tree("dest", {".cache/x": "keep me", "Dir/.hidden": "h"})

        report = LocalTransfer().transfer(_job(src, dest))

        assert read_tree(dest) == {".cache/x": "keep me", "Dir/.hidden": "h", "a.jpg": "a"}
        assert report.deleted == ()

    def test_dry_run_does_not_mutate(self, make_tree, read_tree) -> None:
        """Dry-run plans the same changes without applying them."""
        src = make_tree("src", {"new.jpg": "n"})
        dest = make_tree("dest", {"old.jpg": "o"})

        report = LocalTransfer().transfer(_job(src, dest, dry_run=True))

        assert report.dry_run is True
        assert report.transferred == ("new.jpg",)
        assert report.deleted == ("old.jpg",)
        assert read_tree(dest) == {"old.jpg": "o"}

    def test_dry_run_missing_destination(self, make_tree, tmp_path: Path) -> None:
        """Dry-run into a missing destination does not create it."""
        src = make_tree("src", {"a.jpg": "a"})
        dest = tmp_path / "dest"

        report = LocalTransfer().transfer(_job(src, dest, dry_run=True))

        assert report.transferred == ("a.jpg",)
        assert not dest.exists()

    def test_symlinks_copied_as_links(self, make_tree, tmp_path: Path) -> None:
        """A symlink in the source becomes a symlink in the destination."""
        src = make_tree("src", {"Travel/1.jpg": "one"})
        (src / "latest").symlink_to("Travel/1.jpg")
        dest = tmp_path / "dest"

        LocalTransfer().transfer(_job(src, dest))

        assert (dest / "latest").is_symlink()
        assert os.readlink(dest / "latest") == "Travel/1.jpg"

    def test_file_replaces_directory(self, make_tree, read_tree) -> None:
        """A source file replaces a destination directory of the same name."""
        src = make_tree("src", {"item": "file now"})
        dest = make_tree("dest", {"item/inner.jpg": "old"})

        LocalTransfer().transfer(_job(src, dest))

        assert read_tree(dest) == {"item": "file now"}

    def test_missing_source_raises_transport_error(self, tmp_path: Path) -> None:
        """A source that vanished mid-run is a TransportError."""
        with pytest.raises(TransportError):
            LocalTransfer().transfer(_job(tmp_path / "gone", tmp_path / "dest"))

    def test_no_temporary_files_left(self, make_tree, tmp_path: Path) -> None:
        """Atomic copies leave no temporary siblings behind."""
        src = make_tree("src", {"a.jpg": "a", "Dir/b.jpg": "b"})
        dest = tmp_path / "dest"

        LocalTransfer().transfer(_job(src, dest))

        leftovers = [p for p in dest.rglob("*") if p.name.endswith(".tmp")]
        assert leftovers == []


class TestCreateTransfer:
    """Tests for create_transfer."""

    def test_known_names(self) -> None:
        """Both primitives are available by name."""
        assert isinstance(create_transfer("rsync"), RsyncTransfer)
        assert isinstance(create_transfer("local"), LocalTransfer)

    def test_unknown_name(self) -> None:
        """Unknown names are rejected."""
        with pytest.raises(ValueError):
            create_transfer("ftp")

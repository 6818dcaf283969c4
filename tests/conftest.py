"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create files (and their parent directories) below root."""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return root


def tree_contents(root: Path) -> dict[str, str]:
    """Map every regular file below root to its text content."""
    result: dict[str, str] = {}
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            path = Path(dirpath) / name
            result[path.relative_to(root).as_posix()] = path.read_text()
    return result


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[str, dict[str, str]], Path]:
    """Factory creating a directory tree under tmp_path."""

    def _make(name: str, files: dict[str, str]) -> Path:
        return write_tree(tmp_path / name, files)

    return _make


@pytest.fixture
def travel_sources(tmp_path: Path) -> tuple[Path, Path]:
    """Two disjoint photo sources sharing a Travel directory."""
    a = write_tree(tmp_path / "a", {"Travel/1.jpg": "one", "Travel/2.jpg": "two"})
    b = write_tree(tmp_path / "b", {"Travel/3.jpg": "three", "Events/4.jpg": "four"})
    return a, b


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at tmp_path so no real config is picked up."""
    config_home = tmp_path / "xdg-config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    monkeypatch.setattr(
        "photobackup.core.paths.SYSTEM_CONFIG_PATH", tmp_path / "etc" / "photo-backup.toml"
    )
    return config_home


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo handler changes made by setup_logging between tests."""
    yield
    logger = logging.getLogger("photobackup")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def read_tree() -> Callable[[Path], dict[str, str]]:
    """Function mapping every file below a root to its content."""
    return tree_contents

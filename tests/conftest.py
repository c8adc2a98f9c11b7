"""Shared test fixtures for dbffs tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbffs.core.config import BuildConfig, ByteOrder


@pytest.fixture
def default_config() -> BuildConfig:
    """Default build configuration with compression enabled."""
    return BuildConfig()


@pytest.fixture
def raw_config() -> BuildConfig:
    """Little-endian configuration that stores every file uncompressed."""
    return BuildConfig(compress=False, byte_order=ByteOrder.LITTLE)


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """Empty source directory for building images."""
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def sample_tree(source_root: Path) -> Path:
    """Source tree with a subdirectory file and a root-level file.

    Layout::

        a/f.txt
        g.txt
    """
    (source_root / "a").mkdir()
    (source_root / "a" / "f.txt").write_bytes(b"inside a\n")
    (source_root / "g.txt").write_bytes(b"hello world")
    return source_root


@pytest.fixture
def linked_tree(source_root: Path) -> Path:
    """Source tree exercising every kind of symbolic link.

    Layout::

        alias -> real          (directory link, expanded inline)
        data.txt
        ln -> data.txt         (file link, kept as an indirection)
        ln2 -> ln              (link to a link)
        real/x.txt
    """
    (source_root / "real").mkdir()
    (source_root / "real" / "x.txt").write_bytes(b"x" * 64)
    (source_root / "data.txt").write_bytes(b"data " * 40)
    (source_root / "alias").symlink_to("real")
    (source_root / "ln").symlink_to("data.txt")
    (source_root / "ln2").symlink_to("ln")
    return source_root

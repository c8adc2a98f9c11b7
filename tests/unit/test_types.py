"""Unit tests for image records and the entry chain."""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from dbffs.core.errors import LimitExceededError, NameTooLongError
from dbffs.core.types import (
    DIR_SIGNATURE,
    FILE_SIGNATURE,
    LINK_SIGNATURE,
    MAX_ENTRIES,
    DirEntry,
    FileEntry,
    Image,
    LinkEntry,
)

pytestmark = pytest.mark.unit


class TestFileEntry:
    """Tests for FileEntry."""

    def test_signature(self) -> None:
        """Test the file record signature."""
        assert FileEntry(name=b"f", data=b"").signature == FILE_SIGNATURE == 0xDBFF500F

    def test_raw_when_not_compressed(self) -> None:
        """Test that csize is 0 and the payload is raw without compressed data."""
        entry = FileEntry(name=b"f", data=b"hello world")
        assert entry.size == 11
        assert entry.csize == 0
        assert entry.payload == b"hello world"

    def test_keeps_smaller_compressed_data(self) -> None:
        """Test that strictly smaller compressed data is stored."""
        entry = FileEntry(name=b"f", data=b"a" * 100, cdata=b"z" * 10)
        assert entry.csize == 10
        assert entry.payload == b"z" * 10

    @pytest.mark.parametrize("clen", [11, 12, 40])
    def test_drops_compressed_data_not_smaller(self, clen: int) -> None:
        """Test that csize is never >= size."""
        entry = FileEntry(name=b"f", data=b"hello world", cdata=b"c" * clen)
        assert entry.cdata is None
        assert entry.csize == 0
        assert entry.payload == b"hello world"

    def test_is_frozen(self) -> None:
        """Test that records are immutable."""
        entry = FileEntry(name=b"f", data=b"")
        with pytest.raises(FrozenInstanceError):
            entry.name = b"g"  # type: ignore[misc]


class TestNameLength:
    """Tests for the 8-bit name length limit."""

    def test_255_bytes_accepted(self) -> None:
        """Test that a name of exactly 255 bytes is accepted."""
        assert len(DirEntry(name=b"n" * 255).name) == 255

    @pytest.mark.parametrize("factory", [
        lambda name: FileEntry(name=name, data=b""),
        lambda name: DirEntry(name=name),
        lambda name: LinkEntry(name=name, target=b"/t"),
    ])
    def test_256_bytes_rejected(self, factory) -> None:  # noqa: ANN001
        """Test that a 256-byte name is rejected for every record kind."""
        with pytest.raises(NameTooLongError):
            factory(b"n" * 256)

    def test_long_link_target_rejected(self) -> None:
        """Test that link targets share the name limit."""
        with pytest.raises(NameTooLongError, match="link target"):
            LinkEntry(name=b"l", target=b"/" + b"t" * 255)

    def test_name_too_long_is_limit_error(self) -> None:
        """Test the error hierarchy for name lengths."""
        assert issubclass(NameTooLongError, LimitExceededError)
        assert issubclass(NameTooLongError, ValueError)


class TestDirAndLinkEntry:
    """Tests for DirEntry and LinkEntry."""

    def test_signatures(self) -> None:
        """Test the directory and link record signatures."""
        assert DirEntry(name=b"d").signature == DIR_SIGNATURE == 0xDBFF500D
        assert LinkEntry(name=b"l", target=b"/x").signature == LINK_SIGNATURE == 0xDBFF5001

    def test_entry_count_limit(self) -> None:
        """Test that the directory count must fit 16 bits."""
        DirEntry(name=b"d", entries=0xFFFF)
        with pytest.raises(LimitExceededError):
            DirEntry(name=b"d", entries=0x10000)


class TestImage:
    """Tests for the Image chain."""

    def test_keeps_insertion_order(self) -> None:
        """Test that entries iterate in the order they were added."""
        image = Image()
        names = [b"a", b"a/f.txt", b"g.txt"]
        image.add(DirEntry(name=names[0], entries=1))
        image.add(FileEntry(name=names[1], data=b"1"))
        image.add(FileEntry(name=names[2], data=b"2"))
        assert [e.name for e in image] == names
        assert len(image) == 3

    def test_count_by_kind(self) -> None:
        """Test counting entries per kind."""
        image = Image()
        image.add(DirEntry(name=b"a"))
        image.add(FileEntry(name=b"a/f", data=b""))
        image.add(LinkEntry(name=b"l", target=b"/a/f"))
        assert (image.count("dir"), image.count("file"), image.count("link")) == (1, 1, 1)

    def test_entry_limit(self) -> None:
        """Test that the chain refuses entries past the format limit."""
        entry = DirEntry(name=b"d")
        image = Image(entries=[entry] * MAX_ENTRIES)
        with pytest.raises(LimitExceededError):
            image.add(entry)

"""In-memory image records and the ordered chain that owns them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Union

from dbffs.core.errors import LimitExceededError, NameTooLongError

FS_SIGNATURE = 0xDBFF5000
FILE_SIGNATURE = 0xDBFF500F
DIR_SIGNATURE = 0xDBFF500D
LINK_SIGNATURE = 0xDBFF5001

MAX_NAME_LENGTH = 255
MAX_DIR_ENTRIES = 0xFFFF
MAX_FILE_SIZE = 0xFFFFFFFF
MAX_ENTRIES = 65536

# signature(4) + next offset(4) + name length(1)
COMMON_HEADER_SIZE = 9


def check_name(value: bytes, *, what: str = "name") -> bytes:
    """Reject names that do not fit an 8-bit length prefix."""
    if len(value) > MAX_NAME_LENGTH:
        raise NameTooLongError(f"{what} is {len(value)} bytes, limit is {MAX_NAME_LENGTH}: {value[:32]!r}...")
    return value


@dataclass(frozen=True)
class FileEntry:
    """A regular file.

    Attributes
    ----------
    name
        Image path of the file, relative to the root.
    data
        Raw file content.
    cdata
        Compressed content, present only when strictly smaller than `data`.
    """

    signature: ClassVar[int] = FILE_SIGNATURE
    kind: ClassVar[str] = "file"

    name: bytes
    data: bytes
    cdata: bytes | None = None

    def __post_init__(self) -> None:
        check_name(self.name)
        if len(self.data) > MAX_FILE_SIZE:
            raise LimitExceededError(f"File is too large for a 32-bit size field: {self.name!r}")
        if self.cdata is not None and len(self.cdata) >= len(self.data):
            # Only a strictly smaller compressed payload is worth keeping.
            object.__setattr__(self, "cdata", None)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def csize(self) -> int:
        """Stored compressed size, `0` when the payload is stored raw."""
        return len(self.cdata) if self.cdata is not None else 0

    @property
    def payload(self) -> bytes:
        """Bytes written after the header."""
        return self.cdata if self.cdata is not None else self.data


@dataclass(frozen=True)
class DirEntry:
    """A directory; its children follow it as their own entries.

    Attributes
    ----------
    name
        Image path of the directory, relative to the root.
    entries
        Number of direct children seen while building (metadata only).
    """

    signature: ClassVar[int] = DIR_SIGNATURE
    kind: ClassVar[str] = "dir"

    name: bytes
    entries: int = 0

    def __post_init__(self) -> None:
        check_name(self.name)
        if not 0 <= self.entries <= MAX_DIR_ENTRIES:
            raise LimitExceededError(f"Directory has {self.entries} entries, limit is {MAX_DIR_ENTRIES}: {self.name!r}")


@dataclass(frozen=True)
class LinkEntry:
    """An indirection to another entry.

    Attributes
    ----------
    name
        Image path of the link, relative to the root.
    target
        Normalized absolute image path the link resolves to.
    """

    signature: ClassVar[int] = LINK_SIGNATURE
    kind: ClassVar[str] = "link"

    name: bytes
    target: bytes

    def __post_init__(self) -> None:
        check_name(self.name)
        check_name(self.target, what="link target")


FsEntry = Union[FileEntry, DirEntry, LinkEntry]


@dataclass
class Image:
    """The ordered entry chain of one image.

    Insertion order is discovery order, and it is the only index a reader
    has. `add` is the single mutation point.
    """

    entries: list[FsEntry] = field(default_factory=list)

    def add(self, entry: FsEntry) -> FsEntry:
        if len(self.entries) >= MAX_ENTRIES:
            raise LimitExceededError(f"Image cannot hold more than {MAX_ENTRIES} entries")
        self.entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FsEntry]:
        return iter(self.entries)

    def count(self, kind: str) -> int:
        """Number of entries of one kind (`file`, `dir` or `link`)."""
        return sum(1 for e in self.entries if e.kind == kind)

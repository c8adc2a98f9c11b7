"""Sequential image reader.

Mirrors the firmware lookup: start after the global signature, load each
record header, compare the name, and otherwise jump ahead by the record's
next-entry offset. Everything goes through a `read(offset, length)` callable
so the same code runs over a byte string or a `FlashRegion`.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Callable, Iterator, Union

from dbffs.core.config import BuildConfig, OffsetOrigin
from dbffs.core.errors import DepthExceededError, EncoderError, ImageFormatError
from dbffs.core.types import COMMON_HEADER_SIZE, DIR_SIGNATURE, FILE_SIGNATURE, FS_SIGNATURE, LINK_SIGNATURE
from dbffs.image.compress import decompress
from dbffs.image.serializer import SIGNATURE_SIZE

logger = logging.getLogger(__name__)

ReadFunc = Callable[[int, int], bytes]


@dataclass(frozen=True)
class FileRecord:
    """A file record as found in an image.

    Attributes
    ----------
    offset
        Image offset of the record's signature.
    name
        Entry name.
    next
        Raw next-entry offset.
    size
        Uncompressed size.
    csize
        Compressed size, `0` when stored raw.
    data_offset
        Image offset of the payload.
    """

    offset: int
    name: bytes
    next: int
    size: int
    csize: int
    data_offset: int

    kind = "file"

    def read_data(self, read: ReadFunc, cfg: BuildConfig) -> bytes:
        """Return the file content, decompressed if stored compressed."""
        if not self.csize:
            return read(self.data_offset, self.size)
        try:
            data = decompress(read(self.data_offset, self.csize), cfg.compression)
        except EncoderError as e:
            raise ImageFormatError(f"Corrupt compressed payload for {self.name!r}") from e
        if len(data) != self.size:
            raise ImageFormatError(f"{self.name!r} decompressed to {len(data)} bytes, expected {self.size}")
        return data


@dataclass(frozen=True)
class DirRecord:
    """A directory record as found in an image."""

    offset: int
    name: bytes
    next: int
    entries: int

    kind = "dir"


@dataclass(frozen=True)
class LinkRecord:
    """A link record as found in an image."""

    offset: int
    name: bytes
    next: int
    target: bytes

    kind = "link"


Record = Union[FileRecord, DirRecord, LinkRecord]


def bytes_reader(data: bytes) -> ReadFunc:
    """Adapt an in-memory image to the read contract."""

    def read(offset: int, length: int) -> bytes:
        if offset < 0 or offset + length > len(data):
            raise ImageFormatError(f"Image truncated: {length} bytes at offset 0x{offset:x}")
        return data[offset : offset + length]

    return read


def iter_records(read: ReadFunc, cfg: BuildConfig, *, end: int | None = None) -> Iterator[Record]:
    """Walk the record chain of an image.

    Parameters
    ----------
    read
        Byte-range reader over the image.
    cfg
        Configuration the image was built with (byte order, offset origin).
    end
        Image length, when known. An image holding only the signature then
        yields nothing.

    Yields
    ------
    Record
        Each record in chain order.

    Raises
    ------
    ImageFormatError
        If the signature is wrong, a record is unknown or an offset is invalid.
    """
    p = cfg.byte_order.struct_prefix
    (signature,) = struct.unpack(f"{p}I", read(0, SIGNATURE_SIZE))
    if signature != FS_SIGNATURE:
        raise ImageFormatError(f"Not a DBFFS image, signature 0x{signature:08x}")

    pos = SIGNATURE_SIZE
    min_step = COMMON_HEADER_SIZE if cfg.next_offset_origin is OffsetOrigin.RECORD else COMMON_HEADER_SIZE - SIGNATURE_SIZE
    if end is not None and pos >= end:
        return
    while True:
        signature, nxt, name_len = struct.unpack(f"{p}IIB", read(pos, COMMON_HEADER_SIZE))
        name = read(pos + COMMON_HEADER_SIZE, name_len)
        body = pos + COMMON_HEADER_SIZE + name_len
        record: Record
        if signature == FILE_SIGNATURE:
            size, csize = struct.unpack(f"{p}II", read(body, 8))
            record = FileRecord(pos, name, nxt, size, csize, body + 8)
        elif signature == DIR_SIGNATURE:
            (entries,) = struct.unpack(f"{p}H", read(body, 2))
            record = DirRecord(pos, name, nxt, entries)
        elif signature == LINK_SIGNATURE:
            target_len = read(body, 1)[0]
            record = LinkRecord(pos, name, nxt, read(body + 1, target_len))
        else:
            raise ImageFormatError(f"Unknown record signature 0x{signature:08x} at offset 0x{pos:x}")
        yield record

        if nxt == 0:
            return
        if nxt < min_step:
            raise ImageFormatError(f"Invalid next-entry offset {nxt} at offset 0x{pos:x}")
        pos += nxt + SIGNATURE_SIZE if cfg.next_offset_origin is OffsetOrigin.FIELD else nxt


def read_image(data: bytes, cfg: BuildConfig) -> list[Record]:
    """Parse every record of an in-memory image."""
    return list(iter_records(bytes_reader(data), cfg, end=len(data)))


def find_file(
    read: ReadFunc, path: str, cfg: BuildConfig, *, end: int | None = None, _depth: int = 0
) -> FileRecord | None:
    """Find the file record for an image path, following link records.

    Parameters
    ----------
    read
        Byte-range reader over the image.
    path
        Image path, with or without a leading `/`.
    cfg
        Configuration the image was built with.
    end
        Image length, when known; see `iter_records`.

    Returns
    -------
    FileRecord | None
        The matching file record, or None if no file has that name.

    Raises
    ------
    DepthExceededError
        If links chain deeper than `cfg.max_depth`.
    """
    if _depth > cfg.max_depth:
        raise DepthExceededError(f"Link chain deeper than {cfg.max_depth} resolving {path}")
    wanted = path.lstrip("/").encode("utf-8", errors="surrogateescape")
    for record in iter_records(read, cfg, end=end):
        if record.name != wanted:
            continue
        if isinstance(record, FileRecord):
            return record
        if isinstance(record, LinkRecord):
            logger.debug("%s: link to %s", path, record.target)
            target = record.target.decode("utf-8", errors="surrogateescape")
            return find_file(read, target, cfg, end=end, _depth=_depth + 1)
        logger.warning("%s is a %s, not a file", path, record.kind)
        return None
    logger.debug("%s: not found", path)
    return None

"""Binary rendering of the entry chain."""

from __future__ import annotations

import struct
from typing import Iterator

from dbffs.core.config import BuildConfig, ByteOrder, OffsetOrigin
from dbffs.core.errors import SerializationError
from dbffs.core.types import COMMON_HEADER_SIZE, FS_SIGNATURE, DirEntry, FileEntry, FsEntry, Image, LinkEntry

# Bytes between the start of a record and the start of its offset field.
SIGNATURE_SIZE = 4


def encoded_length(entry: FsEntry) -> int:
    """Exact number of bytes `encode_entry` writes for an entry.

    This is the single authority for record size: the next-entry offset is
    derived from it, and every encoded record is checked against it.
    """
    base = COMMON_HEADER_SIZE + len(entry.name)
    if isinstance(entry, FileEntry):
        return base + 4 + 4 + len(entry.payload)
    if isinstance(entry, DirEntry):
        return base + 2
    if isinstance(entry, LinkEntry):
        return base + 1 + len(entry.target)
    raise SerializationError(f"Unknown entry type: {type(entry).__name__}")


def next_offset(entry: FsEntry, *, last: bool, origin: OffsetOrigin) -> int:
    """Offset stored in an entry's next field.

    Parameters
    ----------
    entry
        Entry being written.
    last
        True for the terminal entry, whose offset is always `0`.
    origin
        Whether the distance is measured from the offset field or from the
        start of the record.

    Returns
    -------
    int
        Distance to the next record's signature.
    """
    if last:
        return 0
    length = encoded_length(entry)
    return length - SIGNATURE_SIZE if origin is OffsetOrigin.FIELD else length


def encode_entry(entry: FsEntry, offset: int, order: ByteOrder) -> bytes:
    """Encode one record.

    Raises
    ------
    SerializationError
        If the encoded size disagrees with `encoded_length`.
    """
    p = order.struct_prefix
    out = bytearray(struct.pack(f"{p}IIB", entry.signature, offset, len(entry.name)))
    out += entry.name
    if isinstance(entry, FileEntry):
        out += struct.pack(f"{p}II", entry.size, entry.csize)
        out += entry.payload
    elif isinstance(entry, DirEntry):
        out += struct.pack(f"{p}H", entry.entries)
    elif isinstance(entry, LinkEntry):
        out += struct.pack(f"{p}B", len(entry.target))
        out += entry.target
    else:
        raise SerializationError(f"Unknown entry type: {type(entry).__name__}")

    expected = encoded_length(entry)
    if len(out) != expected:
        raise SerializationError(
            f"Entry {entry.name!r} encoded to {len(out)} bytes, expected {expected}"
        )
    return bytes(out)


def encode_signature(order: ByteOrder) -> bytes:
    """The global image signature."""
    return struct.pack(f"{order.struct_prefix}I", FS_SIGNATURE)


def iter_records(image: Image, cfg: BuildConfig) -> Iterator[tuple[FsEntry, bytes]]:
    """Yield every entry with its encoded bytes, in chain order."""
    total = len(image)
    for i, entry in enumerate(image):
        offset = next_offset(entry, last=i == total - 1, origin=cfg.next_offset_origin)
        yield entry, encode_entry(entry, offset, cfg.byte_order)


def serialize(image: Image, cfg: BuildConfig) -> bytes:
    """Render a complete image (signature plus all records) in memory."""
    parts = [encode_signature(cfg.byte_order)]
    parts.extend(record for _, record in iter_records(image, cfg))
    return b"".join(parts)

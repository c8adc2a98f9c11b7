"""Host-side emulation of the device flash read contract.

The device maps flash into memory but only allows aligned 32-bit loads. Byte
reads at arbitrary offsets are served by loading the enclosing word and
shifting the wanted byte out of it. `FlashRegion` reproduces that so images
can be read back exactly the way firmware reads them.
"""

from __future__ import annotations

import struct

from dbffs.core.errors import ImageFormatError

WORD_SIZE = 4
ERASED_BYTE = 0xFF

WINBOND = 0xEF
GIGADEVICE = 0xC8
KNOWN_VENDORS = frozenset({WINBOND, GIGADEVICE})


class FlashRegion:
    """Word-addressed view of an image stored at `base` in flash.

    Parameters
    ----------
    content
        Bytes of the whole flash (or of the image when `base` is 0).
    base
        Offset of the image inside `content`.
    """

    def __init__(self, content: bytes, base: int = 0) -> None:
        if base < 0:
            raise ImageFormatError(f"Flash base must not be negative: {base}")
        self._content = content
        self.base = base
        self.word_reads = 0

    def __len__(self) -> int:
        return max(0, len(self._content) - self.base)

    def _load_word(self, address: int) -> int:
        self.word_reads += 1
        word = self._content[address : address + WORD_SIZE]
        word = word + bytes([ERASED_BYTE]) * (WORD_SIZE - len(word))
        return struct.unpack("<I", word)[0]

    def read(self, source_offset: int, length: int) -> bytes:
        """Read `length` bytes at `source_offset` relative to the region base.

        Raises
        ------
        ImageFormatError
            If the region cannot satisfy the full length.
        """
        if source_offset < 0 or length < 0:
            raise ImageFormatError(f"Invalid flash read at {source_offset} of {length} bytes")
        if source_offset + length > len(self):
            raise ImageFormatError(f"Short flash read: {length} bytes at offset 0x{source_offset:x}")

        out = bytearray()
        address = self.base + source_offset
        for _ in range(length):
            unaligned = address & (WORD_SIZE - 1)
            word = self._load_word(address - unaligned)
            out.append((word >> (unaligned << 3)) & 0xFF)
            address += 1
        return bytes(out)


def flash_capacity(device_id: int) -> int:
    """Flash size in bytes for a JEDEC device id, `0` for unknown vendors."""
    vendor = device_id & 0xFF
    size_id = (device_id >> 16) & 0xFF
    if vendor not in KNOWN_VENDORS:
        return 0
    return 1 << size_id

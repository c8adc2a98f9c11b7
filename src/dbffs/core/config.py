"""Build configuration and its TOML loader."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import tomli
from pydantic import BaseModel, Field, ValidationError, model_validator


class ByteOrder(str, Enum):
    """Byte order of every multi-byte integer in the image.

    Attributes
    ----------
    NATIVE
        Host byte order of the machine running the builder.
    LITTLE
        Little-endian (ESP8266 and most flash targets).
    BIG
        Big-endian.
    """

    NATIVE = "native"
    LITTLE = "little"
    BIG = "big"

    @property
    def struct_prefix(self) -> str:
        """`struct` format prefix without alignment padding."""
        return {ByteOrder.NATIVE: "=", ByteOrder.LITTLE: "<", ByteOrder.BIG: ">"}[self]


class OffsetOrigin(str, Enum):
    """Where the next-entry offset of a record is measured from.

    Attributes
    ----------
    FIELD
        Start of the record's own offset field.
    RECORD
        Start of the record (its signature).
    """

    FIELD = "field"
    RECORD = "record"


class CompressionBackend(str, Enum):
    """Payload compression format.

    Attributes
    ----------
    HEATSHRINK
        LZSS as decoded by the device firmware.
    DEFLATE
        Raw DEFLATE, for host-side consumers.
    """

    HEATSHRINK = "heatshrink"
    DEFLATE = "deflate"


class CompressionConfig(BaseModel):
    """Streaming compressor settings.

    Attributes
    ----------
    backend
        Payload format.
    window_sz2
        Base-two logarithm of the heatshrink window.
    lookahead_sz2
        Base-two logarithm of the heatshrink lookahead; below `window_sz2`.
    level
        DEFLATE compression level.
    window_bits
        Base-two logarithm of the DEFLATE history window.
    mem_level
        Memory used for the internal DEFLATE state.
    input_buffer_size
        Bytes the encoder accepts before it must be polled.
    poll_size
        Bytes drained per poll.
    """

    backend: CompressionBackend = CompressionBackend.HEATSHRINK
    window_sz2: int = Field(default=8, ge=4, le=15)
    lookahead_sz2: int = Field(default=4, ge=3, le=14)
    level: int = Field(default=9, ge=0, le=9)
    window_bits: int = Field(default=9, ge=9, le=15)
    mem_level: int = Field(default=8, ge=1, le=9)
    input_buffer_size: int = Field(default=256, ge=1)
    poll_size: int = Field(default=256, ge=1)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _lookahead_below_window(self) -> CompressionConfig:
        if self.lookahead_sz2 >= self.window_sz2:
            raise ValueError("lookahead_sz2 must be smaller than window_sz2")
        return self


class BuildConfig(BaseModel):
    """Configuration for one image build.

    Attributes
    ----------
    max_depth
        Bound on directory nesting plus symbolic link hops.
    include_hidden
        Include entries whose name starts with a dot.
    compress
        Try compressing file payloads.
    byte_order
        Byte order of integers in the image.
    next_offset_origin
        Origin of the next-entry offset.
    compression
        Streaming compressor settings.
    """

    max_depth: int = Field(default=10, ge=1)
    include_hidden: bool = False
    compress: bool = True
    byte_order: ByteOrder = ByteOrder.NATIVE
    next_offset_origin: OffsetOrigin = OffsetOrigin.FIELD
    compression: CompressionConfig = Field(default_factory=CompressionConfig)

    model_config = {"frozen": True, "extra": "forbid"}


def load_config(path: Path, **overrides: Any) -> BuildConfig:
    """Load a build configuration from a TOML file.

    A `pyproject.toml` is read from its `[tool.dbffs]` table; any other file
    is read from its top-level table.

    Parameters
    ----------
    path
        TOML file to read.
    **overrides
        Values that replace those from the file (e.g. CLI flags).

    Returns
    -------
    BuildConfig
        Validated configuration.

    Raises
    ------
    ValueError
        If the file cannot be read, parsed or validated.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Failed to read config file: {path}") from e
    try:
        doc = tomli.loads(text)
    except tomli.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse TOML config: {path}") from e

    if path.name == "pyproject.toml":
        doc = doc.get("tool", {}).get("dbffs", {})

    doc.update(overrides)
    try:
        return BuildConfig.model_validate(doc)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e

"""Streaming payload compression.

The encoder follows a sink/poll/finish protocol with a bounded input buffer.
Payloads are heatshrink (LZSS) streams by default, the format the device
firmware decodes; raw DEFLATE is available for host-side consumers.
"""

from __future__ import annotations

import logging
import zlib
from enum import Enum

import heatshrink2

from dbffs.core.config import CompressionBackend, CompressionConfig
from dbffs.core.errors import AllocationError, EncoderError

logger = logging.getLogger(__name__)


class EncoderState(str, Enum):
    """Lifecycle state of a `StreamingEncoder`."""

    IDLE = "idle"
    SINKING = "sinking"
    POLLING = "polling"
    FINISHING = "finishing"
    DONE = "done"


class PollResult(str, Enum):
    """Outcome of `StreamingEncoder.poll`.

    Attributes
    ----------
    EMPTY
        All available output has been drained.
    MORE
        Output is still pending; poll again.
    """

    EMPTY = "empty"
    MORE = "more"


class FinishResult(str, Enum):
    """Outcome of `StreamingEncoder.finish`.

    Attributes
    ----------
    DONE
        The stream is complete and fully drained.
    MORE
        Output is pending; poll until empty, then finish again.
    """

    DONE = "done"
    MORE = "more"


_SINK_STATES = (EncoderState.IDLE, EncoderState.SINKING, EncoderState.POLLING)
_POLL_STATES = (EncoderState.SINKING, EncoderState.POLLING, EncoderState.FINISHING)
_FINISH_STATES = (EncoderState.IDLE, EncoderState.SINKING, EncoderState.POLLING, EncoderState.FINISHING)


class _DeflateCodec:
    """Incremental raw DEFLATE."""

    def __init__(self, cfg: CompressionConfig) -> None:
        self._z = zlib.compressobj(cfg.level, zlib.DEFLATED, -cfg.window_bits, cfg.mem_level)

    def compress(self, data: bytes) -> bytes:
        return self._z.compress(data)

    def flush(self) -> bytes:
        return self._z.flush(zlib.Z_FINISH)


class _HeatshrinkCodec:
    """Heatshrink stream with the firmware's window and lookahead.

    Input taken from the encoder buffer is held and encoded as one stream on
    flush.
    """

    def __init__(self, cfg: CompressionConfig) -> None:
        self._cfg = cfg
        self._held = bytearray()

    def compress(self, data: bytes) -> bytes:
        self._held += data
        return b""

    def flush(self) -> bytes:
        if not self._held:
            return b""
        return heatshrink2.compress(
            bytes(self._held), window_sz2=self._cfg.window_sz2, lookahead_sz2=self._cfg.lookahead_sz2
        )


_CODEC_ERRORS = (zlib.error, ValueError, RuntimeError)


class StreamingEncoder:
    """Sink/poll/finish compressor for one payload.

    Parameters
    ----------
    cfg
        Compressor settings.
    """

    def __init__(self, cfg: CompressionConfig) -> None:
        self._cfg = cfg
        try:
            if cfg.backend is CompressionBackend.HEATSHRINK:
                self._codec: _DeflateCodec | _HeatshrinkCodec = _HeatshrinkCodec(cfg)
            else:
                self._codec = _DeflateCodec(cfg)
        except MemoryError as e:
            raise AllocationError("Could not allocate compressor state") from e
        except _CODEC_ERRORS as e:
            raise EncoderError(f"Could not initialise compressor: {e}") from e
        self._in = bytearray()
        self._out = bytearray()
        self.state = EncoderState.IDLE

    def sink(self, data: bytes | memoryview) -> int:
        """Feed raw bytes.

        Only the free space of the input buffer is taken; the caller must
        advance its cursor by the returned count and poll when it is `0`.

        Returns
        -------
        int
            Number of bytes consumed.
        """
        if self.state not in _SINK_STATES:
            raise EncoderError(f"sink() called in state {self.state.value}")
        take = min(len(data), self._cfg.input_buffer_size - len(self._in))
        self._in += data[:take]
        self.state = EncoderState.SINKING
        return take

    def poll(self, max_bytes: int) -> tuple[bytes, PollResult]:
        """Drain up to `max_bytes` of compressed output."""
        if self.state not in _POLL_STATES:
            raise EncoderError(f"poll() called in state {self.state.value}")
        if max_bytes < 1:
            raise EncoderError("poll() needs room for at least one byte")
        self._encode_pending()
        chunk = bytes(self._out[:max_bytes])
        del self._out[:max_bytes]
        if self.state is not EncoderState.FINISHING:
            self.state = EncoderState.POLLING
        return chunk, (PollResult.MORE if self._out else PollResult.EMPTY)

    def finish(self) -> FinishResult:
        """Signal end of input."""
        if self.state is EncoderState.DONE:
            return FinishResult.DONE
        if self.state not in _FINISH_STATES:
            raise EncoderError(f"finish() called in state {self.state.value}")
        if self.state is not EncoderState.FINISHING:
            self._encode_pending()
            try:
                self._out += self._codec.flush()
            except MemoryError as e:
                raise AllocationError("Could not allocate compressor output") from e
            except _CODEC_ERRORS as e:
                raise EncoderError(f"Compressor failed to flush: {e}") from e
            self.state = EncoderState.FINISHING
        if self._out:
            return FinishResult.MORE
        self.state = EncoderState.DONE
        return FinishResult.DONE

    def _encode_pending(self) -> None:
        if not self._in:
            return
        try:
            self._out += self._codec.compress(bytes(self._in))
        except _CODEC_ERRORS as e:
            raise EncoderError(f"Compressor rejected input: {e}") from e
        except MemoryError as e:
            raise AllocationError("Could not allocate compressor output") from e
        self._in.clear()


def _drain(encoder: StreamingEncoder, out: bytearray, poll_size: int) -> None:
    while True:
        chunk, res = encoder.poll(poll_size)
        out += chunk
        if res is PollResult.EMPTY:
            return


def compress(data: bytes, cfg: CompressionConfig) -> bytes:
    """Compress a payload by driving a `StreamingEncoder` to completion.

    Parameters
    ----------
    data
        Raw payload.
    cfg
        Compressor settings.

    Returns
    -------
    bytes
        Compressed payload; may be longer than `data` for incompressible input.

    Raises
    ------
    EncoderError
        If the encoder enters an unexpected state.
    """
    encoder = StreamingEncoder(cfg)
    out = bytearray()
    view = memoryview(data)
    pos = 0
    while pos < len(view):
        pos += encoder.sink(view[pos:])
        _drain(encoder, out, cfg.poll_size)

    while encoder.finish() is FinishResult.MORE:
        _drain(encoder, out, cfg.poll_size)
    return bytes(out)


def decompress(data: bytes, cfg: CompressionConfig) -> bytes:
    """Expand a payload produced by `compress` with the same settings.

    Raises
    ------
    EncoderError
        If the payload is not a valid stream. Heatshrink streams carry no end
        marker, so a truncated heatshrink payload is only caught by the
        caller's size check.
    """
    if cfg.backend is CompressionBackend.HEATSHRINK:
        if not data:
            return b""
        try:
            return heatshrink2.decompress(data, window_sz2=cfg.window_sz2, lookahead_sz2=cfg.lookahead_sz2)
        except (ValueError, RuntimeError) as e:
            raise EncoderError(f"Could not decompress payload: {e}") from e

    try:
        z = zlib.decompressobj(-cfg.window_bits)
        out = z.decompress(data) + z.flush()
    except zlib.error as e:
        raise EncoderError(f"Could not decompress payload: {e}") from e
    if not z.eof:
        raise EncoderError("Compressed payload is truncated")
    return out

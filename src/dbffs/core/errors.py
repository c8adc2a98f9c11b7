"""Error taxonomy for image building and reading.

Every failure in the builder is fatal to the build; these exceptions carry the
cause up to the CLI, which is the only place that catches them.
"""

from __future__ import annotations


class DbffsError(Exception):
    """Base class for all DBFFS errors."""


class InvalidPathError(DbffsError, ValueError):
    """A path is not absolute or cannot be normalized."""


class EscapesRootError(InvalidPathError):
    """A `..` segment would move above the root."""


class ImageIOError(DbffsError, OSError):
    """Reading the source tree or writing the image failed."""


class AllocationError(DbffsError, MemoryError):
    """Memory for an entry or its buffers could not be reserved."""


class EncoderError(DbffsError):
    """The streaming compressor entered an unexpected state."""


class DepthExceededError(DbffsError):
    """Directory nesting plus link hops exceeded the configured bound."""


class SerializationError(DbffsError):
    """An entry's encoded bytes disagree with its computed length."""


class LimitExceededError(DbffsError, ValueError):
    """A value does not fit the fixed-width field the format reserves for it."""


class NameTooLongError(LimitExceededError):
    """A name or link target is longer than 255 bytes."""


class ImageFormatError(DbffsError, ValueError):
    """An image is truncated or contains an unknown record."""

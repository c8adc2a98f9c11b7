"""Constructors turning one host filesystem object into an image record."""

from __future__ import annotations

import logging
import os

from dbffs.core.config import BuildConfig
from dbffs.core.errors import AllocationError, ImageIOError
from dbffs.core.paths import normalize_path
from dbffs.core.types import DirEntry, FileEntry, LinkEntry, MAX_FILE_SIZE
from dbffs.image.compress import compress

logger = logging.getLogger(__name__)


def build_file_entry(host_path: str, name: str, cfg: BuildConfig) -> FileEntry:
    """Read a regular file and build its record.

    The compressed form is kept only if it is strictly smaller than the raw
    content.

    Parameters
    ----------
    host_path
        File to read.
    name
        Image path of the entry.
    cfg
        Build configuration.

    Returns
    -------
    FileEntry
        Record holding the raw and, when smaller, compressed payload.

    Raises
    ------
    ImageIOError
        If the file cannot be opened or read.
    AllocationError
        If the content or its compressed form does not fit in memory.
    """
    try:
        with open(host_path, "rb") as f:
            data = f.read()
    except MemoryError as e:
        raise AllocationError(f"Could not allocate memory for file data: {host_path}") from e
    except OSError as e:
        raise ImageIOError(f"Could not read file {host_path}: {e.strerror or e}") from e

    cdata = None
    if cfg.compress and data and len(data) <= MAX_FILE_SIZE:
        try:
            cdata = compress(data, cfg.compression)
        except MemoryError as e:
            raise AllocationError(f"Could not allocate memory to compress {host_path}") from e
        logger.debug("%s: %d -> %d bytes", name, len(data), len(cdata))

    return FileEntry(name=os.fsencode(name), data=data, cdata=cdata)


def list_children(host_dir: str, *, include_hidden: bool) -> list[str]:
    """Names of a directory's children in the order the walker visits them.

    Raises
    ------
    ImageIOError
        If the directory cannot be scanned.
    """
    try:
        names = os.listdir(host_dir)
    except OSError as e:
        raise ImageIOError(f"Cannot scan directory {host_dir}: {e.strerror or e}") from e
    if not include_hidden:
        names = [n for n in names if not n.startswith(".")]
    return sorted(names, key=os.fsencode)


def build_dir_entry(host_path: str, name: str, cfg: BuildConfig) -> tuple[DirEntry, list[str]]:
    """Build a directory record counting the children the walk will visit.

    Returns
    -------
    tuple[DirEntry, list[str]]
        The record and the child names, in visiting order.
    """
    children = list_children(host_path, include_hidden=cfg.include_hidden)
    return DirEntry(name=os.fsencode(name), entries=len(children)), children


def read_link_target(host_path: str) -> str:
    """Read a symbolic link and normalize its target against the link's directory.

    Raises
    ------
    ImageIOError
        If the link cannot be read.
    InvalidPathError
        If the target cannot be normalized.
    """
    try:
        target = os.readlink(host_path)
    except OSError as e:
        raise ImageIOError(f"Error getting symbolic link target of {host_path}: {e.strerror or e}") from e
    if not target.startswith("/"):
        target = os.path.join(os.path.dirname(host_path), target)
    return normalize_path(target)


def build_link_entry(name: str, target: str) -> LinkEntry:
    """Build a link record pointing at an absolute image path."""
    return LinkEntry(name=os.fsencode(name), target=os.fsencode(normalize_path(target)))

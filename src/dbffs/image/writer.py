"""Image build driver: walk the source, then write the image file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from dbffs.core.config import BuildConfig
from dbffs.core.errors import ImageIOError
from dbffs.core.types import FileEntry, Image
from dbffs.image.serializer import encode_signature, iter_records
from dbffs.image.walker import walk_tree

logger = logging.getLogger(__name__)

# Status wording of the original image tool.
_KIND_LABELS = {"file": "file", "dir": "directory", "link": "link"}


@dataclass(frozen=True)
class BuildReport:
    """Summary of one image build.

    Attributes
    ----------
    entries
        Entries written to the image.
    files
        File entries.
    dirs
        Directory entries.
    links
        Link entries.
    skipped
        Source objects skipped because of an unsupported type.
    image_bytes
        Total size of the image file.
    raw_bytes
        Sum of uncompressed file sizes.
    stored_bytes
        Sum of file payload bytes actually stored.
    """

    entries: int
    files: int
    dirs: int
    links: int
    skipped: int
    image_bytes: int
    raw_bytes: int
    stored_bytes: int


def write_image(
    image: Image,
    path: Path,
    cfg: BuildConfig,
    *,
    log_func: Callable[[str], None] | None = None,
) -> tuple[int, int]:
    """Write the global signature and every record to an image file.

    Parameters
    ----------
    image
        Entry chain to serialize.
    path
        Output file; truncated if it exists.
    cfg
        Build configuration.
    log_func
        Receives one summary line per record written.

    Returns
    -------
    tuple[int, int]
        Entries written and total bytes written.

    Raises
    ------
    ImageIOError
        If the file cannot be opened, written or closed. The file may be left
        incomplete and must not be used.
    SerializationError
        If a record's bytes disagree with its computed length.
    """
    count = 0
    written = 0
    try:
        with path.open("wb") as fh:
            written += fh.write(encode_signature(cfg.byte_order))
            for entry, record in iter_records(image, cfg):
                written += fh.write(record)
                count += 1
                if log_func is not None:
                    log_func(f" Writing {_KIND_LABELS[entry.kind]} {entry.name.decode('utf-8', errors='replace')}.")
    except OSError as e:
        raise ImageIOError(f"Could not write image file {path}: {e.strerror or e}") from e
    logger.debug("Wrote %d entries, %d bytes to %s", count, written, path)
    return count, written


def build_image(
    root: Path,
    output: Path,
    cfg: BuildConfig,
    *,
    log_func: Callable[[str], None] | None = None,
) -> BuildReport:
    """Build an image of a source tree and write it to a file.

    The whole tree is loaded into memory before the output file is opened, so
    walk and compression failures never leave a partial image behind.
    """
    ctx = walk_tree(root, cfg)
    image = ctx.image
    if log_func is not None:
        log_func(f"Added a total of {len(image)} entries.")
        log_func(f"Writing image to file {output}.")

    count, written = write_image(image, output, cfg, log_func=log_func)
    files = [e for e in image if isinstance(e, FileEntry)]
    return BuildReport(
        entries=count,
        files=len(files),
        dirs=image.count("dir"),
        links=image.count("link"),
        skipped=ctx.skipped,
        image_bytes=written,
        raw_bytes=sum(e.size for e in files),
        stored_bytes=sum(len(e.payload) for e in files),
    )

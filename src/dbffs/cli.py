"""Command line entry points: `dbffs-image` and `dbffs-inspect`."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import yaml

from dbffs import __version__
from dbffs.core.config import BuildConfig, ByteOrder, CompressionBackend, OffsetOrigin, load_config
from dbffs.core.errors import DbffsError, ImageIOError
from dbffs.image.flash import FlashRegion
from dbffs.image.reader import DirRecord, FileRecord, LinkRecord, Record, bytes_reader, find_file, iter_records
from dbffs.image.writer import build_image
from dbffs.logging_utils import configure_logging

logger = logging.getLogger(__name__)

# Same status as a process killed by abort().
EXIT_ABORT = 128 + signal.SIGABRT


def _print_welcome() -> None:
    print(f"dbf file system image generation tool version {__version__}.")
    print(f"DBFFS version {__version__}\n")


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-v", "--verbose", action="store_true", help="print progress and structural diagnostics")
    p.add_argument("--config", type=Path, help="TOML file with build settings (dbffs.toml or pyproject.toml)")
    p.add_argument("--byte-order", choices=[o.value for o in ByteOrder], help="byte order of image integers")
    p.add_argument(
        "--offset-origin",
        choices=[o.value for o in OffsetOrigin],
        help="measure next-entry offsets from the offset field or the record start",
    )
    p.add_argument(
        "--compression", choices=[b.value for b in CompressionBackend], help="payload compression format"
    )


def _resolve_config(args: argparse.Namespace, **overrides: Any) -> BuildConfig:
    if args.byte_order:
        overrides["byte_order"] = args.byte_order
    if args.offset_origin:
        overrides["next_offset_origin"] = args.offset_origin
    cfg = load_config(args.config, **overrides) if args.config is not None else BuildConfig.model_validate(overrides)
    if args.compression:
        compression = cfg.compression.model_copy(update={"backend": CompressionBackend(args.compression)})
        cfg = cfg.model_copy(update={"compression": compression})
    return cfg


def _offset(text: str) -> int:
    """Parse a decimal or 0x-prefixed offset."""
    return int(text, 0)


def _fail(e: Exception) -> int:
    msg = str(e)
    cause = e.__cause__
    if isinstance(cause, OSError) and cause.strerror and cause.strerror not in msg:
        msg = f"{msg} ({cause.strerror})"
    logger.debug("Build failed", exc_info=e)
    print(f"error: {msg}", file=sys.stderr)
    return EXIT_ABORT


def main(argv: list[str] | None = None) -> int:
    """Build a DBFFS image from a directory tree."""
    p = argparse.ArgumentParser(prog="dbffs-image", description="Create DBFFS image, IMAGE, from files in ROOT.")
    _add_config_args(p)
    p.add_argument("--no-compress", action="store_true", help="store every file uncompressed")
    p.add_argument("--max-depth", type=int, help="bound on directory nesting plus link hops")
    p.add_argument("--include-hidden", action="store_true", help="include dot-files")
    p.add_argument("root", type=Path, help="directory to scan")
    p.add_argument("image", type=Path, help="image file to write")

    _print_welcome()
    args = p.parse_args(argv)
    configure_logging(args.verbose)

    overrides: dict[str, Any] = {}
    if args.no_compress:
        overrides["compress"] = False
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.include_hidden:
        overrides["include_hidden"] = True

    try:
        cfg = _resolve_config(args, **overrides)
        print(f"Creating image in RAM from files in {args.root}.")
        report = build_image(args.root, args.image, cfg, log_func=print)
    except (DbffsError, ValueError) as e:
        return _fail(e)

    logger.info("%d files, %d directories, %d links", report.files, report.dirs, report.links)
    if report.raw_bytes:
        logger.info("File data %d bytes stored as %d bytes", report.raw_bytes, report.stored_bytes)
    print(f"{report.entries} entries written to image {args.image}.")
    return 0


def _record_to_dict(record: Record) -> dict[str, Any]:
    out: dict[str, Any] = {
        "offset": record.offset,
        "kind": record.kind,
        "name": record.name.decode("utf-8", errors="replace"),
        "next": record.next,
    }
    if isinstance(record, FileRecord):
        out["size"] = record.size
        out["csize"] = record.csize
    elif isinstance(record, DirRecord):
        out["entries"] = record.entries
    elif isinstance(record, LinkRecord):
        out["target"] = record.target.decode("utf-8", errors="replace")
    return out


def inspect_main(argv: list[str] | None = None) -> int:
    """List the records of a DBFFS image, or extract one file."""
    p = argparse.ArgumentParser(prog="dbffs-inspect", description="List the records of a DBFFS image.")
    _add_config_args(p)
    p.add_argument("--format", choices=["yaml", "json"], default="yaml", help="listing format")
    p.add_argument("--extract", metavar="PATH", help="write the content of one file to stdout")
    p.add_argument(
        "--flash-base",
        type=_offset,
        metavar="OFFSET",
        help="treat IMAGE as a flash dump holding the image at OFFSET, read with aligned word loads",
    )
    p.add_argument("image", type=Path, help="image file to read")
    args = p.parse_args(argv)
    configure_logging(args.verbose)

    try:
        cfg = _resolve_config(args)
        try:
            data = args.image.read_bytes()
        except OSError as e:
            raise ImageIOError(f"Could not read image file {args.image}: {e.strerror or e}") from e

        if args.flash_base is not None:
            flash = FlashRegion(data, base=args.flash_base)
            read, end = flash.read, len(flash)
        else:
            read, end = bytes_reader(data), len(data)

        if args.extract:
            record = find_file(read, args.extract, cfg, end=end)
            if record is None:
                raise DbffsError(f"No such file in image: {args.extract}")
            sys.stdout.buffer.write(record.read_data(read, cfg))
            return 0

        listing = [_record_to_dict(r) for r in iter_records(read, cfg, end=end)]
    except (DbffsError, ValueError) as e:
        return _fail(e)

    if args.format == "json":
        print(json.dumps(listing, indent=2))
    else:
        print(yaml.safe_dump(listing, sort_keys=False), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())

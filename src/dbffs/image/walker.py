"""Source tree traversal producing the ordered entry chain."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path

from dbffs.core.config import BuildConfig
from dbffs.core.errors import DepthExceededError, ImageIOError
from dbffs.core.paths import SEP, is_within, join_image_path, normalize_path, to_image_path
from dbffs.core.types import Image
from dbffs.image.builders import (
    build_dir_entry,
    build_file_entry,
    build_link_entry,
    list_children,
    read_link_target,
)

logger = logging.getLogger(__name__)


@dataclass
class WalkContext:
    """State of one walk, threaded through the traversal.

    Attributes
    ----------
    root
        Normalized absolute host path of the source root.
    cfg
        Build configuration.
    image
        Chain receiving every entry in discovery order.
    skipped
        Number of objects skipped because of an unsupported type.
    expansions
        Directory links being expanded, innermost last, as pairs of the
        target's host path and the link's image path.
    """

    root: str
    cfg: BuildConfig
    image: Image = field(default_factory=Image)
    skipped: int = 0
    expansions: list[tuple[str, str]] = field(default_factory=list)


def walk_tree(root: Path | str, cfg: BuildConfig) -> WalkContext:
    """Walk a source directory and build its entry chain.

    The traversal is physical, pre-order and depth-first; children are visited
    in byte order of their names. No entry is produced for the root itself.

    Symbolic links are classified by following them one hop at a time. A link
    to a directory is expanded inline under the link's own path; a link to a
    file becomes a link entry pointing at the target's image path. Targets
    reached through an expanded directory link map through that link's path
    first, so links inside a linked directory outside the root stay valid.
    Every hop and every directory level counts against `cfg.max_depth`.

    Parameters
    ----------
    root
        Source directory.
    cfg
        Build configuration.

    Returns
    -------
    WalkContext
        The finished walk, holding the image chain.

    Raises
    ------
    ImageIOError
        If the root is not a readable directory or any object cannot be read.
    DepthExceededError
        If nesting plus link hops exceed `cfg.max_depth`.
    """
    host_root = normalize_path(os.path.abspath(os.fspath(root)))
    if not os.path.isdir(host_root):
        raise ImageIOError(f"Root must be an existing directory: {host_root}")

    ctx = WalkContext(root=host_root, cfg=cfg)
    children = list_children(host_root, include_hidden=cfg.include_hidden)
    logger.debug("Scanning %s, %d entries", host_root, len(children))
    _walk_children(ctx, host_root, "", children, depth=0)
    return ctx


def _walk_children(ctx: WalkContext, host_dir: str, prefix: str, children: list[str], *, depth: int) -> None:
    for child in children:
        _visit(ctx, os.path.join(host_dir, child), join_image_path(prefix, child), depth=depth)


def _visit(ctx: WalkContext, host_path: str, name: str, *, depth: int) -> None:
    mode = _lstat(host_path).st_mode
    if stat.S_ISREG(mode):
        ctx.image.add(build_file_entry(host_path, name, ctx.cfg))
        logger.debug("%s: file", name)
    elif stat.S_ISDIR(mode):
        _enter_dir(ctx, host_path, name, depth=depth + 1)
    elif stat.S_ISLNK(mode):
        _visit_link(ctx, host_path, name, depth=depth)
    else:
        ctx.skipped += 1
        logger.warning("%s: unsupported type, skipping", host_path)


def _enter_dir(ctx: WalkContext, host_dir: str, name: str, *, depth: int, via_link: bool = False) -> None:
    _check_depth(ctx, depth, host_dir)
    entry, children = build_dir_entry(host_dir, name, ctx.cfg)
    ctx.image.add(entry)
    logger.debug("-> %s", name)
    if via_link:
        ctx.expansions.append((host_dir, name))
    _walk_children(ctx, host_dir, name, children, depth=depth)
    if via_link:
        ctx.expansions.pop()
    logger.debug("<- %s %d entries", name, entry.entries)


def _visit_link(ctx: WalkContext, host_link: str, name: str, *, depth: int) -> None:
    first = read_link_target(host_link)
    target = first
    while True:
        depth += 1
        _check_depth(ctx, depth, host_link)
        mode = _lstat(target).st_mode
        if not stat.S_ISLNK(mode):
            break
        target = read_link_target(target)

    if stat.S_ISDIR(mode):
        logger.debug("%s: link to directory %s, expanding", name, target)
        _enter_dir(ctx, target, name, depth=depth, via_link=True)
    elif stat.S_ISREG(mode):
        entry = build_link_entry(name, _link_image_path(ctx, first))
        ctx.image.add(entry)
        logger.debug("%s: link to %s", name, os.fsdecode(entry.target))
    else:
        ctx.skipped += 1
        logger.warning("%s: link to unsupported type %s, skipping", host_link, target)


def _link_image_path(ctx: WalkContext, host_target: str) -> str:
    """Image path of a link target, preferring the innermost expanded directory link."""
    for host_dir, prefix in reversed(ctx.expansions):
        if is_within(host_target, host_dir):
            return SEP + prefix + to_image_path(host_target, host_dir).rstrip(SEP)
    return to_image_path(host_target, ctx.root)


def _check_depth(ctx: WalkContext, depth: int, host_path: str) -> None:
    if depth > ctx.cfg.max_depth:
        raise DepthExceededError(f"Traversal deeper than {ctx.cfg.max_depth} levels at {host_path}")


def _lstat(path: str) -> os.stat_result:
    try:
        return os.lstat(path)
    except OSError as e:
        raise ImageIOError(f"Error getting file info for {path}: {e.strerror or e}") from e

"""Absolute path normalization for host and image paths."""

from __future__ import annotations

from dbffs.core.errors import EscapesRootError, InvalidPathError

SEP = "/"


def normalize_path(path: str) -> str:
    """Collapse `.` and `..` segments of an absolute path.

    Segments are resolved left to right: `.` is dropped, `..` pops the
    previous segment and empty segments from repeated separators are ignored.
    The host filesystem is never consulted, so symbolic links are not
    resolved.

    Parameters
    ----------
    path
        Absolute POSIX-style path.

    Returns
    -------
    str
        Shortest equivalent absolute path. A trailing separator is kept when
        the input had one and the result is not the root.

    Raises
    ------
    InvalidPathError
        If the path does not start with `/`.
    EscapesRootError
        If a `..` would move above the root.
    """
    if not path.startswith(SEP):
        raise InvalidPathError(f"Path must be absolute: {path!r}")

    parts: list[str] = []
    for segment in path.split(SEP):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise EscapesRootError(f"Path escapes the root: {path!r}")
            parts.pop()
            continue
        parts.append(segment)

    out = SEP + SEP.join(parts)
    if parts and path.endswith(SEP):
        out += SEP
    return out


def join_image_path(prefix: str, name: str) -> str:
    """Join a relative image directory prefix and an entry name."""
    return f"{prefix}{SEP}{name}" if prefix else name


def is_within(host_path: str, host_root: str) -> bool:
    """True if a host path is the root itself or lies below it."""
    path = normalize_path(host_path).rstrip(SEP)
    root = host_root.rstrip(SEP)
    return path == root or path.startswith(root + SEP)


def to_image_path(host_path: str, host_root: str) -> str:
    """Map a host path below the source root into the image namespace.

    Parameters
    ----------
    host_path
        Absolute host path; normalized before mapping.
    host_root
        Normalized absolute source root.

    Returns
    -------
    str
        Absolute image path (`/` for the root itself).

    Raises
    ------
    EscapesRootError
        If the path lies outside the source root.
    """
    path = normalize_path(host_path).rstrip(SEP)
    root = host_root.rstrip(SEP)
    if path == root:
        return SEP
    if not path.startswith(root + SEP):
        raise EscapesRootError(f"Path is outside the image root {host_root!r}: {host_path!r}")
    return path[len(root) :]

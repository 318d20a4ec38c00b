"""Path and permission normalization shared by every driver."""

import os
import posixpath
from typing import Union


def norm_path(path: Union[str, os.PathLike]) -> str:
    """Normalize a logical path: POSIX separators, no leading/trailing slash.

    Examples:
        "/a/b/" -> "a/b"
        "a\\b" -> "a/b" (on Windows)
    """
    text = os.fspath(path)
    if os.sep != "/":
        text = text.replace(os.sep, "/")
    return text.strip("/")


def safepath(path: Union[str, os.PathLike]) -> str:
    """Normalize a logical path and clamp it inside the root.

    ``.`` and ``..`` components are collapsed as if the path were rooted,
    so traversal can never climb above the root:

        "../../etc/passwd" -> "etc/passwd"
        "a/../../b" -> "b"
        "a//./b/" -> "a/b"

    Returns:
        Root-relative path; empty string for the root itself
    """
    clean = norm_path(path)
    if not clean:
        return ""
    return norm_path(posixpath.normpath("/" + clean))


def join_path(*parts: str) -> str:
    """Join logical path parts, skipping empty ones."""
    return safepath("/".join(p for p in parts if p))


def parent_path(path: str) -> str:
    """Logical parent of a path ("" for top-level entries)."""
    return posixpath.dirname(safepath(path))


def base_name(path: str) -> str:
    """Last component of a logical path."""
    return posixpath.basename(safepath(path))


def norm_mode(mode: Union[int, str]) -> int:
    """Normalize a permission to an int in the low 9 bits.

    Accepts an int (0o640) or an octal string ("640", "0640", "0o640").
    """
    if isinstance(mode, str):
        text = mode.strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        mode = int(text, 8)
    return int(mode) & 0o777

"""Atomic, scoped write primitive.

A Writer collects content in a private temporary file. Nothing is visible at
the destination until ``commit()`` hands the finished temp file to the
completion callback, which moves, renames or uploads it into place. Every exit
path (commit, exception, explicit discard) removes the temp file exactly once.

Usage::

    with Writer("report.csv", on_commit=atomic_replace(target)) as w:
        w.write(b"a,b\\n")

    # or, with a callable
    Writer("report.csv", on_commit=upload).perform(lambda w: w.write(data))
"""

from __future__ import annotations
import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

CommitCallback = Callable[[str], Any]


def _fsync_dir(path: Path) -> None:
    """Best-effort fsync of a directory entry (unsupported on Windows)."""
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY
        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)


def atomic_replace(target: Union[str, Path]) -> CommitCallback:
    """Build an ``on_commit`` callback that renames the temp file onto *target*.

    The temp file is fsynced before the rename so the destination is never
    observed with partial content after a crash.
    """
    target = Path(target)

    def _replace(tmppath: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(tmppath, "r+b") as f:
            os.fsync(f.fileno())
        os.replace(tmppath, target)
        _fsync_dir(target.parent)
        logger.debug("Committed %s", target)

    return _replace


class Writer:
    """Temp-file writer with explicit commit.

    Args:
        name: Name hint; the temp file's prefix and suffix derive from its basename
        tempdir: Directory for the temp file. Use the destination's directory
            when the callback renames, so the rename stays on one filesystem.
        perm: Optional permission bits applied to the temp file
        on_commit: Called with the temp file path on commit
        mode: File mode for the temp file ("w+b" or a text mode)
        encoding: Encoding for text modes

    File methods (write, read, seek, flush, ...) are delegated to the
    underlying temp file.
    """

    def __init__(
        self,
        name: Union[str, Path],
        *,
        tempdir: Optional[Union[str, Path]] = None,
        perm: Optional[int] = None,
        on_commit: Optional[CommitCallback] = None,
        mode: str = "w+b",
        encoding: Optional[str] = None,
    ):
        base = os.path.basename(str(name)) or "blob"
        stem, suffix = os.path.splitext(base)
        if tempdir is not None:
            Path(tempdir).mkdir(parents=True, exist_ok=True)
        self._file = tempfile.NamedTemporaryFile(
            mode=mode,
            encoding=encoding,
            prefix=f".{stem}.tmp-",
            suffix=suffix,
            dir=str(tempdir) if tempdir is not None else None,
            delete=False,
        )
        self._path: Optional[str] = self._file.name
        self._on_commit = on_commit
        if perm is not None:
            os.chmod(self._path, perm)

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        # Only called for attributes not found on the Writer itself
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._file, name)

    @property
    def path(self) -> Optional[str]:
        """Path of the temp file, None once committed or discarded."""
        return self._path

    commit_ref = path

    @property
    def closed(self) -> bool:
        return self._file.closed

    # ------------------------------------------------------------------
    # Scoped use
    # ------------------------------------------------------------------

    def perform(self, block: Optional[Callable[["Writer"], Any]] = None) -> Any:
        """Run *block* against this writer, then commit.

        Without a block the writer itself is returned for manual use. With a
        block, the temp file is discarded on every exit path and the commit
        callback never runs if the block raises.

        Returns:
            The commit result (True if a callback consumed the file)
        """
        if block is None:
            return self
        try:
            block(self)
            return self.commit()
        finally:
            self.discard()

    def __enter__(self) -> "Writer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.commit()
        finally:
            self.discard()

    # ------------------------------------------------------------------
    # Terminal actions
    # ------------------------------------------------------------------

    def commit(self) -> bool:
        """Close the temp file and hand it to the callback.

        Returns:
            False if no callback is registered (only closes), True otherwise
        """
        try:
            if self._path is None:
                return False
            self._file.close()
            callback = self._on_commit
            if callback is None:
                return False
            callback(self._path)
            return True
        finally:
            self.discard()

    def discard(self) -> None:
        """Drop the callback and delete the temp file. Safe to call repeatedly."""
        self._on_commit = None
        if not self._file.closed:
            self._file.close()
        path, self._path = self._path, None
        if path is not None:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)

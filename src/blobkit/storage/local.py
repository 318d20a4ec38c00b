"""Local disk storage driver."""

import contextlib
import logging
import mimetypes
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from ..errors import BlobNotFoundError, PathEscapeError
from ..paths import safepath
from ..storage_models import FileInfo
from .base import Driver

logger = logging.getLogger(__name__)


def _copy_atomic(src: Path, dest: Path) -> None:
    """Copy a file via temp file + rename so *dest* is never partial."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmppath = tempfile.mkstemp(prefix=f".{dest.name}.partial-", dir=dest.parent)
    os.close(fd)
    try:
        shutil.copy2(src, tmppath)
        os.replace(tmppath, dest)
    except Exception:
        # Clean up temp file on any failure
        with contextlib.suppress(OSError):
            os.unlink(tmppath)
        raise


class LocalDriver(Driver):
    """
    Local disk or mounted network drive.

    Logical paths map to files below ``work_dir``. Because the backend is the
    caller's own filesystem, Blob handles never cache: they read and write
    ``fullpath(path)`` directly.

    Semantics:
        - copy is recursive for directories and preserves metadata
        - move is an atomic rename on one filesystem, a copy+delete otherwise
        - delete is recursive for directories and idempotent
        - symlinks inside the root are followed; ones escaping it are rejected
    """

    protocol = "file"
    description = "Local disk or mounted network drive"
    local = True

    def __init__(self, work_dir: Union[str, Path], **kwargs):
        super().__init__(work_dir, **kwargs)
        self.work_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Path mapping
    # ------------------------------------------------------------------

    def fullpath(self, path: str) -> Path:
        """
        Map a logical path to a filesystem path below the root.

        Raises:
            PathEscapeError: If a symlink resolves outside the root
        """
        target = self.work_dir / safepath(path)
        root = self.work_dir.resolve()
        try:
            target.resolve().relative_to(root)
        except ValueError:
            raise PathEscapeError(str(path), str(self.work_dir))
        return target

    def relpath(self, fullpath: Union[str, Path]) -> str:
        """Inverse of fullpath: filesystem path back to a logical path."""
        return safepath(Path(fullpath).absolute().relative_to(self.work_dir).as_posix())

    def localpath(self, path: str) -> Path:
        return self.fullpath(path)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def exist(self, path: str) -> bool:
        return self.fullpath(path).exists()

    def info(self, path: str) -> FileInfo:
        full = self.fullpath(path)
        try:
            st = full.stat()
        except FileNotFoundError:
            raise BlobNotFoundError(safepath(path), self.protocol)
        content_type, _ = mimetypes.guess_type(full.name)
        return FileInfo(
            path=safepath(path),
            size=st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            mode=st.st_mode & 0o777,
            content_type=content_type,
        )

    def _children(self, path: str) -> List[Path]:
        full = self.fullpath(path)
        if not full.is_dir():
            return []
        return list(full.iterdir())

    def dirs(self, path: str = "") -> List[str]:
        names = [p.name for p in self._children(path) if p.is_dir()]
        return self.child_paths(path, names)

    def files(self, path: str = "") -> List[str]:
        names = [p.name for p in self._children(path) if p.is_file()]
        return self.child_paths(path, names)

    def mkpath(self, path: str) -> None:
        self.fullpath(path).mkdir(parents=True, exist_ok=True)

    def delete(self, path: str) -> None:
        full = self.fullpath(path)
        if full == self.work_dir:
            raise PathEscapeError(str(path), str(self.work_dir))
        if full.is_dir() and not full.is_symlink():
            shutil.rmtree(full)
        else:
            try:
                full.unlink()
            except FileNotFoundError:
                return
        logger.debug("Deleted %s", full)

    def copy(self, source: str, target: str) -> None:
        src = self.fullpath(source)
        dest = self.fullpath(target)
        if not src.exists():
            raise BlobNotFoundError(safepath(source), self.protocol)
        if src.is_dir():
            shutil.copytree(src, dest, dirs_exist_ok=True)
        else:
            _copy_atomic(src, dest)
        logger.debug("Copied %s -> %s", src, dest)

    def move(self, source: str, target: str) -> None:
        src = self.fullpath(source)
        dest = self.fullpath(target)
        if not src.exists():
            raise BlobNotFoundError(safepath(source), self.protocol)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.replace(src, dest)
        except OSError:
            # Cross-device or non-empty directory target
            shutil.move(str(src), str(dest))
        logger.debug("Moved %s -> %s", src, dest)

    def download(self, remote: str, local: Union[str, Path]) -> None:
        src = self.fullpath(remote)
        if not src.is_file():
            raise BlobNotFoundError(safepath(remote), self.protocol)
        _copy_atomic(src, Path(local))

    def upload(self, local: Union[str, Path], remote: str) -> None:
        _copy_atomic(Path(local), self.fullpath(remote))
        if self.perm is not None:
            os.chmod(self.fullpath(remote), self.perm)

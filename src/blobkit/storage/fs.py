"""Filesystem bucket driver.

Treats a directory tree as a remote bucket: blobs on it go through the full
localization protocol (download to the cache, upload on save) even though the
bucket happens to be reachable on disk. Useful for network shares that should
not be read in place, and for tests (avoids an Azurite dependency).
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..storage_models import FileInfo
from .base import Driver
from .local import LocalDriver

logger = logging.getLogger(__name__)


class FilesystemBucketDriver(Driver):
    """
    Non-local driver backed by a directory.

    Objects live below ``location``; localized copies live below
    ``work_dir``.
    """

    protocol = "fs"
    description = "Directory tree accessed as a remote bucket"
    local = False

    def __init__(
        self,
        location: Union[str, Path],
        work_dir: Optional[Union[str, Path]] = None,
        **kwargs,
    ):
        """
        Initialize filesystem bucket.

        Args:
            location: Bucket root directory (created if missing)
            work_dir: Local cache root (default: platform cache directory)
            **kwargs: Common driver options (encoding, perm)
        """
        if work_dir is None:
            from ..cache import default_work_dir
            work_dir = default_work_dir() / "fs"
        super().__init__(work_dir, **kwargs)
        self._bucket = LocalDriver(location, perm=self.perm)

    @property
    def location(self) -> Path:
        return self._bucket.work_dir

    def __repr__(self) -> str:
        return f"<{self.name} {self.protocol}:// location={self.location} work_dir={self.work_dir}>"

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def exist(self, path: str) -> bool:
        return self._bucket.exist(path)

    def info(self, path: str) -> FileInfo:
        return self._bucket.info(path)

    def dirs(self, path: str = "") -> List[str]:
        return self._bucket.dirs(path)

    def files(self, path: str = "") -> List[str]:
        return self._bucket.files(path)

    def mkpath(self, path: str) -> None:
        self._bucket.mkpath(path)

    def delete(self, path: str) -> None:
        self._bucket.delete(path)

    def copy(self, source: str, target: str) -> None:
        self._bucket.copy(source, target)

    def move(self, source: str, target: str) -> None:
        self._bucket.move(source, target)

    def download(self, remote: str, local: Union[str, Path]) -> None:
        logger.debug("Downloading fs://%s -> %s", remote, local)
        self._bucket.download(remote, local)

    def upload(self, local: Union[str, Path], remote: str) -> None:
        logger.debug("Uploading %s -> fs://%s", local, remote)
        self._bucket.upload(local, remote)

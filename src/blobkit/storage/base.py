"""Base class for storage drivers."""

from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Dict, FrozenSet, List, Optional, Union

from ..errors import DriverNotImplementedError
from ..paths import safepath
from ..storage_models import BlobOptions, DriverOptions, FileInfo

if TYPE_CHECKING:
    from ..blob import Blob


class Driver:
    """
    Backend-specific implementation of the storage contract.

    Subclasses set the class attributes ``protocol``, ``description`` and
    ``local`` and override every primitive. The base implementations raise
    DriverNotImplementedError: a driver missing a primitive is a conformance
    bug, never a runtime condition to work around.

    All path arguments are logical, root-relative paths. Implementations pass
    them through ``safepath`` before touching the backend.

    ``local`` drivers address the caller's filesystem directly, so Blob
    handles act on ``fullpath(path)`` without caching. Non-local drivers keep
    localized copies below ``work_dir``.
    """

    protocol: ClassVar[str] = ""
    description: ClassVar[str] = ""
    local: ClassVar[bool] = False

    # Backend-specific option names accepted in DriverOptions/BlobOptions extras
    extra_options: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(
        self,
        work_dir: Union[str, Path],
        *,
        encoding: Optional[str] = None,
        perm: Union[int, str, None] = None,
        **extras: str,
    ):
        """
        Initialize common driver state.

        Args:
            work_dir: Root for local drivers, cache root for non-local ones
            encoding: Text encoding (default: platform preferred encoding)
            perm: Default permission for created files (int or octal string)
            **extras: Backend-specific options declared in ``extra_options``

        Raises:
            InvalidOptionError: If an extra option is not declared
        """
        data = {"work_dir": work_dir, "perm": perm, "extras": extras}
        if encoding:
            data["encoding"] = encoding
        self.options = DriverOptions(**data).checked(self.extra_options, self.name)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def work_dir(self) -> Path:
        return self.options.work_dir

    @property
    def encoding(self) -> str:
        return self.options.encoding

    @property
    def perm(self) -> Optional[int]:
        return self.options.perm

    def __repr__(self) -> str:
        return f"<{self.name} {self.protocol}:// work_dir={self.work_dir}>"

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def blob(self, path: str, **options: str) -> "Blob":
        """Get a Blob handle for a logical path."""
        from ..blob import Blob

        parsed = BlobOptions.parse(options, self.extra_options, self.name)
        return Blob(driver=self, path=safepath(path), options=parsed)

    def resolve(self, path: str, **options: str) -> "Blob":
        """Registry hook: bind a resolved URL path and its query options."""
        return self.blob(path, **options)

    def localpath(self, path: str) -> Path:
        """Local file that holds the content of *path*.

        The real file for local drivers, the cache file otherwise.
        """
        return self.work_dir / safepath(path)

    def url(self, path: str) -> str:
        return f"{self.protocol}://{safepath(path)}"

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _missing(self, method: str) -> DriverNotImplementedError:
        return DriverNotImplementedError(self.name, method)

    def exist(self, path: str) -> bool:
        """Check whether an object or directory exists."""
        raise self._missing("exist")

    def info(self, path: str) -> FileInfo:
        """
        Get object metadata.

        Raises:
            BlobNotFoundError: If the object does not exist
        """
        raise self._missing("info")

    def mtime(self, path: str) -> datetime:
        return self.info(path).mtime

    def size(self, path: str) -> int:
        return self.info(path).size

    def dirs(self, path: str = "") -> List[str]:
        """Logical paths of the immediate subdirectories of *path*."""
        raise self._missing("dirs")

    def files(self, path: str = "") -> List[str]:
        """Logical paths of the objects directly under *path*."""
        raise self._missing("files")

    def mkpath(self, path: str) -> None:
        """Create *path* and its parents. Idempotent."""
        raise self._missing("mkpath")

    def delete(self, path: str) -> None:
        """Delete an object or directory. Deleting a missing path is not an error."""
        raise self._missing("delete")

    def copy(self, source: str, target: str) -> None:
        """Copy within this backend."""
        raise self._missing("copy")

    def move(self, source: str, target: str) -> None:
        """Move within this backend."""
        raise self._missing("move")

    def download(self, remote: str, local: Union[str, Path]) -> None:
        """Pull backend content at *remote* into the local file *local*."""
        raise self._missing("download")

    def upload(self, local: Union[str, Path], remote: str) -> None:
        """Push the local file *local* to *remote* in the backend."""
        raise self._missing("upload")

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def child_paths(path: str, names: List[str]) -> List[str]:
        """Turn child names into sorted logical paths under *path*."""
        base = safepath(path)
        return sorted(f"{base}/{n}" if base else n for n in names)

    def describe(self) -> Dict[str, str]:
        return {
            "protocol": self.protocol,
            "description": self.description,
            "local": str(self.local).lower(),
            "work_dir": str(self.work_dir),
        }

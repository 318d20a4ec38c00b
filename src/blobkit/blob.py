"""Blob handles and the lazy localization protocol.

A Blob is a handle on one logical path of one driver. For non-local drivers
the content is pulled into a cache file below the driver's ``work_dir`` the
first time it is needed ("localization") and pushed back after every local
write. For local drivers the handle acts on the real file and no caching
happens.

State machine (non-local drivers only)::

    NotLocalized --localize()--> Localized
         ^                          |
         +---- close()/delete() ----+

Every handle gets its own cache file, named after the object plus a per-handle
token, so closing one handle never pulls content out from under another.
Cache files are owned by the handle that created them. They are removed by
``close()`` (or leaving a ``with blob:`` block); a ``weakref.finalize`` hook
is installed as an advisory fallback for handles that are never closed.
Both paths go through a Cleaner that only acts in the creating process.
"""

from __future__ import annotations
import contextlib
import logging
import os
import shutil
import uuid
import weakref
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Callable, Iterator, Optional, Union

from .cache import cache_lock
from .constants import BUFSIZE, DEFAULT_PERM
from .errors import BlobNotFoundError
from .paths import base_name, join_path, parent_path, safepath
from .storage_models import BlobOptions, FileInfo
from .writer import Writer, atomic_replace

if TYPE_CHECKING:
    from .storage.base import Driver

logger = logging.getLogger(__name__)

Data = Union[bytes, str]
Fill = Callable[[Writer], Any]


class Cleaner:
    """Removes a cache file, but only in the process that created it.

    A forked child inherits the parent's Blob objects (and their finalizers);
    the pid check keeps it from deleting cache files it does not own.
    """

    def __init__(self, localpath: Union[str, Path]):
        self.pid = os.getpid()
        self.localpath = str(localpath)

    def __call__(self) -> bool:
        if os.getpid() != self.pid:
            return False
        path = self.localpath
        if os.path.islink(path) or not os.path.isfile(path):
            return False
        try:
            os.unlink(path)
        except FileNotFoundError:
            return False
        logger.debug("Removed cache file %s", path)
        return True


class Blob:
    """Reference to a single object in a storage driver.

    Args:
        driver: Driver the handle is bound to (shared, not owned)
        path: Logical path within the driver's namespace
        options: Per-handle options (encoding, perm, driver extras)

    Usage::

        with registry.resolve("bucket://reports/q1.csv") as blob:
            blob.writer("a,b\\n1,2\\n")
            text = blob.reader(mode="r")
    """

    def __init__(self, driver: "Driver", path: str, options: Optional[BlobOptions] = None):
        self.driver = driver
        self.options = options or BlobOptions()
        self._path = safepath(path)
        self._token = uuid.uuid4().hex[:12]
        self._localfile = self._cache_path(self._path)
        self._localized = False
        self._cleaner: Optional[Cleaner] = None
        self._finalizer: Optional[weakref.finalize] = None
        if not driver.local:
            self._cleaner = Cleaner(self._localfile)
            self._finalizer = weakref.finalize(self, self._cleaner)

    def __repr__(self) -> str:
        return f"<Blob {self.url} localized={self._localized}>"

    def _cache_path(self, path: str) -> Path:
        """Local file backing *path* for this handle.

        The real file for local drivers. For non-local drivers a file below
        ``work_dir`` that no other handle uses, e.g. ``reports/q1.3f9a0c.csv``.
        """
        if self.driver.local:
            return self.driver.localpath(path)
        stem, suffix = os.path.splitext(base_name(path) or "blob")
        return self.driver.localpath(parent_path(path)) / f"{stem}.{self._token}{suffix}"

    def _has_cache(self) -> bool:
        return self._localized and self._localfile.is_file()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def localfile(self) -> Path:
        return self._localfile

    @property
    def localized(self) -> bool:
        return self._localized

    @property
    def local(self) -> bool:
        return self.driver.local

    @property
    def protocol(self) -> str:
        return self.driver.protocol

    @property
    def url(self) -> str:
        return self.driver.url(self._path)

    @property
    def encoding(self) -> str:
        return self.options.encoding or self.driver.encoding

    @property
    def perm(self) -> int:
        if self.options.perm is not None:
            return self.options.perm
        if self.driver.perm is not None:
            return self.driver.perm
        return DEFAULT_PERM

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def exist(self) -> bool:
        return self.driver.exist(self._path)

    def info(self) -> FileInfo:
        return self.driver.info(self._path)

    def mtime(self):
        return self.driver.mtime(self._path)

    def size(self) -> int:
        return self.driver.size(self._path)

    def delete(self) -> None:
        """Delete the object in the backend and drop any local cache."""
        self.driver.delete(self._path)
        self._drop_cache()

    # ------------------------------------------------------------------
    # Localization
    # ------------------------------------------------------------------

    def localize(self, force: bool = False) -> bool:
        """Pull remote content into the local cache file.

        Returns:
            True if a download happened

        Raises:
            BlobNotFoundError: If the object does not exist in the backend
        """
        if self.driver.local:
            return False
        if self._has_cache() and not force:
            return False
        if not self.exist():
            raise BlobNotFoundError(self._path, self.protocol)

        target = self._localfile
        target.parent.mkdir(parents=True, exist_ok=True)

        def fetch(w: Writer) -> None:
            w.close()
            self.driver.download(self._path, w.path)

        with cache_lock(self.driver.work_dir, self._path):
            Writer(target.name, tempdir=target.parent, on_commit=atomic_replace(target)).perform(fetch)

        self._localized = True
        logger.debug("Localized %s -> %s", self.url, target)
        return True

    def save(self) -> bool:
        """Push the local cache file to the backend.

        Returns:
            True if an upload happened (never for local drivers or
            handles holding no local content)
        """
        if self.driver.local or not self._has_cache():
            return False
        parent = parent_path(self._path)
        if parent:
            self.driver.mkpath(parent)
        self.driver.upload(self._localfile, self._path)
        logger.debug("Saved %s -> %s", self._localfile, self.url)
        return True

    def _require(self) -> None:
        """Make content readable locally or fail with BlobNotFoundError."""
        if self.driver.local:
            if not self._localfile.is_file():
                raise BlobNotFoundError(self._path, self.protocol)
        else:
            self.localize()

    def _seed(self) -> None:
        """Pull existing content before an in-place modification."""
        if not self.driver.local and not self._has_cache() and self.exist():
            self.localize()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def open(self, mode: str = "rb", encoding: Optional[str] = None, **kwargs) -> Iterator[IO]:
        """Open the local file.

        Read modes localize first. Writing modes ("w", "a", "x", "+") save to
        the backend after the block completes without error. Unlike
        ``writer``, writes through ``open`` are not atomic locally.
        """
        writing = any(c in mode for c in "wax+")
        if not writing:
            self._require()
        else:
            if "a" in mode or "+" in mode:
                self._seed()
            self._localfile.parent.mkdir(parents=True, exist_ok=True)
        if "b" not in mode:
            kwargs["encoding"] = encoding or self.encoding

        with open(self._localfile, mode, **kwargs) as f:
            yield f

        if writing:
            self._mark_written()
            self.save()

    def reader(self, mode: str = "rb", encoding: Optional[str] = None) -> Data:
        """Read the whole content (bytes, or text for mode "r").

        Raises:
            BlobNotFoundError: If the object does not exist
        """
        with self.open(mode, encoding=encoding) as f:
            return f.read()

    def chunks(self, size: int = BUFSIZE) -> Iterator[bytes]:
        """Yield the content in chunks of at most *size* bytes."""
        with self.open("rb") as f:
            yield from iter(lambda: f.read(size), b"")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _encode(self, data: Data) -> bytes:
        return data.encode(self.encoding) if isinstance(data, str) else data

    def _mark_written(self) -> None:
        # Local content now supersedes the backend copy
        if not self.driver.local:
            self._localized = True

    def _write_local(self, data: Optional[Data], fill: Optional[Fill], append: bool) -> None:
        target = self._localfile
        if append:
            self._seed()

        def produce(w: Writer) -> None:
            if append and target.is_file():
                with open(target, "rb") as existing:
                    shutil.copyfileobj(existing, w, BUFSIZE)
            if data is not None:
                w.write(self._encode(data))
            if fill is not None:
                fill(w)

        writer = Writer(target.name, tempdir=target.parent, perm=self.perm, on_commit=atomic_replace(target))
        writer.perform(produce)
        self._mark_written()

    def writer(self, data: Optional[Data] = None, *, fill: Optional[Fill] = None) -> bool:
        """Atomically replace the content, then save.

        Args:
            data: Content to write (str is encoded with the handle's encoding)
            fill: Called with the Writer to stream content into it

        Returns:
            True if the content was uploaded to a non-local backend
        """
        self._write_local(data, fill, append=False)
        return self.save()

    def append(self, data: Optional[Data] = None, *, fill: Optional[Fill] = None) -> bool:
        """Atomically append to the content, then save."""
        self._write_local(data, fill, append=True)
        return self.save()

    def touch(self) -> bool:
        """Create an empty object if none exists.

        Returns:
            True if the object was created
        """
        if self.exist():
            return False
        self.writer(b"")
        return True

    def transfer(self, target: Union["Blob", str, None]) -> bool:
        """Copy this object.

        A string target is a path in the same driver (the backend copies
        server-side where it can). A Blob target is filled by streaming this
        object in BUFSIZE chunks, which works across drivers.

        Returns:
            False if there is no target
        """
        if target is None:
            return False
        if isinstance(target, str):
            self.driver.copy(self._path, safepath(target))
            return True
        if isinstance(target, Blob):
            def pump(w: Writer) -> None:
                for chunk in self.chunks():
                    w.write(chunk)

            target.writer(fill=pump)
            logger.debug("Transferred %s -> %s", self.url, target.url)
            return True
        raise TypeError(f"Cannot transfer to {type(target).__name__}")

    # ------------------------------------------------------------------
    # Renaming
    # ------------------------------------------------------------------

    def rename(self, new_name: str) -> None:
        """Rename within the current directory."""
        self._do_move(join_path(parent_path(self._path), base_name(new_name)))

    def move(self, new_dir: str) -> None:
        """Move to another directory, keeping the name."""
        self._do_move(join_path(new_dir, base_name(self._path)))

    def _do_move(self, new_path: str) -> None:
        new_path = safepath(new_path)
        new_localfile = self._cache_path(new_path)
        if self.driver.local:
            self._move_local(self._localfile, new_localfile)
        else:
            moved_cache = False
            if self._has_cache():
                self._move_local(self._localfile, new_localfile)
                moved_cache = True
            try:
                self.driver.move(self._path, new_path)
            except Exception:
                # Put the cache back so the handle stays consistent
                if moved_cache:
                    self._move_local(new_localfile, self._localfile)
                raise
        self._path = new_path
        self._localfile = new_localfile
        if self._cleaner is not None:
            self._cleaner.localpath = str(new_localfile)

    @staticmethod
    def _move_local(source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _drop_cache(self) -> None:
        if self._cleaner is not None:
            self._cleaner()
        self._localized = False

    def close(self) -> None:
        """Remove the local cache file (non-local drivers). Idempotent.

        The handle stays usable: the next read localizes again.
        """
        self._drop_cache()

    dispose = close

    def __enter__(self) -> "Blob":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

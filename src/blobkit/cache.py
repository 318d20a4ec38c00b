"""Local cache directory helpers.

Non-local drivers keep localized copies of remote objects below their
``work_dir``. This module resolves the default location of that directory,
serializes concurrent localizations of the same object across processes,
and sweeps cache files abandoned by processes that never cleaned up.

Technical Considerations:
- Lock files live under ``<work_dir>/.locks`` keyed by a hash of the logical
  path, so they never collide with cached object names. Sweeping never
  touches them
- Sweeping is explicit and best-effort; files that cannot be removed are
  logged and skipped
"""

from __future__ import annotations
import contextlib
import hashlib
import logging
import os
import time
from pathlib import Path
from typing import Iterator, Optional, Union

import platformdirs
import portalocker

from .constants import APP_NAME, LOCK_DIR, LOCK_TIMEOUT, WORK_DIR_ENV

logger = logging.getLogger(__name__)


def default_work_dir() -> Path:
    """Get the cache directory for non-local drivers.

    ``BLOBKIT_WORK_DIR`` wins; otherwise the platform cache directory
    (e.g. ~/.cache/blobkit on Linux).
    """
    override = os.environ.get(WORK_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_cache_dir(APP_NAME, APP_NAME))


def lock_path_for(work_dir: Path, key: Union[str, Path]) -> Path:
    """Lock file guarding one object (keyed by its logical path)."""
    digest = hashlib.sha256(str(key).encode("utf-8")).hexdigest()
    return Path(work_dir) / LOCK_DIR / f"{digest}.lock"


@contextlib.contextmanager
def cache_lock(work_dir: Path, key: Union[str, Path], timeout: float = LOCK_TIMEOUT) -> Iterator[None]:
    """Hold an exclusive cross-process lock while fetching one object."""
    lock_path = lock_path_for(work_dir, key)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with portalocker.Lock(str(lock_path), "w", timeout=timeout):
        yield


def sweep_cache(work_dir: Path, keep_recent_hours: float = 24, now: Optional[float] = None) -> int:
    """Remove cache files that have not been touched recently.

    Args:
        work_dir: Cache root of a non-local driver
        keep_recent_hours: Keep files modified within this many hours
        now: Reference time (defaults to time.time())

    Returns:
        Number of files removed

    Note:
        Only run this against a directory that is used exclusively as a cache.
        Live Blob handles may still reference files older than the cutoff.
    """
    root = Path(work_dir)
    if not root.is_dir():
        return 0

    cutoff = (now if now is not None else time.time()) - keep_recent_hours * 3600
    removed = 0

    locks = root / LOCK_DIR
    for path in root.rglob("*"):
        if locks in path.parents:
            continue
        if not path.is_file() or path.is_symlink():
            continue
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
                logger.debug("Removed stale cache file: %s", path)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)

    # Drop directories left empty, deepest first
    for path in sorted((p for p in root.rglob("*") if p.is_dir() and p != locks), reverse=True):
        with contextlib.suppress(OSError):
            path.rmdir()

    return removed

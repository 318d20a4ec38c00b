"""Test cache directory helpers."""

import os
import threading
import time
from pathlib import Path

import pytest

from blobkit.cache import cache_lock, default_work_dir, lock_path_for, sweep_cache


def _age(path: Path, hours: float) -> None:
    stamp = time.time() - hours * 3600
    os.utime(path, (stamp, stamp))


class TestDefaultWorkDir:
    """Test cache root resolution."""

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BLOBKIT_WORK_DIR", str(tmp_path / "override"))
        assert default_work_dir() == tmp_path / "override"

    def test_platform_default(self, monkeypatch):
        monkeypatch.delenv("BLOBKIT_WORK_DIR")
        assert "blobkit" in str(default_work_dir())

    def test_blank_env_ignored(self, monkeypatch):
        monkeypatch.setenv("BLOBKIT_WORK_DIR", "  ")
        assert "blobkit" in str(default_work_dir())


class TestCacheLock:
    """Test per-object locking."""

    def test_lock_path_stable_and_distinct(self, tmp_path):
        a1 = lock_path_for(tmp_path, "dir/a.txt")
        a2 = lock_path_for(tmp_path, "dir/a.txt")
        b = lock_path_for(tmp_path, "dir/b.txt")
        assert a1 == a2
        assert a1 != b
        assert a1.parent == tmp_path / ".locks"
        assert a1.suffix == ".lock"

    def test_lock_serializes(self, tmp_path):
        """Two holders of the same cache lock never overlap."""
        active = []
        overlaps = []

        def worker():
            with cache_lock(tmp_path, "shared.bin"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.05)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []


class TestSweepCache:
    """Test removal of stale cache files."""

    def test_removes_only_old_files(self, tmp_path):
        old = tmp_path / "dir" / "old.bin"
        new = tmp_path / "new.bin"
        old.parent.mkdir()
        old.write_bytes(b"o")
        new.write_bytes(b"n")
        _age(old, 48)

        assert sweep_cache(tmp_path, keep_recent_hours=24) == 1
        assert not old.exists()
        assert new.exists()
        # Emptied directory pruned
        assert not (tmp_path / "dir").exists()

    def test_missing_root(self, tmp_path):
        assert sweep_cache(tmp_path / "nope") == 0

    def test_explicit_now(self, tmp_path):
        f = tmp_path / "f.bin"
        f.write_bytes(b"x")
        assert sweep_cache(tmp_path, keep_recent_hours=1, now=time.time() + 7200) == 1

    def test_symlinks_skipped(self, tmp_path):
        outside = tmp_path / "outside.bin"
        outside.write_bytes(b"x")
        _age(outside, 48)
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "link.bin").symlink_to(outside)

        assert sweep_cache(cache, keep_recent_hours=24) == 0
        assert outside.exists()

    def test_unremovable_file_logged(self, tmp_path, caplog):
        f = tmp_path / "stuck.bin"
        f.write_bytes(b"x")
        _age(f, 48)

        original_unlink = Path.unlink

        def failing_unlink(self, *args, **kwargs):
            if self.name == "stuck.bin":
                raise PermissionError("read-only")
            return original_unlink(self, *args, **kwargs)

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(Path, "unlink", failing_unlink)
            assert sweep_cache(tmp_path, keep_recent_hours=24) == 0

        assert f.exists()
        assert "Could not remove" in caplog.text

    def test_sweeps_abandoned_blob_cache(self, bucket_driver):
        """Cache files left by a handle that never closed are swept."""
        blob = bucket_driver.blob("abandoned.txt")
        blob.writer(b"x")
        _age(blob.localfile, 72)

        assert sweep_cache(bucket_driver.work_dir) == 1
        assert not blob.localfile.exists()

    def test_lock_files_kept(self, tmp_path):
        """Lock files survive a sweep even when old."""
        with cache_lock(tmp_path, "data/report.csv"):
            pass
        lock = lock_path_for(tmp_path, "data/report.csv")
        _age(lock, 72)
        stale = tmp_path / "data" / "old.csv"
        stale.parent.mkdir()
        stale.write_bytes(b"x")
        _age(stale, 72)

        assert sweep_cache(tmp_path, keep_recent_hours=24) == 1
        assert lock.exists()
        assert not stale.exists()

    def test_held_lock_survives_sweep(self, tmp_path):
        with cache_lock(tmp_path, "busy.bin"):
            _age(lock_path_for(tmp_path, "busy.bin"), 72)
            sweep_cache(tmp_path, keep_recent_hours=24)
            assert lock_path_for(tmp_path, "busy.bin").exists()

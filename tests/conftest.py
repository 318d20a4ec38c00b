"""Shared test fixtures and utilities."""

from pathlib import Path
from unittest.mock import patch

import pytest

from blobkit.registry import Registry
from blobkit.storage.fs import FilesystemBucketDriver
from blobkit.storage.local import LocalDriver


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    """Keep default cache directories inside tmp_path."""
    cache = tmp_path / "default-cache"
    monkeypatch.setenv("BLOBKIT_WORK_DIR", str(cache))
    monkeypatch.delenv("BLOBKIT_CONFIG", raising=False)
    return cache


@pytest.fixture
def local_driver(tmp_path):
    """LocalDriver rooted at tmp_path/root."""
    return LocalDriver(tmp_path / "root")


@pytest.fixture
def bucket_driver(tmp_path):
    """Non-local driver: bucket in tmp_path/bucket, cache in tmp_path/cache."""
    return FilesystemBucketDriver(tmp_path / "bucket", work_dir=tmp_path / "cache")


@pytest.fixture
def registry(local_driver, bucket_driver):
    """Registry with "disk" (local) and "bucket" (non-local) schemes."""
    reg = Registry()
    reg.register("disk", local_driver)
    reg.register("bucket", bucket_driver)
    return reg


@pytest.fixture
def count_downloads(bucket_driver):
    """Patch bucket_driver.download and expose the call mock."""
    original = bucket_driver.download
    with patch.object(bucket_driver, "download", side_effect=original) as mock:
        yield mock


@pytest.fixture
def write_file(tmp_path):
    """Factory fixture to write files relative to tmp_path."""
    def _write(path: str, content: str = "test content") -> Path:
        file_path = tmp_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        return file_path
    return _write

"""Test AzureDriver against a mocked BlobServiceClient."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

pytest.importorskip("azure.storage.blob")

from azure.core.exceptions import ResourceNotFoundError  # noqa: E402

from blobkit.errors import BlobNotFoundError, ConfigError, StorageError  # noqa: E402
from blobkit.storage.azure import AzureDriver  # noqa: E402


def _item(name):
    return SimpleNamespace(name=name)


@pytest.fixture
def client():
    """BlobServiceClient mock with one container and per-key blob clients."""
    service = MagicMock()
    container = service.get_container_client.return_value
    container.exists.return_value = True
    blobs = {}

    def get_blob_client(container, blob):
        if blob not in blobs:
            bc = MagicMock(name=f"blob:{blob}")
            bc.exists.return_value = False
            bc.url = f"https://acct.blob.core.windows.net/{container}/{blob}"
            blobs[blob] = bc
        return blobs[blob]

    service.get_blob_client.side_effect = get_blob_client
    service.blobs = blobs
    return service


@pytest.fixture
def driver(client, tmp_path):
    return AzureDriver("data", prefix="tenant", work_dir=tmp_path / "cache", client=client)


class TestAzureSetup:
    """Test construction."""

    def test_identity(self, driver, tmp_path):
        assert driver.protocol == "azure"
        assert driver.local is False
        assert driver.work_dir == tmp_path / "cache"
        assert driver.prefix == "tenant"

    def test_creates_missing_container(self, client, tmp_path):
        container = client.get_container_client.return_value
        container.exists.return_value = False
        AzureDriver("data", work_dir=tmp_path, client=client)
        container.create_container.assert_called_once()

    def test_container_required(self, client, tmp_path):
        with pytest.raises(ConfigError, match="container"):
            AzureDriver("", work_dir=tmp_path, client=client)

    def test_connection_string_required(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AZURE_STORAGE_CONNECTION_STRING", raising=False)
        with pytest.raises(ConfigError, match="AZURE_STORAGE_CONNECTION_STRING"):
            AzureDriver("data", work_dir=tmp_path)

    def test_default_work_dir(self, client, isolated_cache):
        driver = AzureDriver("data", client=client)
        assert driver.work_dir == isolated_cache / "azure" / "data"


class TestAzurePrimitives:
    """Test primitive operations."""

    def test_keys_include_prefix(self, driver, client):
        driver.exist("/a/b.txt")
        client.get_blob_client.assert_called_with(container="data", blob="tenant/a/b.txt")

    def test_exist_blob(self, driver, client):
        driver._blob_client("a.txt").exists.return_value = True
        assert driver.exist("a.txt")

    def test_exist_prefix(self, driver, client):
        container = client.get_container_client.return_value
        container.walk_blobs.return_value = iter([_item("tenant/dir/x.txt")])
        assert driver.exist("dir")
        container.walk_blobs.assert_called_with(name_starts_with="tenant/dir/", delimiter="/")

    def test_missing(self, driver, client):
        client.get_container_client.return_value.walk_blobs.return_value = iter([])
        assert not driver.exist("nope")

    def test_info(self, driver):
        bc = driver._blob_client("r.csv")
        bc.exists.return_value = True
        bc.get_blob_properties.return_value = SimpleNamespace(
            size=12,
            last_modified=datetime(2024, 5, 1, 12, 0),
            content_settings=SimpleNamespace(content_type="text/csv"),
            metadata={"owner": "ops"},
        )

        info = driver.info("r.csv")
        assert info.path == "r.csv"
        assert info.size == 12
        assert info.mtime.tzinfo == timezone.utc
        assert info.content_type == "text/csv"
        assert info.metadata == {"owner": "ops"}

    def test_info_missing(self, driver):
        with pytest.raises(BlobNotFoundError):
            driver.info("missing")

    def test_listing(self, driver, client):
        client.get_container_client.return_value.walk_blobs.side_effect = lambda **kw: iter([
            _item("tenant/top/sub/"),
            _item("tenant/top/b.txt"),
            _item("tenant/top/a.txt"),
        ])
        assert driver.dirs("top") == ["top/sub"]
        assert driver.files("top") == ["top/a.txt", "top/b.txt"]

    def test_mkpath_noop(self, driver, client):
        driver.mkpath("a/b")
        client.get_container_client.return_value.upload_blob.assert_not_called()

    def test_delete_blob(self, driver, client):
        container = client.get_container_client.return_value
        driver.delete("a.txt")
        container.delete_blob.assert_called_once_with("tenant/a.txt")

    def test_delete_prefix(self, driver, client):
        container = client.get_container_client.return_value
        container.delete_blob.side_effect = [ResourceNotFoundError("no blob"), None, None]
        container.list_blobs.return_value = [_item("tenant/d/1"), _item("tenant/d/2")]

        driver.delete("d")
        container.list_blobs.assert_called_once_with(name_starts_with="tenant/d/")
        assert container.delete_blob.call_count == 3

    def test_copy(self, driver):
        source = driver._blob_client("a.txt")
        source.exists.return_value = True
        target = driver._blob_client("b.txt")
        target.get_blob_properties.return_value = SimpleNamespace(copy=SimpleNamespace(status="success"))

        driver.copy("a.txt", "b.txt")
        target.start_copy_from_url.assert_called_once_with(source.url)

    def test_copy_missing(self, driver):
        with pytest.raises(BlobNotFoundError):
            driver.copy("missing", "b.txt")

    def test_move(self, driver):
        source = driver._blob_client("a.txt")
        source.exists.return_value = True
        target = driver._blob_client("b.txt")
        target.get_blob_properties.return_value = SimpleNamespace(copy=SimpleNamespace(status="success"))

        driver.move("a.txt", "b.txt")
        source.delete_blob.assert_called_once()

    @pytest.mark.parametrize("status", ["failed", "aborted"])
    def test_copy_unsuccessful_status_raises(self, driver, status):
        source = driver._blob_client("a.txt")
        source.exists.return_value = True
        target = driver._blob_client("b.txt")
        target.get_blob_properties.return_value = SimpleNamespace(
            copy=SimpleNamespace(status=status, status_description="500 InternalError"),
        )

        with pytest.raises(StorageError, match=status):
            driver.copy("a.txt", "b.txt")

    def test_copy_waits_while_pending(self, driver, monkeypatch):
        monkeypatch.setattr("blobkit.storage.azure.time.sleep", lambda s: None)
        source = driver._blob_client("a.txt")
        source.exists.return_value = True
        target = driver._blob_client("b.txt")
        target.get_blob_properties.side_effect = [
            SimpleNamespace(copy=SimpleNamespace(status="pending")),
            SimpleNamespace(copy=SimpleNamespace(status="failed")),
        ]

        with pytest.raises(StorageError):
            driver.copy("a.txt", "b.txt")
        assert target.get_blob_properties.call_count == 2

    def test_move_keeps_source_when_copy_fails(self, driver):
        source = driver._blob_client("a.txt")
        source.exists.return_value = True
        target = driver._blob_client("b.txt")
        target.get_blob_properties.return_value = SimpleNamespace(copy=SimpleNamespace(status="failed"))

        with pytest.raises(StorageError):
            driver.move("a.txt", "b.txt")
        source.delete_blob.assert_not_called()

    def test_download(self, driver, tmp_path):
        bc = driver._blob_client("a.txt")
        bc.exists.return_value = True
        bc.download_blob.return_value.readinto.side_effect = lambda f: f.write(b"remote")

        dest = tmp_path / "out" / "a.txt"
        driver.download("a.txt", dest)
        assert dest.read_bytes() == b"remote"

    def test_upload(self, driver, tmp_path):
        src = tmp_path / "up.json"
        src.write_text("{}")
        bc = driver._blob_client("dir/up.json")

        driver.upload(src, "dir/up.json")
        _, kwargs = bc.upload_blob.call_args
        assert kwargs["overwrite"] is True
        assert kwargs["content_settings"].content_type == "application/json"


class TestAzureBlob:
    """Test Blob handles on the Azure driver."""

    def test_localize_and_close(self, driver):
        bc = driver._blob_client("a.txt")
        bc.exists.return_value = True
        bc.download_blob.return_value.readinto.side_effect = lambda f: f.write(b"cloud")

        with driver.blob("a.txt") as blob:
            assert blob.reader() == b"cloud"
            assert blob.localfile.parent == driver.work_dir
            assert blob.localfile.exists()
        assert not blob.localfile.exists()

"""Azure blob storage driver."""

import logging
import mimetypes
import os
import time
from datetime import timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from ..errors import BlobNotFoundError, ConfigError, StorageError
from ..paths import safepath
from ..storage_models import EPOCH, FileInfo
from .base import Driver

logger = logging.getLogger(__name__)

CONNECTION_STRING_ENV = "AZURE_STORAGE_CONNECTION_STRING"


class AzureDriver(Driver):
    """
    Azure Blob Storage driver.

    Logical paths map to blob names ``<prefix>/<path>`` inside one container.
    The namespace is flat: directories exist only as shared name prefixes,
    so ``mkpath`` is a no-op and ``dirs`` lists prefixes.
    """

    protocol = "azure"
    description = "Azure Blob Storage container"
    local = False

    def __init__(
        self,
        container: str,
        connection_string: Optional[str] = None,
        prefix: str = "",
        work_dir: Optional[Union[str, Path]] = None,
        client: Any = None,
        **kwargs,
    ):
        """
        Initialize Azure driver.

        Args:
            container: Container name (created if missing)
            connection_string: Azure Storage connection string
                (default: AZURE_STORAGE_CONNECTION_STRING)
            prefix: Optional key prefix
            work_dir: Local cache root (default: platform cache directory)
            client: Pre-built BlobServiceClient (skips connection setup)
            **kwargs: Common driver options (encoding, perm)

        Raises:
            ConfigError: If no container or credentials are configured
        """
        if not container:
            raise ConfigError("container required for Azure blob storage")
        if work_dir is None:
            from ..cache import default_work_dir
            work_dir = default_work_dir() / "azure" / container
        super().__init__(work_dir, **kwargs)

        if client is None:
            try:
                from azure.storage.blob import BlobServiceClient
            except ImportError:
                raise ImportError(
                    "azure-storage-blob required for Azure blob storage. "
                    "Install with: pip install 'blobkit[azure]'"
                )
            connection_string = connection_string or os.environ.get(CONNECTION_STRING_ENV)
            if not connection_string:
                raise ConfigError(
                    f"Set {CONNECTION_STRING_ENV} or pass connection_string "
                    f"for Azure blob storage"
                )
            client = BlobServiceClient.from_connection_string(connection_string)

        self.client = client
        self.container = container
        self.prefix = safepath(prefix)

        # Ensure container exists
        container_client = self.client.get_container_client(container)
        if not container_client.exists():
            container_client.create_container()
        self._container_client = container_client

    def __repr__(self) -> str:
        return f"<{self.name} azure://{self.container}/{self.prefix} work_dir={self.work_dir}>"

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    def _key(self, path: str) -> str:
        key = safepath(path)
        if self.prefix:
            return f"{self.prefix}/{key}" if key else self.prefix
        return key

    def _logical(self, key: str) -> str:
        key = key.rstrip("/")
        if self.prefix:
            key = key[len(self.prefix):]
        return safepath(key)

    def _blob_client(self, path: str):
        return self.client.get_blob_client(container=self.container, blob=self._key(path))

    def _walk(self, path: str) -> List[Any]:
        key = self._key(path)
        start = f"{key}/" if key else ""
        return list(self._container_client.walk_blobs(name_starts_with=start, delimiter="/"))

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def exist(self, path: str) -> bool:
        if self._blob_client(path).exists():
            return True
        # A "directory" exists when some blob shares its prefix
        return len(self._walk(path)) > 0

    def info(self, path: str) -> FileInfo:
        blob_client = self._blob_client(path)
        if not blob_client.exists():
            raise BlobNotFoundError(safepath(path), self.protocol)
        props = blob_client.get_blob_properties()
        settings = getattr(props, "content_settings", None)
        mtime = getattr(props, "last_modified", None) or EPOCH
        if mtime.tzinfo is None:
            mtime = mtime.replace(tzinfo=timezone.utc)
        return FileInfo(
            path=safepath(path),
            size=props.size or 0,
            mtime=mtime,
            content_type=getattr(settings, "content_type", None),
            metadata=dict(props.metadata or {}),
        )

    def dirs(self, path: str = "") -> List[str]:
        # walk_blobs yields BlobPrefix entries (names ending in "/") for subdirectories
        return sorted(self._logical(item.name) for item in self._walk(path) if item.name.endswith("/"))

    def files(self, path: str = "") -> List[str]:
        return sorted(self._logical(item.name) for item in self._walk(path) if not item.name.endswith("/"))

    def mkpath(self, path: str) -> None:
        # Flat namespace: prefixes come into being with their first blob
        return None

    def delete(self, path: str) -> None:
        from azure.core.exceptions import ResourceNotFoundError

        key = self._key(path)
        try:
            self._container_client.delete_blob(key)
            logger.debug("Deleted azure://%s/%s", self.container, key)
            return
        except ResourceNotFoundError:
            pass
        # Not a blob: delete everything under the prefix (no-op when empty)
        for item in self._container_client.list_blobs(name_starts_with=f"{key}/"):
            self._container_client.delete_blob(item.name)
            logger.debug("Deleted azure://%s/%s", self.container, item.name)

    def copy(self, source: str, target: str) -> None:
        source_client = self._blob_client(source)
        if not source_client.exists():
            raise BlobNotFoundError(safepath(source), self.protocol)
        target_client = self._blob_client(target)
        target_client.start_copy_from_url(source_client.url)

        # Server-side copy may complete asynchronously
        props = target_client.get_blob_properties()
        while getattr(props.copy, "status", None) == "pending":
            time.sleep(0.5)
            props = target_client.get_blob_properties()
        status = getattr(props.copy, "status", None)
        if status != "success":
            detail = getattr(props.copy, "status_description", None) or "no details"
            raise StorageError(
                f"Copy azure://{self.container}/{self._key(source)} -> {self._key(target)} "
                f"ended with status {status}: {detail}"
            )
        logger.debug("Copied azure://%s/%s -> %s", self.container, self._key(source), self._key(target))

    def move(self, source: str, target: str) -> None:
        self.copy(source, target)
        self._blob_client(source).delete_blob()

    def download(self, remote: str, local: Union[str, Path]) -> None:
        blob_client = self._blob_client(remote)
        if not blob_client.exists():
            raise BlobNotFoundError(safepath(remote), self.protocol)

        dest = Path(local)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with open(dest, "wb") as f:
            blob_client.download_blob().readinto(f)
        logger.debug("Downloaded azure://%s/%s -> %s", self.container, self._key(remote), dest)

    def upload(self, local: Union[str, Path], remote: str) -> None:
        from azure.storage.blob import ContentSettings

        content_type, _ = mimetypes.guess_type(str(remote))
        blob_client = self._blob_client(remote)
        with open(local, "rb") as f:
            blob_client.upload_blob(
                f,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        logger.debug("Uploaded %s -> azure://%s/%s", local, self.container, self._key(remote))

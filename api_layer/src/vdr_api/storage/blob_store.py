"""
Blob Store

Document and logo blobs in Azure Blob Storage. Blob keys are ``{folderId}/{filename}``
for data room files and ``logos/{email}/{ts}_{name}`` for profile logos.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import AsyncIterator
from typing import Optional

from azure.core.exceptions import AzureError
from azure.core.exceptions import ResourceExistsError
from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions
from azure.storage.blob import ContentSettings
from azure.storage.blob import generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient
from loguru import logger

from vdr_api.errors import NotFoundError
from vdr_api.errors import UpstreamServiceError
from vdr_api.settings import Settings


class BlobStore:
    """
    Async wrapper around one blob container.

    The service client is created lazily from the connection string; without one,
    every operation raises UpstreamServiceError.
    """

    def __init__(self, connection_string: Optional[str], container_name: str, signed_url_ttl_seconds: int = 3600):
        self.connection_string = connection_string
        self.container_name = container_name
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self._service: Optional[BlobServiceClient] = None
        self._container_checked = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlobStore":
        return cls(
            connection_string=settings.azure_storage_connection_string,
            container_name=settings.azure_storage_container,
            signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string)

    def _client(self) -> BlobServiceClient:
        if not self.is_configured:
            raise UpstreamServiceError("Blob storage not configured")
        if self._service is None:
            self._service = BlobServiceClient.from_connection_string(self.connection_string)
        return self._service

    async def _ensure_container(self) -> None:
        if self._container_checked:
            return
        try:
            await self._client().create_container(self.container_name)
            logger.info("Blob container created", container=self.container_name)
        except ResourceExistsError:
            logger.debug("Blob container exists", container=self.container_name)
        self._container_checked = True

    async def upload(self, blob_key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload (overwriting) a blob and return its URL."""
        try:
            await self._ensure_container()
            blob = self._client().get_blob_client(container=self.container_name, blob=blob_key)
            await blob.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
            )
        except AzureError as e:
            logger.error(f"Blob upload failed: {e}", blob_key=blob_key)
            raise UpstreamServiceError("Failed to upload file to storage") from e

        logger.info("Blob uploaded", blob_key=blob_key, size=len(data))
        return blob.url

    async def download(self, blob_key: str) -> AsyncIterator[bytes]:
        """
        Open a blob for streaming.

        Raises:
            NotFoundError: The blob does not exist
            UpstreamServiceError: Any other storage failure
        """
        blob = self._client().get_blob_client(container=self.container_name, blob=blob_key)
        try:
            downloader = await blob.download_blob()
        except ResourceNotFoundError as e:
            raise NotFoundError("File content not found in storage") from e
        except AzureError as e:
            logger.error(f"Blob download failed: {e}", blob_key=blob_key)
            raise UpstreamServiceError("Failed to download file from storage") from e
        return downloader.chunks()

    async def delete(self, blob_key: str) -> bool:
        """Best-effort delete. Returns whether the blob was removed."""
        if not self.is_configured or not blob_key:
            return False
        try:
            blob = self._client().get_blob_client(container=self.container_name, blob=blob_key)
            await blob.delete_blob()
        except ResourceNotFoundError:
            logger.debug("Blob already gone", blob_key=blob_key)
            return False
        except AzureError as e:
            logger.warning(f"Blob delete failed: {e}", blob_key=blob_key)
            return False
        logger.info("Blob deleted", blob_key=blob_key)
        return True

    def signed_url(self, blob_key: str, ttl_seconds: Optional[int] = None) -> str:
        """Read-only SAS URL for one blob."""
        service = self._client()
        expires = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds or self.signed_url_ttl_seconds)
        sas = generate_blob_sas(
            account_name=service.account_name,
            container_name=self.container_name,
            blob_name=blob_key,
            account_key=service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=expires,
        )
        blob = service.get_blob_client(container=self.container_name, blob=blob_key)
        return f"{blob.url}?{sas}"

    async def close(self) -> None:
        if self._service is not None:
            await self._service.close()
            self._service = None

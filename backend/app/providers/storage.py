import logging

from azure.core.exceptions import AzureError, ResourceExistsError
from azure.storage.blob import BlobServiceClient, ContentSettings, PublicAccess

from app.core.settings import settings

logger = logging.getLogger(__name__)


class StorageNotConfiguredError(RuntimeError):
    """Raised when image storage is used without a connection string."""


class QuestionImageStorage:
    """Public-read blob container holding rendered question page images."""

    def __init__(
        self,
        connection_string: str | None = None,
        container_name: str | None = None,
    ):
        self.connection_string = (
            connection_string
            if connection_string is not None
            else settings.azure_storage_connection_string
        )
        self.container_name = container_name or settings.azure_container_name
        self.service_client = None
        self.container_client = None

        if self.connection_string:
            try:
                self.service_client = BlobServiceClient.from_connection_string(
                    self.connection_string
                )
                self.container_client = self.service_client.get_container_client(
                    self.container_name
                )
                logger.info("Connected to Azure Blob Storage (%s)", self.container_name)
            except Exception:
                logger.exception("Failed to initialize QuestionImageStorage")
        else:
            logger.warning(
                "Azure Storage Connection String is missing. Question images will not be stored."
            )

    @property
    def is_configured(self) -> bool:
        return self.container_client is not None

    def ensure_bucket(self) -> bool:
        """Create the container with public blob access if it does not exist yet.

        Returns False (after logging) instead of raising, so a storage outage only
        costs the chunk its images.
        """
        if self.container_client is None:
            logger.warning("Image storage is not configured; skipping bucket check")
            return False

        try:
            if not self.container_client.exists():
                self.container_client.create_container(public_access=PublicAccess.BLOB)
                logger.info("Created public container %s", self.container_name)
            return True
        except ResourceExistsError:
            # Created concurrently by another run.
            return True
        except AzureError:
            logger.exception("Bucket check failed for %s", self.container_name)
            return False

    def upload_png(self, content: bytes, blob_name: str) -> str | None:
        """Upload (overwriting) a PNG and return its public URL, or None on failure."""
        if self.container_client is None:
            raise StorageNotConfiguredError("Image storage is not configured")

        blob_client = self.container_client.get_blob_client(blob_name)
        try:
            blob_client.upload_blob(
                content,
                overwrite=True,
                content_settings=ContentSettings(content_type="image/png"),
            )
        except AzureError:
            logger.exception("Storage upload failed for %s", blob_name)
            return None
        return blob_client.url


image_storage = QuestionImageStorage()

"""Azure Blob Storage client for webhook files."""
import logging
from datetime import timedelta
from typing import Callable, Dict, Optional
from urllib.parse import quote
from azure.core.exceptions import AzureError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient

from app.utils.exceptions import StoreError
from app.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class BlobStoreClient:
    """
    Uploads scratch files under caller-built keys and signs download URLs.

    Keys are used verbatim. Non-ASCII keys are rejected; building a safe key
    is the caller's job (see `app.services.filenames.build_storage_key`).
    """

    def __init__(
        self,
        connection_string: str,
        container: str,
        account_name: str,
        account_key: str,
        service_factory: Optional[Callable[[], BlobServiceClient]] = None,
    ):
        self.connection_string = connection_string
        self.container = container
        self.account_name = account_name
        self.account_key = account_key
        self._service_factory = service_factory or self._default_service

    def _default_service(self) -> BlobServiceClient:
        return BlobServiceClient.from_connection_string(self.connection_string)

    @staticmethod
    def content_type_for(key: str) -> str:
        return "application/pdf" if key.lower().endswith(".pdf") else "application/zip"

    async def upload(
        self,
        local_path,
        key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Upload a local file under `key` and return the stored key."""
        if not key.isascii():
            raise StoreError(key, "Key contains non-ASCII characters")

        logger.debug(f"Uploading {local_path} to {self.container}/{key}")

        try:
            async with self._service_factory() as blob_service:
                blob_client = blob_service.get_blob_client(
                    container=self.container,
                    blob=key
                )
                with open(local_path, "rb") as data:
                    await blob_client.upload_blob(
                        data,
                        overwrite=True,
                        metadata=metadata,
                        content_settings=ContentSettings(
                            content_type=self.content_type_for(key)
                        ),
                    )
        except (AzureError, ValueError) as e:
            logger.error(f"Failed to upload {key} to container {self.container}: {e}")
            raise StoreError(key, str(e)) from e
        except OSError as e:
            logger.error(f"Failed to read {local_path} for upload: {e}")
            raise StoreError(key, f"Could not read {local_path}: {e}") from e

        logger.info(f"Uploaded {key} to container {self.container}")
        return key

    def signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Build a read-only SAS URL for `key`, valid for `expires_in` seconds."""
        try:
            sas_token = generate_blob_sas(
                account_name=self.account_name,
                container_name=self.container,
                blob_name=key,
                account_key=self.account_key,
                permission=BlobSasPermissions(read=True),
                expiry=utc_now() + timedelta(seconds=expires_in),
            )
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to generate signed URL for {key}: {e}")
            raise StoreError(key, f"Could not sign URL: {e}") from e

        return (
            f"https://{self.account_name}.blob.core.windows.net/"
            f"{self.container}/{quote(key, safe='/')}?{sas_token}"
        )

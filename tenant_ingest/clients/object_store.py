"""
Cloud Storage uploader for staged files, using the JSON API media upload.
"""

from pathlib import Path

import httpx

from tenant_ingest.clients.auth import TokenSupplier
from tenant_ingest.clients.base import AuthenticatedClient
from tenant_ingest.core.exceptions import UploadError
from tenant_ingest.observability.logger import get_logger


logger = get_logger(__name__)

JSONL_CONTENT_TYPE = "application/x-ndjson"


class ObjectStoreUploader(AuthenticatedClient):
    """
    Uploads files into one shared bucket under per-tenant prefixes.
    """

    def __init__(
        self,
        bucket: str,
        token_supplier: TokenSupplier,
        base_url: str = "https://storage.googleapis.com",
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        super().__init__(base_url, token_supplier, timeout=timeout, http_client=http_client)
        self.bucket = bucket

    def upload(self, local_path: str | Path, destination_name: str, tenant_prefix: str) -> str:
        """
        Upload a local file to ``{tenant_prefix}/{destination_name}``.

        An existing object at that path is overwritten.

        Args:
            local_path: File to upload
            destination_name: Object name under the tenant prefix
            tenant_prefix: Per-tenant folder in the bucket

        Returns:
            ``gs://{bucket}/{tenant_prefix}/{destination_name}``

        Raises:
            UploadError: If the file cannot be read or the upload is rejected
        """
        object_name = f"{tenant_prefix}/{destination_name}"
        logger.debug(f"Uploading {object_name} to bucket {self.bucket}")

        try:
            payload = Path(local_path).read_bytes()
        except OSError as e:
            raise UploadError(f"Cannot read {local_path} for upload: {e}") from e

        self._request(
            "POST",
            f"{self.base_url}/upload/storage/v1/b/{self.bucket}/o",
            operation="upload",
            error_cls=UploadError,
            error_message=f"Cannot upload {object_name} to {self.bucket}",
            params={"uploadType": "media", "name": object_name},
            content=payload,
            content_type=JSONL_CONTENT_TYPE,
        )
        return f"gs://{self.bucket}/{object_name}"

"""Blob storage for document bytes.

``BlobStore`` is the interface the rest of the service depends on;
``S3BlobStore`` implements it against any S3-compatible endpoint (MinIO in
development, S3 or R2 in production).

Presigned URLs are for server-to-server consumers only (the office editor).
Clients receive bytes through delivery tokens, never a storage URL.
"""

import logging
import uuid
from pathlib import Path
from typing import Iterator, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import settings
from ..exceptions import StorageError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


class BlobStore(Protocol):
    def get_object_stream(self, key: str) -> Iterator[bytes]: ...

    def get_presigned_url(self, key: str, ttl_seconds: int) -> str: ...

    def put_object(self, key: str, data: bytes, content_type: str) -> None: ...

    def delete_object(self, key: str) -> None: ...


def build_storage_key(company_id: str, folder_id: Optional[str], filename: str) -> str:
    """Object key for a new upload; the random stem keeps keys unguessable."""
    ext = Path(filename).suffix.lower()
    unique_name = f"{uuid.uuid4().hex}{ext}"
    if folder_id:
        return f"companies/{company_id}/folders/{folder_id}/{unique_name}"
    return f"companies/{company_id}/documents/{unique_name}"


class S3BlobStore:
    """BlobStore over boto3. The client is created lazily on first use."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
    ):
        self.bucket = bucket
        self._endpoint_url = endpoint_url
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._client = None

    def _s3(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._endpoint_url,
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
                config=Config(signature_version="s3v4"),
                region_name=self._region,
            )
        return self._client

    def get_object_stream(self, key: str) -> Iterator[bytes]:
        """Open the object and return an iterator over its bytes.

        The GET is issued eagerly so a missing object fails here, before any
        response headers are sent.
        """
        try:
            response = self._s3().get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Blob read failed for %s: %s", key, e)
            raise StorageError("Failed to read stored file", key=key) from e
        body = response["Body"]
        return _iter_body(body)

    def get_presigned_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self._s3().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign %s: %s", key, e)
            raise StorageError("Failed to generate storage URL", key=key) from e

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self._s3().put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("Blob upload failed for %s: %s", key, e)
            raise StorageError("Failed to store file", key=key) from e
        logger.info("Stored object %s (%d bytes)", key, len(data))

    def delete_object(self, key: str) -> None:
        try:
            self._s3().delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Blob delete failed for %s: %s", key, e)
            raise StorageError("Failed to delete stored file", key=key) from e


def _iter_body(body) -> Iterator[bytes]:
    # Closing the body on exit lets a client disconnect release the connection.
    try:
        for chunk in body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE):
            if chunk:
                yield chunk
    finally:
        body.close()


_blob_store: Optional[S3BlobStore] = None


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the process-wide S3 store."""
    global _blob_store
    if _blob_store is None:
        _blob_store = S3BlobStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint_url or None,
            access_key=settings.s3_access_key or None,
            secret_key=settings.s3_secret_key or None,
            region=settings.s3_region,
        )
    return _blob_store

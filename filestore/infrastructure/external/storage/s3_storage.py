"""S3-compatible object storage (MinIO, AWS S3, etc.) with idempotent bucket bootstrap."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filestore.domain.enums import StorageProvider
from filestore.domain.value_objects import StorageLocator
from filestore.infrastructure.exceptions import (
    StorageBootstrapError,
    StorageDeleteError,
    StorageDownloadError,
    StorageFailure,
    StorageNotFoundError,
    StoragePermissionError,
    StorageUploadError,
)
from filestore.infrastructure.external.storage.protocol import require_locator
from filestore.shared.utils.content_types import resolve_content_type
from filestore.shared.utils.keys import generate_storage_key

logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})
_MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})
_BUCKET_RACE_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})
_DENIED_CODES = frozenset({"403", "AccessDenied", "Forbidden"})

DEFAULT_REGION = "us-east-1"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def build_endpoint_url(endpoint: str | None, use_ssl: bool) -> str | None:
    """Return endpoint as a URL; a bare host[:port] gets https or http per use_ssl."""
    if not endpoint:
        return None
    if "://" in endpoint:
        return endpoint
    scheme = "https" if use_ssl else "http"
    return f"{scheme}://{endpoint}"


class S3StorageBackend:
    """S3-compatible storage. The bucket comes from configuration, never from the locator.

    Uses boto3 (sync) via asyncio.to_thread for the async API. The bucket is
    checked, and created if absent, once per instance.
    """

    provider = StorageProvider.MINIO

    def __init__(
        self,
        bucket: str,
        access_key: str | None = None,
        secret_key: str | None = None,
        endpoint: str | None = None,
        use_ssl: bool = True,
        region: str = DEFAULT_REGION,
        key_factory: Callable[[str], str] = generate_storage_key,
    ) -> None:
        """Initialize S3 client.

        Args:
            bucket: Bucket name.
            access_key: Access key id.
            secret_key: Secret access key.
            endpoint: Custom endpoint (MinIO). None means AWS S3.
            use_ssl: Scheme for a bare endpoint (https when True).
            region: AWS region.
            key_factory: Builds a storage key from an original file name.
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = build_endpoint_url(endpoint, use_ssl)
        self._key_factory = key_factory
        extra: dict[str, Any] = {}
        if self.endpoint_url is not None:
            # MinIO needs path-style addressing.
            extra["endpoint_url"] = self.endpoint_url
            extra["config"] = Config(s3={"addressing_style": "path"})
        self._client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            **extra,
        )
        self._bucket_ready = False
        self._bucket_lock = asyncio.Lock()

    def _create_bucket_sync(self) -> None:
        """Create the bucket; a concurrent creator winning the race is fine."""
        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if self.endpoint_url is None and self.region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._client.create_bucket(**kwargs)
            logger.info("Created bucket: %s", self.bucket)
        except ClientError as e:
            if _error_code(e) not in _BUCKET_RACE_CODES:
                raise
            logger.info("Bucket %s created concurrently; continuing", self.bucket)

    def _ensure_bucket_sync(self) -> None:
        try:
            self._client.head_bucket(Bucket=self.bucket)
            logger.debug("Bucket exists: %s", self.bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                raise
        self._create_bucket_sync()

    async def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        async with self._bucket_lock:
            if self._bucket_ready:
                return
            try:
                await asyncio.to_thread(self._ensure_bucket_sync)
            except (ClientError, BotoCoreError) as e:
                logger.error("Error ensuring bucket %s exists: %s", self.bucket, e)
                raise StorageBootstrapError(
                    self.provider.value, None, f"bucket '{self.bucket}': {e}"
                ) from e
            self._bucket_ready = True

    def _translate(
        self,
        error: ClientError | BotoCoreError,
        key: str,
        failure: type[StorageFailure],
        operation: str,
    ) -> StorageFailure:
        if isinstance(error, ClientError) and _error_code(error) in _DENIED_CODES:
            return StoragePermissionError(self.provider.value, key, operation)
        return failure(self.provider.value, key, str(error))

    async def activate(self) -> None:
        """Check the bucket exists and create it if absent."""
        await self._ensure_bucket()
        logger.info(
            "S3 storage ready: bucket=%s, endpoint=%s",
            self.bucket,
            self.endpoint_url or "AWS S3",
        )

    async def store(self, file_name: str, content: bytes) -> StorageLocator:
        await self._ensure_bucket()
        key = self._key_factory(file_name)
        content_type = resolve_content_type(file_name)

        def _put() -> None:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                Metadata={"original-filename": quote(file_name or "", safe="")},
            )

        try:
            await asyncio.to_thread(_put)
        except (ClientError, BotoCoreError) as e:
            logger.error("Error uploading file to S3 %s: %s", key, e)
            raise self._translate(e, key, StorageUploadError, "upload") from e

        locator = StorageLocator(self.provider, key)
        logger.info("File uploaded to S3: %s (%d bytes, %s)", locator, len(content), content_type)
        return locator

    async def retrieve(self, locator: StorageLocator | str) -> bytes:
        parsed = require_locator(locator, self.provider)

        def _get() -> bytes:
            resp = self._client.get_object(Bucket=self.bucket, Key=parsed.key)
            return resp["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except ClientError as e:
            if _error_code(e) in _MISSING_OBJECT_CODES:
                raise StorageNotFoundError(self.provider.value, parsed.key) from e
            logger.error("Error downloading file from S3 %s: %s", parsed.key, e)
            raise self._translate(e, parsed.key, StorageDownloadError, "download") from e
        except BotoCoreError as e:
            logger.error("Error downloading file from S3 %s: %s", parsed.key, e)
            raise StorageDownloadError(self.provider.value, parsed.key, str(e)) from e

    async def delete(self, locator: StorageLocator | str) -> None:
        parsed = require_locator(locator, self.provider)

        def _delete() -> None:
            self._client.delete_object(Bucket=self.bucket, Key=parsed.key)

        try:
            await asyncio.to_thread(_delete)
        except ClientError as e:
            if _error_code(e) in _MISSING_OBJECT_CODES:
                logger.debug("Delete of absent S3 object ignored: %s", parsed)
                return
            logger.error("Error deleting file from S3 %s: %s", parsed.key, e)
            raise self._translate(e, parsed.key, StorageDeleteError, "delete") from e
        except BotoCoreError as e:
            logger.error("Error deleting file from S3 %s: %s", parsed.key, e)
            raise StorageDeleteError(self.provider.value, parsed.key, str(e)) from e
        logger.info("File deleted from S3: %s", parsed)

    async def exists(self, locator: StorageLocator | str) -> bool:
        parsed = require_locator(locator, self.provider)

        def _head() -> bool:
            try:
                self._client.head_object(Bucket=self.bucket, Key=parsed.key)
                return True
            except ClientError as e:
                if _error_code(e) in _MISSING_OBJECT_CODES:
                    return False
                raise

        try:
            return await asyncio.to_thread(_head)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, parsed.key, StorageDownloadError, "stat") from e

    async def close(self) -> None:
        self._client.close()

# knowledge_lifecycle/storage/s3_provider.py
"""
S3 storage provider implementation using boto3.

Supports:
- AWS S3
- S3-compatible services (MinIO, GCS XML interop, DigitalOcean Spaces, etc.)
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from knowledge_lifecycle.exceptions import StorageError, StorageNotConfiguredError
from knowledge_lifecycle.storage.base import (
    StorageProvider,
    StorageObject,
    StorageMetadata,
    ContentType,
    compute_content_hash,
    normalize_prefix,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


class S3StorageProvider(StorageProvider):
    """
    S3/S3-compatible storage provider.

    Configuration via environment:
    - S3_BUCKET: Bucket name (required)
    - S3_ENDPOINT_URL: Custom endpoint for S3-compatible services
    - S3_REGION: AWS region (default: us-east-1)
    - Credentials come from boto3's own chain (AWS_ACCESS_KEY_ID, profiles, roles)
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        """
        Initialize S3 provider.

        Args:
            bucket: S3 bucket name (or S3_BUCKET env var)
            endpoint_url: Custom endpoint for S3-compatible services
            region: AWS region
            client: Pre-built boto3 S3 client (tests, custom sessions)
        """
        self._bucket = bucket or os.getenv("S3_BUCKET")
        if not self._bucket:
            raise StorageNotConfiguredError("S3 bucket required. Set S3_BUCKET env var or pass bucket.")

        self._endpoint_url = endpoint_url or os.getenv("S3_ENDPOINT_URL")
        self._region = region or os.getenv("S3_REGION", "us-east-1")

        if client is None:
            # Configure boto3 client
            config = Config(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
            )
            try:
                client = boto3.client(
                    "s3",
                    endpoint_url=self._endpoint_url,
                    region_name=self._region,
                    config=config,
                )
            except BotoCoreError as e:
                raise StorageNotConfiguredError(f"Failed to create S3 client: {e}") from e

        self._client = client

        logger.info(f"S3 storage initialized: bucket={self._bucket}")

    @property
    def name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self._bucket

    def list_objects(self, prefix: str) -> List[StorageObject]:
        """List all objects with the given prefix."""
        prefix = normalize_prefix(prefix)
        objects = []

        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    # Directory placeholder keys carry no content
                    if obj["Key"].endswith("/"):
                        continue
                    objects.append(
                        StorageObject(
                            path=obj["Key"],
                            size_bytes=int(obj.get("Size", 0) or 0),
                            last_modified=obj.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list objects under {prefix}: {e}")
            raise StorageError(f"S3 list failed for {prefix}: {e}", key=prefix) from e

        return objects

    def download(self, key: str) -> Optional[bytes]:
        """Download raw content from S3."""
        try:
            response = self._client.get_object(
                Bucket=self._bucket,
                Key=key,
            )
            return response["Body"].read()

        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                logger.debug(f"S3 object not found: {key}")
                return None
            logger.error(f"S3 download failed for {key}: {e}")
            raise StorageError(f"S3 download failed for {key}: {e}", key=key) from e
        except BotoCoreError as e:
            logger.error(f"S3 download failed for {key}: {e}")
            raise StorageError(f"S3 download failed for {key}: {e}", key=key) from e

    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.OCTET_STREAM,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageMetadata:
        """Upload content to S3."""
        content_hash = compute_content_hash(content)

        s3_metadata = dict(metadata or {})
        s3_metadata["content-hash"] = content_hash

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type.value,
                Metadata=s3_metadata,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(f"S3 upload failed for {key}: {e}", key=key) from e

        logger.debug(f"Uploaded to S3: {key} ({len(content)} bytes)")

        return StorageMetadata(
            uri=key,
            content_hash=content_hash,
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=datetime.now(timezone.utc),
            custom_metadata=s3_metadata,
        )

    def delete(self, key: str) -> bool:
        """Delete object from S3. S3 deletes are idempotent, so a missing key still succeeds."""
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StorageError(f"S3 delete failed for {key}: {e}", key=key) from e

        logger.debug(f"Deleted from S3: {key}")
        return True

    def exists(self, key: str) -> bool:
        """Check if object exists in S3."""
        return self.get_metadata(key) is not None

    def get_metadata(self, key: str) -> Optional[StorageObject]:
        """Get object size and timestamps without downloading content."""
        try:
            response = self._client.head_object(
                Bucket=self._bucket,
                Key=key,
            )
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise StorageError(f"S3 head failed for {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 head failed for {key}: {e}", key=key) from e

        return StorageObject(
            path=key,
            size_bytes=int(response.get("ContentLength", 0) or 0),
            last_modified=response.get("LastModified"),
        )

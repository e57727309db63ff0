"""
S3 object store.

Provides a lazily created boto3 client for list, download, copy and delete.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from bucketfeed.exceptions import StoreError
from bucketfeed.stores.base import ObjectStore, StoredObject
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.stores.s3")

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class S3ObjectStore(ObjectStore):
    """
    S3 store wrapper.

    Supports AWS credentials from config, environment, or IAM role.

    Config example:
        store:
          type: s3
          region: us-east-1
          endpoint_url: ...        # Optional (for S3-compatible services)
          access_key_id: AKIA...   # Optional, uses env/IAM if not set
          secret_access_key: ...   # Optional
          session_token: ...       # Optional (for temp creds)
    """

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name, config)
        self._client = None

    @property
    def region(self) -> str | None:
        """Get AWS region from config."""
        return self.config.get("region")

    @property
    def endpoint_url(self) -> str | None:
        """Get custom endpoint URL (for S3-compatible services like MinIO)."""
        return self.config.get("endpoint_url")

    def _get_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for boto3 client initialization."""
        kwargs: dict[str, Any] = {}

        if self.region:
            kwargs["region_name"] = self.region

        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        # Explicit credentials from config (override env/IAM)
        access_key = self.config.get("access_key_id")
        secret_key = self.config.get("secret_access_key")
        session_token = self.config.get("session_token")

        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
            if session_token:
                kwargs["aws_session_token"] = session_token

        return kwargs

    @property
    def client(self):
        """
        Get boto3 S3 client (lazy initialization).

        Returns:
            boto3.client('s3') instance
        """
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", **self._get_client_kwargs())
        return self._client

    def list_objects(self, bucket: str, prefix: str | None = None) -> Iterator[StoredObject]:
        """
        List objects in the bucket with optional prefix.

        Yields:
            StoredObject per key, in the order S3 returns them
        """
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix or ""):
                for obj in page.get("Contents", []):
                    updated_at = obj["LastModified"]
                    if updated_at.tzinfo is None:
                        updated_at = updated_at.replace(tzinfo=UTC)
                    yield StoredObject(name=obj["Key"], updated_at=updated_at, size=int(obj.get("Size", 0)))
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Listing s3://{bucket}/{prefix or ''} failed: {e}", bucket=bucket) from e

    def download(self, bucket: str, key: str, local_path: str | Path) -> Path:
        """
        Download an object to a local file.

        The content lands in a ``.part`` file first and is renamed into place.
        """
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = local_path.with_suffix(local_path.suffix + ".part")
        try:
            self.client.download_file(bucket, key, str(tmp_path))
            os.replace(tmp_path, local_path)
        except (ClientError, BotoCoreError) as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Download of s3://{bucket}/{key} failed: {e}", bucket=bucket, key=key) from e
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

        return local_path

    def copy_object(self, bucket: str, key: str, dest_bucket: str, dest_key: str) -> None:
        try:
            self.client.copy_object(
                Bucket=dest_bucket,
                CopySource={"Bucket": bucket, "Key": key},
                Key=dest_key,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(
                f"Copy of s3://{bucket}/{key} to s3://{dest_bucket}/{dest_key} failed: {e}",
                bucket=bucket,
                key=key,
            ) from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Delete of s3://{bucket}/{key} failed: {e}", bucket=bucket, key=key) from e

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_BUCKET_CODES:
                return False
            raise StoreError(f"Cannot access bucket {bucket}: {e}", bucket=bucket) from e
        except BotoCoreError as e:
            raise StoreError(f"Cannot access bucket {bucket}: {e}", bucket=bucket) from e

    def create_bucket(self, bucket: str) -> None:
        kwargs: dict[str, Any] = {"Bucket": bucket}
        # us-east-1 rejects an explicit LocationConstraint
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Cannot create bucket {bucket}: {e}", bucket=bucket) from e
        logger.info(f"Created bucket {bucket}")

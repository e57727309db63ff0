"""
Local filesystem object store.

Each bucket is a directory under ``root_path``; keys are the POSIX paths of
files relative to that directory and the last-modified time is the file mtime.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from bucketfeed.exceptions import StoreError
from bucketfeed.stores.base import ObjectStore, StoredObject


class FilesystemObjectStore(ObjectStore):
    """
    Filesystem store for local runs.

    Config example:
        store:
          type: filesystem
          root_path: /var/data/buckets
    """

    @property
    def root_path(self) -> Path:
        return Path(self.config.get("root_path", "data"))

    def _bucket_path(self, bucket: str) -> Path:
        return self.root_path / bucket

    def _object_path(self, bucket: str, key: str) -> Path:
        """
        Resolve a key inside its bucket directory.

        Raises:
            StoreError: If the key escapes the bucket directory
        """
        bucket_resolved = self._bucket_path(bucket).resolve()
        full = (bucket_resolved / key.lstrip("/")).resolve()
        try:
            full.relative_to(bucket_resolved)
        except ValueError as e:
            raise StoreError(f"Key '{key}' escapes bucket '{bucket}'", bucket=bucket, key=key) from e
        return full

    def list_objects(self, bucket: str, prefix: str | None = None) -> Iterator[StoredObject]:
        bucket_path = self._bucket_path(bucket)
        if not bucket_path.is_dir():
            raise StoreError(f"Bucket directory not found: {bucket_path}", bucket=bucket)

        for path in sorted(bucket_path.rglob("*")):
            if not path.is_file():
                continue
            key = path.relative_to(bucket_path).as_posix()
            if prefix and not key.startswith(prefix):
                continue
            stat = path.stat()
            yield StoredObject(
                name=key,
                updated_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                size=stat.st_size,
            )

    def download(self, bucket: str, key: str, local_path: str | Path) -> Path:
        source = self._object_path(bucket, key)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = local_path.with_suffix(local_path.suffix + ".part")
        try:
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, local_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Download of {bucket}/{key} failed: {e}", bucket=bucket, key=key) from e
        return local_path

    def copy_object(self, bucket: str, key: str, dest_bucket: str, dest_key: str) -> None:
        source = self._object_path(bucket, key)
        dest = self._object_path(dest_bucket, dest_key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        except OSError as e:
            raise StoreError(
                f"Copy of {bucket}/{key} to {dest_bucket}/{dest_key} failed: {e}", bucket=bucket, key=key
            ) from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._object_path(bucket, key).unlink()
        except OSError as e:
            raise StoreError(f"Delete of {bucket}/{key} failed: {e}", bucket=bucket, key=key) from e

    def bucket_exists(self, bucket: str) -> bool:
        return self._bucket_path(bucket).is_dir()

    def create_bucket(self, bucket: str) -> None:
        try:
            self._bucket_path(bucket).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create bucket {bucket}: {e}", bucket=bucket) from e

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', root_path='{self.root_path}')"

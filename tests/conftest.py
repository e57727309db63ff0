"""
Shared fixtures: an in-memory object store and an ingestion cycle factory.
"""

from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from bucketfeed.exceptions import StoreError
from bucketfeed.ingest.archival import ArchivalPolicy
from bucketfeed.ingest.checkpoint import CheckpointStore
from bucketfeed.ingest.codecs import PlainCodec
from bucketfeed.ingest.cycle import IngestionCycle
from bucketfeed.ingest.filter import ObjectFilter
from bucketfeed.ingest.types import StopToken
from bucketfeed.stores.base import ObjectStore, StoredObject


def ts(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


class MemoryObjectStore(ObjectStore):
    """Dict-backed store that records every mutating call."""

    def __init__(self) -> None:
        super().__init__("memory", {})
        self.buckets: dict[str, dict[str, tuple[bytes, int]]] = {}
        self.calls: list[tuple] = []

    def put(self, bucket: str, key: str, data: bytes, mtime: int) -> None:
        self.buckets.setdefault(bucket, {})[key] = (data, mtime)

    def list_objects(self, bucket: str, prefix: str | None = None) -> Iterator[StoredObject]:
        if bucket not in self.buckets:
            raise StoreError(f"no bucket {bucket}", bucket=bucket)
        for key, (data, mtime) in list(self.buckets[bucket].items()):
            if prefix and not key.startswith(prefix):
                continue
            yield StoredObject(name=key, updated_at=ts(mtime), size=len(data))

    def download(self, bucket: str, key: str, local_path) -> Path:
        self.calls.append(("download", bucket, key))
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(self.buckets[bucket][key][0])
        return local_path

    def copy_object(self, bucket: str, key: str, dest_bucket: str, dest_key: str) -> None:
        self.calls.append(("copy", bucket, key, dest_bucket, dest_key))
        self.buckets.setdefault(dest_bucket, {})[dest_key] = self.buckets[bucket][key]

    def delete_object(self, bucket: str, key: str) -> None:
        self.calls.append(("delete", bucket, key))
        del self.buckets[bucket][key]

    def bucket_exists(self, bucket: str) -> bool:
        return bucket in self.buckets

    def create_bucket(self, bucket: str) -> None:
        self.calls.append(("create_bucket", bucket))
        self.buckets.setdefault(bucket, {})


@pytest.fixture
def memory_store():
    store = MemoryObjectStore()
    store.buckets["logs"] = {}
    return store


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def make_cycle(tmp_path, staging_dir):
    """Build an IngestionCycle over a store with sensible test defaults."""

    def _make(
        store,
        *,
        bucket="logs",
        prefix=None,
        delete=False,
        backup_bucket=None,
        backup_prefix=None,
        backup_dir=None,
        exclude_pattern=None,
        codec=None,
        checkpoint_path=None,
        stop_token=None,
        decorator=None,
    ):
        return IngestionCycle(
            store,
            bucket=bucket,
            prefix=prefix,
            checkpoint=CheckpointStore(checkpoint_path or tmp_path / "sincedb"),
            object_filter=ObjectFilter(
                bucket=bucket,
                prefix=prefix,
                backup_bucket=backup_bucket,
                backup_prefix=backup_prefix,
                exclude_pattern=exclude_pattern,
            ),
            archival=ArchivalPolicy(
                store,
                source_bucket=bucket,
                backup_bucket=backup_bucket,
                backup_prefix=backup_prefix,
                backup_dir=backup_dir,
                delete=delete,
            ),
            codec=codec or PlainCodec(),
            temporary_directory=staging_dir,
            decorator=decorator,
            stop_token=stop_token or StopToken(),
        )

    return _make

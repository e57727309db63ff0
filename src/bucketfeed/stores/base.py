"""
Abstract object store interface.

The ingestion loop only needs a handful of bucket operations: list by prefix,
fetch to a local file, copy/move between buckets, delete, and the bucket
existence checks done at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class StoredObject:
    """An object listed from a bucket: full key plus last-modified time (UTC)."""

    name: str
    updated_at: datetime
    size: int = 0


class ObjectStore(ABC):
    """
    Base class for object stores.

    Implementations wrap a concrete client (boto3 for S3, the local filesystem
    for development) and translate client failures into StoreError.
    """

    def __init__(self, name: str, config: dict[str, Any]):
        """
        Initialize object store.

        Args:
            name: Store name (used in logs)
            config: Store configuration dictionary
        """
        self.name = name
        self.config = config

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str | None = None) -> Iterator[StoredObject]:
        """Yield every object in ``bucket`` whose key starts with ``prefix``."""

    @abstractmethod
    def download(self, bucket: str, key: str, local_path: str | Path) -> Path:
        """Fetch an object's content into ``local_path``."""

    @abstractmethod
    def copy_object(self, bucket: str, key: str, dest_bucket: str, dest_key: str) -> None:
        """Copy an object to ``dest_bucket``/``dest_key``."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object."""

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        """Whether ``bucket`` exists and is reachable."""

    @abstractmethod
    def create_bucket(self, bucket: str) -> None:
        """Create ``bucket``."""

    def move_object(self, bucket: str, key: str, dest_bucket: str, dest_key: str) -> None:
        """Copy an object to the destination, then delete the original."""
        self.copy_object(bucket, key, dest_bucket, dest_key)
        self.delete_object(bucket, key)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"

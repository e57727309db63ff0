"""
Object stores.

S3 (boto3) and local filesystem implementations of the bucket operations the
ingestion loop consumes.
"""

from typing import Any

from bucketfeed.exceptions import ConfigurationError
from bucketfeed.stores.base import ObjectStore, StoredObject
from bucketfeed.stores.filesystem import FilesystemObjectStore
from bucketfeed.stores.s3 import S3ObjectStore

STORE_TYPES: dict[str, type[ObjectStore]] = {
    "s3": S3ObjectStore,
    "filesystem": FilesystemObjectStore,
}


def build_store(config: dict[str, Any], name: str = "default") -> ObjectStore:
    """
    Create an object store from its config mapping.

    Raises:
        ConfigurationError: If ``type`` is not a known store type
    """
    store_type = config.get("type", "s3")
    store_cls = STORE_TYPES.get(store_type)
    if store_cls is None:
        raise ConfigurationError(
            f"Unknown store type '{store_type}'. Available: {sorted(STORE_TYPES)}",
            details={"key": "store.type"},
        )
    return store_cls(name, config)


__all__ = [
    "ObjectStore",
    "StoredObject",
    "S3ObjectStore",
    "FilesystemObjectStore",
    "build_store",
]

"""
bucketfeed - incremental ingestion of newly-appended bucket objects.
"""

__version__ = "0.1.0"

from bucketfeed.config import Config, IngestSettings, load_config

# Exceptions
from bucketfeed.exceptions import (
    ArchivalError,
    BucketFeedError,
    CheckpointError,
    ConfigurationError,
    DecodeError,
    InitializationError,
    StoreError,
)
from bucketfeed.ingest import (
    CallbackSink,
    CheckpointStore,
    CycleSummary,
    IngestionCycle,
    IngestService,
    IntervalScheduler,
    ListSink,
    QueueSink,
    StopToken,
)
from bucketfeed.stores import FilesystemObjectStore, ObjectStore, S3ObjectStore, StoredObject, build_store

# Logging utilities
from bucketfeed.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Config
    "Config",
    "IngestSettings",
    "load_config",
    # Ingestion
    "IngestService",
    "IngestionCycle",
    "IntervalScheduler",
    "CheckpointStore",
    "CycleSummary",
    "StopToken",
    "QueueSink",
    "ListSink",
    "CallbackSink",
    # Stores
    "ObjectStore",
    "StoredObject",
    "S3ObjectStore",
    "FilesystemObjectStore",
    "build_store",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    # Exceptions
    "BucketFeedError",
    "ConfigurationError",
    "InitializationError",
    "StoreError",
    "CheckpointError",
    "DecodeError",
    "ArchivalError",
]

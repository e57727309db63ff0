"""
bucketfeed exception hierarchy.

All domain-specific exceptions inherit from BucketFeedError, so callers can
catch any ingestion failure with a single base class while still handling the
per-object cases individually.

Hierarchy::

    BucketFeedError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── InitializationError       - startup checks (buckets, directories)
    ├── StoreError                - object store list/get/copy/delete failures
    ├── CheckpointError           - checkpoint file cannot be written
    ├── DecodeError               - staging file cannot be decompressed/read
    └── ArchivalError             - post-processing backup/delete failures
"""

from __future__ import annotations


class BucketFeedError(Exception):
    """Base exception for all bucketfeed errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(BucketFeedError):
    """Raised when configuration loading, parsing, or validation fails."""


# --- Initialization ----------------------------------------------------------


class InitializationError(BucketFeedError):
    """Raised during startup when a bucket or directory cannot be prepared.

    The ingestion loop never starts after this error.
    """


# --- Object store ------------------------------------------------------------


class StoreError(BucketFeedError):
    """Raised when an object store operation fails."""

    def __init__(self, message: str, *, bucket: str | None = None, key: str | None = None) -> None:
        super().__init__(message, details={"bucket": bucket, "key": key})
        self.bucket = bucket
        self.key = key


# --- Checkpoint --------------------------------------------------------------


class CheckpointError(BucketFeedError):
    """Raised when the checkpoint file cannot be written."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message, details={"path": path})
        self.path = path


# --- Per-object processing ---------------------------------------------------


class DecodeError(BucketFeedError):
    """Raised when a staging file cannot be read or decompressed."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message, details={"path": path})
        self.path = path


class ArchivalError(BucketFeedError):
    """Raised when a backup copy/move or the source delete fails."""

    def __init__(self, object_name: str, step: str, message: str, *, cause: Exception | None = None) -> None:
        full = f"Archival of '{object_name}' failed at {step}: {message}"
        super().__init__(full, details={"object": object_name, "step": step})
        self.object_name = object_name
        self.step = step
        if cause is not None:
            self.__cause__ = cause

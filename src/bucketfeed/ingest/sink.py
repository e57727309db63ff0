"""
Record sinks and the standard record decoration.
"""

from __future__ import annotations

import queue
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from bucketfeed.ingest.codecs import Record
from bucketfeed.stores.base import StoredObject


class Sink(Protocol):
    """Downstream consumer of decoded records."""

    def put(self, record: Record) -> None: ...


class QueueSink:
    """Hands records to a ``queue.Queue`` read by another thread."""

    def __init__(self, target: queue.Queue | None = None, *, block: bool = True):
        self.queue: queue.Queue = target if target is not None else queue.Queue()
        self.block = block

    def put(self, record: Record) -> None:
        self.queue.put(record, block=self.block)


class ListSink:
    """Collects records in memory."""

    def __init__(self) -> None:
        self.records: list[Record] = []

    def put(self, record: Record) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)


class CallbackSink:
    """Calls a function with every record."""

    def __init__(self, callback: Callable[[Record], Any]):
        self.callback = callback

    def put(self, record: Record) -> None:
        self.callback(record)


class RecordDecorator:
    """
    Adds the standard pipeline fields to every record.

    - ``@timestamp``: ingestion time, unless the codec already set one
    - ``type``: the configured type, unless already present
    - ``tags``: configured tags appended without duplicates
    - ``add_field``: extra fields, never overwriting decoded ones
    - ``@metadata``: source bucket, key and last-modified time
    """

    def __init__(
        self,
        *,
        type: str | None = None,
        tags: list[str] | None = None,
        add_field: dict[str, Any] | None = None,
    ):
        self.type = type
        self.tags = list(tags or [])
        self.add_field = dict(add_field or {})

    def decorate(self, record: Record, obj: StoredObject, bucket: str) -> Record:
        record.setdefault("@timestamp", datetime.now(UTC).isoformat())
        if self.type is not None:
            record.setdefault("type", self.type)
        if self.tags:
            existing = record.get("tags") or []
            if not isinstance(existing, list):
                existing = [existing]
            record["tags"] = list(existing) + [t for t in self.tags if t not in existing]
        for key, value in self.add_field.items():
            record.setdefault(key, value)
        metadata = record.get("@metadata")
        record["@metadata"] = {
            **(metadata if isinstance(metadata, dict) else {}),
            "bucket": bucket,
            "key": obj.name,
            "last_modified": obj.updated_at.isoformat(),
        }
        return record

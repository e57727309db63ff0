"""
Ingestion loop: checkpoint, filtering, line reading, decoding, archival and
the interval scheduler that drives it.
"""

from bucketfeed.ingest.archival import ArchivalPolicy
from bucketfeed.ingest.checkpoint import EPOCH, CheckpointStore
from bucketfeed.ingest.codecs import Codec, JsonLinesCodec, MultilineCodec, PlainCodec, build_codec
from bucketfeed.ingest.cycle import IngestionCycle
from bucketfeed.ingest.filter import ObjectFilter
from bucketfeed.ingest.reader import read_lines
from bucketfeed.ingest.scheduler import IntervalScheduler
from bucketfeed.ingest.service import IngestService
from bucketfeed.ingest.sink import CallbackSink, ListSink, QueueSink, RecordDecorator, Sink
from bucketfeed.ingest.types import CycleSummary, StopToken

__all__ = [
    "ArchivalPolicy",
    "CheckpointStore",
    "EPOCH",
    "Codec",
    "PlainCodec",
    "JsonLinesCodec",
    "MultilineCodec",
    "build_codec",
    "IngestionCycle",
    "ObjectFilter",
    "read_lines",
    "IntervalScheduler",
    "IngestService",
    "Sink",
    "QueueSink",
    "ListSink",
    "CallbackSink",
    "RecordDecorator",
    "CycleSummary",
    "StopToken",
]

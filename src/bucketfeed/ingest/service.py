"""
Ingestion service startup.

Wires settings into the store, checkpoint, filter, archival policy, codec,
cycle and scheduler, and performs the startup checks that must pass before
any cycle runs:

1. Source bucket is reachable, and the checkpoint is loaded (a corrupt one is
   reported here rather than at the first cycle)
2. Backup bucket exists (created when missing)
3. Backup directory exists (created, mode 0700)
4. Temporary directory exists (created with parents)
"""

from __future__ import annotations

import os
from pathlib import Path

from bucketfeed.config.loader import Config
from bucketfeed.config.settings import IngestSettings
from bucketfeed.exceptions import BucketFeedError, InitializationError
from bucketfeed.ingest.archival import ArchivalPolicy
from bucketfeed.ingest.checkpoint import CheckpointStore
from bucketfeed.ingest.codecs import build_codec
from bucketfeed.ingest.cycle import IngestionCycle
from bucketfeed.ingest.filter import ObjectFilter
from bucketfeed.ingest.scheduler import IntervalScheduler
from bucketfeed.ingest.sink import RecordDecorator, Sink
from bucketfeed.ingest.types import StopToken
from bucketfeed.stores import build_store
from bucketfeed.stores.base import ObjectStore
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.service")


class IngestService:
    """Owns one ingestion loop for one bucket/prefix."""

    def __init__(self, settings: IngestSettings, store: ObjectStore | None = None):
        self.settings = settings
        self.store = store or build_store(settings.store)
        self.stop_token = StopToken()

        if settings.sincedb_path:
            checkpoint_path = Path(settings.sincedb_path)
            logger.info(f"Using the provided sincedb_path {checkpoint_path}")
        else:
            checkpoint_path = CheckpointStore.default_path(settings.bucket, settings.prefix)
            logger.info(f"Using default generated file for the sincedb {checkpoint_path}")
        self.checkpoint = CheckpointStore(checkpoint_path)

        self.cycle = IngestionCycle(
            self.store,
            bucket=settings.bucket,
            prefix=settings.prefix,
            checkpoint=self.checkpoint,
            object_filter=ObjectFilter(
                bucket=settings.bucket,
                prefix=settings.prefix,
                backup_bucket=settings.backup_to_bucket,
                backup_prefix=settings.backup_add_prefix,
                exclude_pattern=settings.exclude_pattern,
            ),
            archival=ArchivalPolicy(
                self.store,
                source_bucket=settings.bucket,
                backup_bucket=settings.backup_to_bucket,
                backup_prefix=settings.backup_add_prefix,
                backup_dir=settings.backup_to_dir,
                delete=settings.delete,
            ),
            codec=build_codec(settings.codec),
            temporary_directory=settings.temporary_directory,
            decorator=RecordDecorator(type=settings.type, tags=settings.tags, add_field=settings.add_field),
            stop_token=self.stop_token,
        )
        self.scheduler = IntervalScheduler(self.cycle, settings.interval, self.stop_token)
        self.registered = False

    @classmethod
    def from_config(cls, config: Config, store: ObjectStore | None = None) -> IngestService:
        return cls(IngestSettings.from_config(config), store=store)

    def register(self) -> None:
        """
        Run the startup checks.

        Raises:
            InitializationError: If any check fails; nothing has been ingested
        """
        s = self.settings
        logger.info(f"Registering input for bucket {s.bucket} ({self.store!r})")

        try:
            if not self.store.bucket_exists(s.bucket):
                raise InitializationError(f"Bucket '{s.bucket}' does not exist or is not accessible")

            logger.info(f"Resuming from checkpoint {self.checkpoint.read().isoformat()}")

            if s.backup_to_bucket and not self.store.bucket_exists(s.backup_to_bucket):
                logger.info(f"Backup bucket {s.backup_to_bucket} not found, creating it")
                self.store.create_bucket(s.backup_to_bucket)

            if s.backup_to_dir and not os.path.isdir(s.backup_to_dir):
                os.makedirs(s.backup_to_dir, mode=0o700)

            os.makedirs(s.temporary_directory, exist_ok=True)
        except InitializationError:
            raise
        except (BucketFeedError, OSError) as e:
            raise InitializationError(f"Startup checks failed for bucket '{s.bucket}': {e}") from e

        self.registered = True

    def run(self, sink: Sink, *, max_cycles: int | None = None) -> None:
        """Register if needed, then poll until stopped."""
        if not self.registered:
            self.register()
        self.scheduler.run(sink, max_cycles=max_cycles)

    def stop(self) -> None:
        self.scheduler.stop()

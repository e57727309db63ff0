"""
Ingestion cycle: one polling pass over the bucket.

List -> filter -> sort by last-modified -> per object: download to staging,
decode line by line into the sink, archive, remove staging, advance the
checkpoint.

Objects are handled in ascending last-modified order and the checkpoint moves
to each object's own timestamp right after it completes, so a crash after
object k leaves objects k+1..n to the next run and never repeats 1..k.
Objects sharing a timestamp advance the checkpoint once, after the last of them.
"""

from __future__ import annotations

from contextlib import closing
from pathlib import Path, PurePosixPath

from bucketfeed.ingest.archival import ArchivalPolicy
from bucketfeed.ingest.checkpoint import CheckpointStore
from bucketfeed.ingest.codecs import Codec
from bucketfeed.ingest.filter import ObjectFilter
from bucketfeed.ingest.reader import read_lines
from bucketfeed.ingest.sink import RecordDecorator, Sink
from bucketfeed.ingest.types import CycleSummary, StopToken
from bucketfeed.stores.base import ObjectStore, StoredObject
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.cycle")


class IngestionCycle:
    """
    Runs ingestion passes against one bucket/prefix.

    Constructed once per process; the checkpoint store it holds keeps its
    cached value across passes.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        bucket: str,
        prefix: str | None,
        checkpoint: CheckpointStore,
        object_filter: ObjectFilter,
        archival: ArchivalPolicy,
        codec: Codec,
        temporary_directory: str | Path,
        decorator: RecordDecorator | None = None,
        stop_token: StopToken | None = None,
    ):
        self.store = store
        self.bucket = bucket
        self.prefix = prefix
        self.checkpoint = checkpoint
        self.object_filter = object_filter
        self.archival = archival
        self.codec = codec
        self.temporary_directory = Path(temporary_directory)
        self.decorator = decorator or RecordDecorator()
        self.stop_token = stop_token or StopToken()

    def list_new_objects(self) -> list[StoredObject]:
        """
        Objects to process this pass, oldest first.

        The sort is stable: objects with equal timestamps keep listing order.
        """
        logger.debug(f"Polling {self.bucket}/{self.prefix or ''}")
        candidates: list[StoredObject] = []
        for obj in self.store.list_objects(self.bucket, self.prefix):
            if self.object_filter.should_ignore(obj.name):
                logger.debug(f"Ignoring {obj.name}")
                continue
            if not self.checkpoint.is_newer(obj.updated_at):
                continue
            candidates.append(obj)
        candidates.sort(key=lambda o: o.updated_at)
        return candidates

    def staging_path(self, obj: StoredObject) -> Path:
        return self.temporary_directory / PurePosixPath(obj.name).name

    def run(self, sink: Sink) -> CycleSummary:
        """
        Run one pass.

        A failure on any object ends the pass without advancing the checkpoint
        past it; the remaining objects are picked up by the next pass.
        """
        summary = CycleSummary()
        try:
            objects = self.list_new_objects()
        except Exception as e:
            logger.error(f"Listing {self.bucket}/{self.prefix or ''} failed: {e}")
            summary.error = str(e)
            summary.checkpoint = self.checkpoint.read()
            return summary

        for index, obj in enumerate(objects):
            if self.stop_token.is_set():
                logger.info(f"Stop requested; leaving {len(objects) - index} object(s) for the next run")
                summary.cancelled = True
                break

            logger.debug(f"Processing {self.bucket}/{obj.name}")
            try:
                completed, count = self.process_object(obj, sink)
                summary.records += count
                if not completed:
                    summary.cancelled = True
                    break
                summary.processed.append(obj.name)

                following = objects[index + 1] if index + 1 < len(objects) else None
                if following is not None and following.updated_at == obj.updated_at:
                    # Same-timestamp siblings must stay visible to the next run
                    logger.debug(f"Deferring checkpoint for {obj.name}: {following.name} shares its timestamp")
                else:
                    self.checkpoint.advance(obj.updated_at)
            except Exception as e:
                logger.error(f"Processing {self.bucket}/{obj.name} failed, will retry next run: {e}")
                summary.failed = obj.name
                summary.error = str(e)
                break

        summary.checkpoint = self.checkpoint.read()
        logger.info(
            f"Cycle done: {len(summary.processed)} object(s), {summary.records} record(s)"
            + (", cancelled" if summary.cancelled else "")
            + (f", failed on {summary.failed}" if summary.failed else "")
        )
        return summary

    def process_object(self, obj: StoredObject, sink: Sink) -> tuple[bool, int]:
        """
        Download, decode and archive a single object.

        Returns:
            (completed, records emitted). ``completed`` is False when a stop
            was requested mid-object; the object is then read again from the
            start on the next run.
        """
        staging = self.staging_path(obj)
        count = 0
        completed = False
        try:
            logger.debug(f"Downloading {obj.name} to {staging}")
            self.store.download(self.bucket, obj.name, staging)

            with closing(read_lines(staging)) as lines:
                for line in lines:
                    if self.stop_token.is_set():
                        logger.warning(
                            f"Stopped in the middle of {obj.name}; it will be read again from the start next run"
                        )
                        return False, count
                    for record in self.codec.decode(line):
                        sink.put(self.decorator.decorate(record, obj, self.bucket))
                        count += 1
            for record in self.codec.flush():
                sink.put(self.decorator.decorate(record, obj, self.bucket))
                count += 1
            completed = True

            self.archival.apply(obj, staging)
            return True, count
        finally:
            if not completed:
                # Partial multi-line state must not leak into the next object
                for _ in self.codec.flush():
                    pass
            self._remove_staging(staging)

    def _remove_staging(self, staging: Path) -> None:
        try:
            staging.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove staging file {staging}: {e}")

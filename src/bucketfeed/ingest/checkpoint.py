"""
File-backed checkpoint ("since") store.

The file holds one ISO-8601 timestamp: the last-modified time of the newest
object whose processing fully completed. Anything listed with a timestamp at
or below it is treated as already ingested.
"""

from __future__ import annotations

import hashlib
import os
from datetime import UTC, datetime
from pathlib import Path

from bucketfeed.exceptions import CheckpointError
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.checkpoint")

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class CheckpointStore:
    """
    Checkpoint file accessor.

    The stored value is read once and cached for the lifetime of the instance;
    only the ingestion cycle that owns this object reads or writes it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._cached: datetime | None = None

    @staticmethod
    def default_path(bucket: str, prefix: str | None, home: str | Path | None = None) -> Path:
        """
        Checkpoint location derived from the bucket and prefix.

        Returns:
            ``<home>/.sincedb_<md5("bucket+prefix")>``
        """
        digest = hashlib.md5(f"{bucket}+{prefix or ''}".encode()).hexdigest()
        return Path(home or Path.home()) / f".sincedb_{digest}"

    def read(self) -> datetime:
        """
        Return the checkpoint, loading it from disk on first use.

        A missing or empty file means "nothing processed yet" (epoch). An
        unreadable or unparsable file also falls back to epoch, with a warning,
        which makes every object in the bucket eligible again.
        """
        if self._cached is None:
            self._cached = self._load()
        return self._cached

    def _load(self) -> datetime:
        try:
            content = self.path.read_text().strip()
        except FileNotFoundError:
            return EPOCH
        except OSError as e:
            logger.warning(f"Checkpoint {self.path} is unreadable ({e}); reprocessing from {EPOCH.isoformat()}")
            return EPOCH

        # Created but never written to
        if not content:
            return EPOCH

        try:
            value = datetime.fromisoformat(content)
        except ValueError:
            logger.warning(f"Checkpoint {self.path} holds '{content}', not a timestamp; reprocessing from epoch")
            return EPOCH
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def is_newer(self, timestamp: datetime) -> bool:
        """Whether ``timestamp`` is strictly after the checkpoint."""
        return timestamp > self.read()

    def advance(self, timestamp: datetime | None = None) -> None:
        """
        Persist ``timestamp`` (default: now) as the new checkpoint.

        Not monotonic: callers only pass timestamps that are safe to move to.
        The value is written to a sibling temp file and renamed over the old
        one so readers never see a partial write.

        Raises:
            CheckpointError: If the file cannot be written
        """
        if timestamp is None:
            timestamp = datetime.now(UTC)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(timestamp.isoformat())
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CheckpointError(f"Cannot write checkpoint {self.path}: {e}", path=str(self.path)) from e

        self._cached = timestamp
        logger.debug(f"Checkpoint advanced to {timestamp.isoformat()}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path='{self.path}')"

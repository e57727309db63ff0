"""
Post-processing archival: backup to a bucket and/or a local directory, then
optionally delete the source object.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from bucketfeed.exceptions import ArchivalError
from bucketfeed.stores.base import ObjectStore, StoredObject
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.archival")


class ArchivalPolicy:
    """
    Runs after an object has been fully decoded.

    Steps run in order with no rollback, so a failure part-way leaves the
    earlier steps in place:

    1. backup bucket: move the object there when ``delete`` is set, copy it
       otherwise, under ``backup_prefix + key``
    2. backup directory: copy the staging file into it
    3. delete the source object, only when ``delete`` is set and no backup
       bucket is configured (the move in step 1 already removed it)
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        source_bucket: str,
        backup_bucket: str | None = None,
        backup_prefix: str | None = None,
        backup_dir: str | Path | None = None,
        delete: bool = False,
    ):
        self.store = store
        self.source_bucket = source_bucket
        self.backup_bucket = backup_bucket
        self.backup_prefix = backup_prefix
        self.backup_dir = Path(backup_dir) if backup_dir else None
        self.delete = delete

    def backup_key(self, key: str) -> str:
        return f"{self.backup_prefix or ''}{key}"

    def apply(self, obj: StoredObject, staging_path: str | Path) -> None:
        """
        Archive ``obj`` and its staging copy.

        Raises:
            ArchivalError: Naming the step that failed
        """
        if self.backup_bucket:
            dest_key = self.backup_key(obj.name)
            step = "move" if self.delete else "copy"
            try:
                if self.delete:
                    self.store.move_object(self.source_bucket, obj.name, self.backup_bucket, dest_key)
                else:
                    self.store.copy_object(self.source_bucket, obj.name, self.backup_bucket, dest_key)
            except Exception as e:
                raise ArchivalError(obj.name, f"backup bucket {step}", str(e), cause=e)
            logger.debug(f"Backed up {obj.name} to {self.backup_bucket}/{dest_key} ({step})")

        if self.backup_dir is not None:
            try:
                shutil.copy2(staging_path, self.backup_dir)
            except OSError as e:
                raise ArchivalError(obj.name, "backup directory copy", str(e), cause=e)
            logger.debug(f"Copied {obj.name} to {self.backup_dir}")

        if self.delete and not self.backup_bucket:
            try:
                self.store.delete_object(self.source_bucket, obj.name)
            except Exception as e:
                raise ArchivalError(obj.name, "source delete", str(e), cause=e)
            logger.debug(f"Deleted {obj.name} from {self.source_bucket}")

"""
Object name filter applied to every listed key before the checkpoint check.
"""

from __future__ import annotations

import re

from bucketfeed.exceptions import ConfigurationError


class ObjectFilter:
    """
    Decides which listed keys are never ingested.

    A key is ignored when it is the prefix marker itself, when it sits under
    the backup prefix of a same-bucket backup, or when it matches the
    exclusion pattern.
    """

    def __init__(
        self,
        *,
        bucket: str,
        prefix: str | None = None,
        backup_bucket: str | None = None,
        backup_prefix: str | None = None,
        exclude_pattern: str | None = None,
    ):
        self.bucket = bucket
        self.prefix = prefix
        self.backup_bucket = backup_bucket
        self.backup_prefix = backup_prefix
        try:
            self._exclude = re.compile(exclude_pattern) if exclude_pattern else None
        except re.error as e:
            raise ConfigurationError(
                f"Invalid exclude_pattern '{exclude_pattern}': {e}", details={"key": "exclude_pattern"}
            ) from e

    def should_ignore(self, name: str) -> bool:
        # Zero-byte "folder" objects are listed under their own prefix
        if self.prefix is not None and name == self.prefix:
            return True
        if self.backup_prefix and self.backup_bucket == self.bucket and name.startswith(self.backup_prefix):
            return True
        if self._exclude is not None and self._exclude.search(name):
            return True
        return False

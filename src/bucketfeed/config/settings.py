"""
Typed view of the ``input`` configuration section.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Any

from bucketfeed.config.loader import Config
from bucketfeed.exceptions import ConfigurationError

DEFAULT_INTERVAL = 60
DEFAULT_TEMPORARY_DIRECTORY = os.path.join(tempfile.gettempdir(), "bucketfeed")


@dataclass(frozen=True)
class IngestSettings:
    """
    Options recognized in the ``input`` section.

    Config example:
        input:
          bucket: my-logs
          prefix: app/
          backup_to_bucket: my-logs-archive
          backup_add_prefix: processed/
          delete: true
          interval: 60
          exclude_pattern: "\\.tmp$"
          codec: plain
          tags: [s3]
          store:
            type: s3
            region: us-east-1
    """

    bucket: str
    prefix: str | None = None
    sincedb_path: str | None = None
    backup_to_bucket: str | None = None
    backup_add_prefix: str | None = None
    backup_to_dir: str | None = None
    delete: bool = False
    interval: float = DEFAULT_INTERVAL
    exclude_pattern: str | None = None
    temporary_directory: str = DEFAULT_TEMPORARY_DIRECTORY
    codec: dict[str, Any] = field(default_factory=lambda: {"name": "plain"})
    type: str | None = None
    tags: list[str] = field(default_factory=list)
    add_field: dict[str, Any] = field(default_factory=dict)
    store: dict[str, Any] = field(default_factory=lambda: {"type": "s3"})

    @classmethod
    def from_config(cls, config: Config | dict[str, Any]) -> IngestSettings:
        """
        Build settings from a loaded Config (or a raw ``input`` mapping).

        Raises:
            ConfigurationError: On missing or ill-typed options
        """
        if isinstance(config, Config):
            config.validate()
            section = config.input
        else:
            section = config
        if not isinstance(section, dict):
            raise ConfigurationError("The 'input' section must be a mapping")

        bucket = section.get("bucket")
        if not bucket or not isinstance(bucket, str):
            raise ConfigurationError(
                "input.bucket is required. Example: input.bucket = 'my-bucket'",
                details={"key": "bucket"},
            )

        try:
            interval = float(section.get("interval", DEFAULT_INTERVAL))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"input.interval must be a number: {e}", details={"key": "interval"}) from e
        if interval <= 0:
            raise ConfigurationError(f"input.interval must be positive, got {interval}", details={"key": "interval"})

        delete = section.get("delete", False)
        if isinstance(delete, str):
            delete = delete.strip().lower() in ("1", "true", "yes", "on")
        elif not isinstance(delete, bool):
            raise ConfigurationError("input.delete must be a boolean", details={"key": "delete"})

        tags = section.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        add_field = section.get("add_field") or {}
        if not isinstance(add_field, dict):
            raise ConfigurationError("input.add_field must be a mapping", details={"key": "add_field"})

        store = section.get("store") or {"type": "s3"}
        if not isinstance(store, dict):
            raise ConfigurationError("input.store must be a mapping", details={"key": "store"})

        return cls(
            bucket=bucket,
            prefix=section.get("prefix"),
            sincedb_path=section.get("sincedb_path"),
            backup_to_bucket=section.get("backup_to_bucket"),
            backup_add_prefix=section.get("backup_add_prefix"),
            backup_to_dir=section.get("backup_to_dir"),
            delete=delete,
            interval=interval,
            exclude_pattern=section.get("exclude_pattern"),
            temporary_directory=section.get("temporary_directory") or DEFAULT_TEMPORARY_DIRECTORY,
            codec=_codec_spec(section.get("codec", "plain")),
            type=section.get("type"),
            tags=list(tags),
            add_field=dict(add_field),
            store=dict(store),
        )


def _codec_spec(value: Any) -> dict[str, Any]:
    if isinstance(value, str):
        return {"name": value}
    if isinstance(value, dict) and value.get("name"):
        return dict(value)
    raise ConfigurationError(
        "input.codec must be a codec name or a mapping with a 'name' key",
        details={"key": "codec"},
    )

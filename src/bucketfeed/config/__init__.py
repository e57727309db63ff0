"""
Configuration management.

config.yaml parsing, environment resolution, and the typed ``input`` settings.
"""

from bucketfeed.config.loader import Config, load_config
from bucketfeed.config.resolver import resolve_config
from bucketfeed.config.settings import IngestSettings

__all__ = [
    "load_config",
    "Config",
    "IngestSettings",
    "resolve_config",
]

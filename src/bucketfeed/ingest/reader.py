"""
Line reader for staging files.

Files ending in ``.gz`` are read as a gzip stream; anything else is read as
plain text.
"""

from __future__ import annotations

import gzip
import zlib
from collections.abc import Iterator
from pathlib import Path

from bucketfeed.exceptions import DecodeError
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.reader")


def is_gzip(path: str | Path) -> bool:
    return str(path).endswith(".gz")


def read_lines(path: str | Path) -> Iterator[str]:
    """
    Lazily yield the decoded lines of a local file, in file order.

    The sequence is single-pass. Lines keep their trailing newline; invalid
    UTF-8 bytes are replaced. A consumer that stops iterating early closes
    the underlying file when the generator is discarded.

    Raises:
        DecodeError: If a ``.gz`` file is not a valid gzip stream
    """
    path = Path(path)
    if is_gzip(path):
        yield from _read_gzip(path)
    else:
        with open(path, "rb") as f:
            for raw in f:
                yield raw.decode("utf-8", errors="replace")


def _read_gzip(path: Path) -> Iterator[str]:
    try:
        with gzip.open(path, "rb") as f:
            for raw in f:
                yield raw.decode("utf-8", errors="replace")
    except (gzip.BadGzipFile, EOFError, zlib.error) as e:
        logger.error(f"Cannot uncompress gzip file {path}: {e}")
        raise DecodeError(f"Corrupt gzip stream in {path.name}: {e}", path=str(path)) from e

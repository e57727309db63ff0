"""
Line codecs.

A codec turns raw lines into zero or more records. ``flush`` is called once
after the last line of every object so codecs that buffer (multiline) can
emit what they hold.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any, Protocol

from bucketfeed.exceptions import ConfigurationError

Record = dict[str, Any]

JSON_PARSE_FAILURE_TAG = "_jsonparsefailure"


class Codec(Protocol):
    """Codec protocol."""

    name: str

    def decode(self, line: str) -> Iterable[Record]: ...

    def flush(self) -> Iterable[Record]: ...


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


class PlainCodec:
    """One record per line: ``{"message": line}``."""

    name = "plain"

    def decode(self, line: str) -> Iterable[Record]:
        yield {"message": _strip_eol(line)}

    def flush(self) -> Iterable[Record]:
        return ()


class JsonLinesCodec:
    """
    One JSON object per line.

    Blank lines are skipped. Lines that are not a JSON object are kept as a
    plain message tagged ``_jsonparsefailure``.
    """

    name = "json_lines"

    def decode(self, line: str) -> Iterable[Record]:
        text = _strip_eol(line)
        if not text.strip():
            return
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            yield value
        else:
            yield {"message": text, "tags": [JSON_PARSE_FAILURE_TAG]}

    def flush(self) -> Iterable[Record]:
        return ()


class MultilineCodec:
    """
    Joins continuation lines onto the record they belong to.

    A line matching ``pattern`` (or not matching, with ``negate``) continues
    the previous record; any other line starts a new one. The default pattern
    treats indented lines (stack traces) as continuations.
    """

    name = "multiline"

    def __init__(self, pattern: str = r"^\s", negate: bool = False, separator: str = "\n"):
        try:
            self.pattern = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid multiline pattern '{pattern}': {e}", details={"key": "codec"}) from e
        self.negate = negate
        self.separator = separator
        self._buffer: list[str] = []

    def _continues(self, text: str) -> bool:
        matched = self.pattern.search(text) is not None
        return matched != self.negate

    def decode(self, line: str) -> Iterable[Record]:
        text = _strip_eol(line)
        if self._buffer and self._continues(text):
            self._buffer.append(text)
            return
        yield from self.flush()
        self._buffer = [text]

    def flush(self) -> Iterable[Record]:
        if self._buffer:
            message = self.separator.join(self._buffer)
            self._buffer = []
            yield {"message": message}


def build_codec(spec: dict[str, Any]) -> Codec:
    """
    Resolve a codec spec (``{"name": ..., **options}``) into a codec.

    Raises:
        ConfigurationError: On unknown codec names or bad options
    """
    options = {k: v for k, v in spec.items() if k != "name"}
    name = spec.get("name", "plain")
    if name == "plain":
        return PlainCodec()
    if name == "json_lines":
        return JsonLinesCodec()
    if name == "multiline":
        try:
            return MultilineCodec(**options)
        except TypeError as e:
            raise ConfigurationError(f"Invalid multiline codec options: {e}", details={"key": "codec"}) from e
    raise ConfigurationError(
        f"Unknown codec '{name}'. Available: ['json_lines', 'multiline', 'plain']",
        details={"key": "codec"},
    )

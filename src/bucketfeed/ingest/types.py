"""
Shared types for the ingestion loop.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime


class StopToken:
    """
    Cooperative cancellation flag.

    Set from any thread (typically during shutdown); the ingestion cycle
    checks it between objects and between lines, and the scheduler waits on
    it between cycles.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until set or ``timeout`` elapses; returns whether it is set."""
        return self._event.wait(timeout)


@dataclass
class CycleSummary:
    """Outcome of one ingestion cycle, for logs and callers."""

    processed: list[str] = field(default_factory=list)
    records: int = 0
    failed: str | None = None
    error: str | None = None
    cancelled: bool = False
    checkpoint: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.failed is None

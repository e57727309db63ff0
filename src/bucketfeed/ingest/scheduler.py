"""
Interval scheduler for the ingestion cycle.
"""

from __future__ import annotations

import time

from bucketfeed.ingest.cycle import IngestionCycle
from bucketfeed.ingest.sink import Sink
from bucketfeed.ingest.types import CycleSummary, StopToken
from bucketfeed.utils.logging import get_logger

logger = get_logger("bucketfeed.ingest.scheduler")


class IntervalScheduler:
    """
    Runs the cycle, waits ``interval`` seconds, and repeats until stopped.

    The first cycle starts immediately. Cycles run synchronously on the
    calling thread and never overlap; ``stop()`` may be called from any other
    thread and cuts both the running cycle and the wait short.
    """

    def __init__(self, cycle: IngestionCycle, interval: float, stop_token: StopToken | None = None):
        self.cycle = cycle
        self.interval = interval
        self.stop_token = stop_token or cycle.stop_token
        # The cycle must observe the same token the scheduler is stopped with
        self.cycle.stop_token = self.stop_token
        self.cycles_run = 0
        self.last_summary: CycleSummary | None = None

    def run(self, sink: Sink, *, max_cycles: int | None = None) -> None:
        """
        Block running cycles until ``stop()`` is called.

        Args:
            sink: Receives every decoded record
            max_cycles: Return after this many cycles (default: run forever)
        """
        logger.info(f"Polling every {self.interval:g}s")
        while not self.stop_token.is_set():
            started = time.monotonic()
            try:
                self.last_summary = self.cycle.run(sink)
            except Exception as e:
                logger.error(f"Ingestion cycle error: {e}", exc_info=True)
            self.cycles_run += 1
            logger.debug(f"Cycle {self.cycles_run} took {time.monotonic() - started:.2f}s")

            if max_cycles is not None and self.cycles_run >= max_cycles:
                break
            if self.stop_token.wait(self.interval):
                break
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Request shutdown; safe to call from another thread."""
        self.stop_token.set()

"""
Background Status Reporter

Periodically logs how many requests the server has handled and how many
items the store holds.
"""

import asyncio
import logging

from .config.settings import settings
from .storage.store import KVStore

logger = logging.getLogger(__name__)


class StatusReporter:
    """
    Emits a status log line every `interval` seconds until stopped.

    The stop event is awaited with the interval as timeout, so a stop
    request is observed immediately rather than at the next tick.
    """

    def __init__(self, store: KVStore, interval: float = None):
        self.store = store
        self.interval = interval if interval is not None else settings.REPORT_INTERVAL

    async def run(self, stop_event: asyncio.Event) -> None:
        """Report until stop_event is set."""
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                self.report()
                continue

            logger.info("Stopping background worker...")
            return

    def report(self) -> str:
        """Log and return one status line."""
        size, requests = self.store.snapshot_stats()
        line = f"Server Status: {requests} requests, {size} items in database"
        logger.info(line)
        return line

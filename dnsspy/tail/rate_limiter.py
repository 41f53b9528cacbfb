"""
Query pacing for the tail engine
"""

import logging
import queue
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class TickerRateLimiter:
    """
    Hands out one permit per ``interval`` seconds.

    A daemon thread ticks at a fixed cadence and drops each tick into a
    single-slot queue. Ticks that arrive while the slot is full are discarded,
    so permits never accumulate while the consumer is slow. ``acquire`` blocks
    until a permit is available.
    """

    def __init__(self, interval: float):
        if interval <= 0:
            raise ValueError('interval must be positive')
        self.interval = interval
        self._permits = queue.Queue(maxsize=1)
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._tick, name='dnsspy-ticker', daemon=True)
        self._thread.start()

    def _tick(self):
        while not self._closed.wait(self.interval):
            try:
                self._permits.put_nowait(time.monotonic())
            except queue.Full:
                pass

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Block until a permit is available

        Args:
            cancel_event: Optional event; when set the wait is abandoned

        Returns:
            True once a permit was taken, False if cancelled or closed
        """
        # Wake up periodically to notice cancellation
        poll = min(self.interval, 0.1)
        while True:
            if cancel_event is not None and cancel_event.is_set():
                return False
            if self._closed.is_set() and self._permits.empty():
                return False
            try:
                self._permits.get(timeout=poll)
                return True
            except queue.Empty:
                continue

    def close(self):
        """Stop the ticker thread"""
        self._closed.set()
        self._thread.join(timeout=self.interval + 1)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

"""
Tail engine: turns paced, paginated, overlapping FilterLogEvents queries into
one ordered stream of new, matching log records.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from dnsspy.errors import ConsumerDisconnected, FatalQueryError, TransientQueryError, ValidationError
from dnsspy.models.records import QueryPage, RawRecord
from dnsspy.models.request import TailRequest
from dnsspy.tail.cursor import Cursor
from dnsspy.tail.filters import MatchFilter
from dnsspy.tail.rate_limiter import TickerRateLimiter

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TailState(Enum):
    STARTING = 'starting'
    PAGING = 'paging'
    WAITING = 'waiting'
    DONE = 'done'
    ERROR = 'error'


@dataclass
class TailStats:
    queries: int = 0
    pages: int = 0
    records_seen: int = 0
    duplicates: int = 0
    filtered: int = 0
    emitted: int = 0
    retries: int = 0
    windows: int = 0


class TailEngine:
    """
    Polling state machine for one tailing session.

    STARTING validates the request and happens in the constructor, so a bad
    request raises ValidationError before any query is issued. Iterating the
    engine runs PAGING / WAITING until DONE, or ERROR when a query fails for
    good. Records are yielded in service order, page by page; each identity is
    yielded at most once per session.

    The engine is driven by a single thread (whoever iterates it). ``stop`` may
    be called from any thread and is honoured at the next permit wait, query
    boundary or yield.
    """

    def __init__(
        self,
        request: TailRequest,
        query_client,
        limiter=None,
        clock: Callable[[], int] = None,
        push_down: bool = False,
    ):
        """
        Initialize the engine

        Args:
            request: The tail request for this session
            query_client: Object with a CloudWatchLogsQueryClient compatible ``query`` method
            limiter: Object with a blocking ``acquire(cancel_event)``; a TickerRateLimiter
                at ``request.poll_interval`` is created (and closed) by the engine if omitted
            clock: Returns "now" in epoch milliseconds
            push_down: Send plain-text include patterns to the service as a filter pattern

        Raises:
            ValidationError: If the patterns do not compile or the window is inverted
        """
        self.request = request
        self.query_client = query_client
        self.state = TailState.STARTING
        self.stats = TailStats()
        self.error: Optional[Exception] = None
        self._clock = clock or _now_ms
        self._stop = threading.Event()
        self._owns_limiter = limiter is None
        self._limiter = limiter
        self._first_window = True

        try:
            self._filter = MatchFilter(request.include_pattern, request.exclude_pattern)
            end_ms = request.end_ms
            if end_ms is not None and request.start_ms > end_ms:
                raise ValidationError('start_time must not be after end_time')
        except ValidationError as e:
            self.state = TailState.ERROR
            self.error = e
            raise

        self._filter_pattern = self._filter.push_down_pattern() if push_down else None
        self._cursor = Cursor(next_window_start=request.start_ms)

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self):
        """Ask the engine to finish at the next suspension point"""
        self._stop.set()

    def __iter__(self) -> Iterator[RawRecord]:
        return self.records()

    def records(self) -> Iterator[RawRecord]:
        """
        Lazily yield matching records until the session ends

        A session is iterated once; a second iterator raises RuntimeError.

        Raises:
            FatalQueryError: When a query fails permanently or retries are exhausted
        """
        if self.state is not TailState.STARTING:
            raise RuntimeError(f"Tail session already {self.state.value}")

        if self._limiter is None:
            self._limiter = TickerRateLimiter(self.request.poll_interval)

        logger.info(f"Tailing log group {self.request.source} from {self.request.start_time.isoformat()} "
                    f"(follow={self.request.follow})")
        self.state = TailState.PAGING
        try:
            yield from self._poll()
            self.state = TailState.DONE
        except GeneratorExit:
            # Consumer stopped reading
            self.state = TailState.DONE
            raise
        except FatalQueryError as e:
            self.state = TailState.ERROR
            self.error = e
            logger.error(f"Tail session for {self.request.source} failed: {str(e)}")
            raise
        except Exception as e:
            self.state = TailState.ERROR
            self.error = e
            logger.error(f"Tail session for {self.request.source} failed unexpectedly: {str(e)}")
            raise
        finally:
            if self._owns_limiter:
                self._limiter.close()
            logger.info(f"Tail session for {self.request.source} ended ({self.state.value}): {asdict(self.stats)}")

    def run(self, sink: Callable[[RawRecord], None]) -> int:
        """
        Push every record to ``sink`` until the session ends

        A sink raising ConsumerDisconnected ends the session cleanly.

        Returns:
            Number of records delivered to the sink
        """
        delivered = 0
        stream = self.records()
        try:
            for record in stream:
                try:
                    sink(record)
                except ConsumerDisconnected:
                    logger.info("Consumer disconnected, stopping tail")
                    self.stop()
                    break
                delivered += 1
        finally:
            stream.close()
        return delivered

    def _range_start(self) -> int:
        if self._first_window:
            return self.request.start_ms
        return max(self.request.start_ms, self._cursor.next_window_start - self.request.overlap_ms)

    def _window_end(self, range_start: int) -> int:
        now = self._clock()
        end_ms = self.request.end_ms
        if end_ms is None:
            window_end = now
        elif self.request.follow:
            window_end = min(now, end_ms)
        else:
            window_end = end_ms
        return max(window_end, range_start)

    def _window_complete(self, window_end: int) -> bool:
        if not self.request.follow:
            return True
        end_ms = self.request.end_ms
        return end_ms is not None and window_end >= end_ms

    def _poll(self) -> Iterator[RawRecord]:
        range_start = self._range_start()
        window_end = self._window_end(range_start)
        latest: Optional[int] = None

        while True:
            page = self._fetch(range_start, window_end)
            if page is None:
                logger.info("Tail stopped while waiting for the query service")
                return

            self.stats.pages += 1
            for record in page.records:
                self.stats.records_seen += 1
                if latest is None or record.timestamp > latest:
                    latest = record.timestamp
                if not self._cursor.seen.should_emit(record.event_id, record.timestamp):
                    self.stats.duplicates += 1
                    continue
                if not self._filter.matches(record.message):
                    self.stats.filtered += 1
                    continue
                if self._stop.is_set():
                    return
                self.stats.emitted += 1
                yield record

            if page.next_token:
                self._cursor.next_token = page.next_token
                continue

            self._close_window(window_end, latest)
            if self._window_complete(window_end):
                return

            self.state = TailState.WAITING
            range_start = self._range_start()
            window_end = self._window_end(range_start)
            latest = None
            self.state = TailState.PAGING

    def _close_window(self, window_end: int, latest: Optional[int]):
        """Advance the cursor past an exhausted window and trim dedup state"""
        self.stats.windows += 1
        self._first_window = False
        # Records stamped past the window end must not push the floor beyond it
        floor = min(latest, window_end) if latest is not None else window_end
        self._cursor.advance(floor)
        evicted = self._cursor.seen.evict_before(self._range_start())
        logger.debug(f"Window closed at {window_end}: next start {self._cursor.next_window_start}, "
                     f"evicted {evicted}, tracking {len(self._cursor.seen)}, stats {asdict(self.stats)}")

    def _fetch(self, range_start: int, range_end: int) -> Optional[QueryPage]:
        """
        Query one page, retrying transient failures with the same window and token

        Returns:
            The page, or None if the engine was stopped
        """
        attempts = 0
        while True:
            if not self._limiter.acquire(self._stop) or self._stop.is_set():
                return None

            self.stats.queries += 1
            try:
                page = self.query_client.query(
                    self.request.source,
                    self.request.stream_hint,
                    range_start,
                    range_end,
                    self._cursor.next_token,
                    self._filter_pattern,
                )
            except TransientQueryError as e:
                attempts += 1
                if attempts > self.request.max_retries:
                    logger.error(f"Query failed after {attempts} attempts: {str(e)}")
                    raise FatalQueryError(f"Query failed after {attempts} attempts: {str(e)}",
                                          error_code=e.error_code) from e
                self.stats.retries += 1
                logger.warning(f"Transient query error, retrying (attempt {attempts}/{self.request.max_retries}): {str(e)}")
                continue

            if self._stop.is_set():
                return None
            return page

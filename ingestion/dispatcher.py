"""
Rate-governed request dispatcher for outbound provider calls.

All HTTP calls to the provider go through a single consumer reading an
asyncio.Queue, so exactly one request is in flight at a time and the
minute/hour/day windows are counted globally across every endpoint.

- Windows are checked before every dispatch; a saturated window puts the
  consumer to sleep until the latest blocking reset (capped per cycle)
- Counters are incremented for all windows at once before the call is issued
- Retryable failures (network errors, HTTP 429) are retried here with
  exponential backoff and never reach the caller unless retries run out
- Any other failure is delivered to the caller of that request only
"""

import asyncio
import time
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.config import settings
from core.exceptions import RateLimitError, RequestCancelledError, RetryableError

logger = logging.getLogger(__name__)

RequestCall = Callable[[], Awaitable[Any]]


class MonotonicClock:
    """Default clock; tests inject a fake one that advances on sleep"""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float):
        if seconds > 0:
            await asyncio.sleep(seconds)


@dataclass
class RateLimitWindow:
    """Rolling counter for one scope (minute, hour or day)"""
    scope: str
    limit: int
    duration: float
    count: int = 0
    reset_time: float = 0.0

    def refresh(self, now: float):
        if now >= self.reset_time:
            self.count = 0
            self.reset_time = now + self.duration

    def saturated(self) -> bool:
        return self.count >= self.limit

    def wait_time(self, now: float) -> float:
        return max(self.reset_time - now, 0.0)

    def status(self, now: float) -> Dict[str, Any]:
        return {
            "used": self.count,
            "limit": self.limit,
            "remaining": max(self.limit - self.count, 0),
            "reset_in": round(self.wait_time(now), 3),
        }


class RateLimitState:
    """
    Explicit rate-limit context: the three windows plus the clock they are
    measured against.
    """

    def __init__(
        self,
        per_minute: int,
        per_hour: int,
        per_day: int,
        clock=None,
        max_sleep: float = 60.0,
        max_wait_cycles: int = 1500
    ):
        self.clock = clock or MonotonicClock()
        self.max_sleep = max_sleep
        self.max_wait_cycles = max_wait_cycles

        now = self.clock.now()
        self.windows: List[RateLimitWindow] = [
            RateLimitWindow("minute", per_minute, 60.0, reset_time=now + 60.0),
            RateLimitWindow("hour", per_hour, 3600.0, reset_time=now + 3600.0),
            RateLimitWindow("day", per_day, 86400.0, reset_time=now + 86400.0),
        ]

    @classmethod
    def from_settings(cls, clock=None) -> "RateLimitState":
        return cls(
            per_minute=settings.RATE_LIMIT_PER_MINUTE,
            per_hour=settings.RATE_LIMIT_PER_HOUR,
            per_day=settings.RATE_LIMIT_PER_DAY,
            clock=clock,
            max_sleep=settings.RATE_LIMIT_MAX_SLEEP,
            max_wait_cycles=settings.RATE_LIMIT_MAX_WAIT_CYCLES,
        )

    def window(self, scope: str) -> RateLimitWindow:
        for w in self.windows:
            if w.scope == scope:
                return w
        raise KeyError(scope)

    async def acquire(self):
        """
        Block until every window has capacity, then take one slot in each.

        Raises:
            RateLimitError: if capacity did not appear within max_wait_cycles sleeps
        """
        for cycle in range(self.max_wait_cycles):
            now = self.clock.now()
            blocked = []
            for w in self.windows:
                w.refresh(now)
                if w.saturated():
                    blocked.append(w)

            if not blocked:
                # No suspension between the check above and this increment
                for w in self.windows:
                    w.count += 1
                return

            wait = max(w.wait_time(now) for w in blocked)
            sleep_for = min(wait, self.max_sleep)
            logger.info(
                f"Rate limit reached ({', '.join(w.scope for w in blocked)}), "
                f"waiting {sleep_for:.1f}s (cycle {cycle + 1}/{self.max_wait_cycles})"
            )
            await self.clock.sleep(sleep_for)

        raise RateLimitError(
            "Rate limit wait exhausted",
            context={
                "max_wait_cycles": self.max_wait_cycles,
                "windows": {w.scope: w.count for w in self.windows},
            }
        )

    def status(self) -> Dict[str, Any]:
        now = self.clock.now()
        for w in self.windows:
            w.refresh(now)
        return {w.scope: w.status(now) for w in self.windows}


@dataclass
class _PendingRequest:
    call: RequestCall
    future: asyncio.Future
    label: str


class RateLimitedDispatcher:
    """
    Single-consumer FIFO in front of the provider API.

    Usage:
        dispatcher = RateLimitedDispatcher()
        data = await dispatcher.enqueue(lambda: client.get_json(...), label="senate p1")
    """

    def __init__(
        self,
        state: Optional[RateLimitState] = None,
        clock=None,
        inter_request_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None
    ):
        self.clock = clock or (state.clock if state else MonotonicClock())
        self.state = state or RateLimitState.from_settings(self.clock)
        self.inter_request_delay = (
            settings.INTER_REQUEST_DELAY if inter_request_delay is None else inter_request_delay
        )
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.RETRY_DELAY if retry_delay is None else retry_delay

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[_PendingRequest] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def is_processing(self) -> bool:
        return self._current is not None

    def _ensure_worker(self):
        if self._worker is None or self._worker.done():
            if self._queue is None:
                self._queue = asyncio.Queue()
            self._worker = asyncio.create_task(self._drain(self._queue))

    async def enqueue(self, call: RequestCall, label: str = "request") -> Any:
        """Submit a request and wait for its result (or its own failure)."""
        future = asyncio.get_running_loop().create_future()
        self._ensure_worker()
        await self._queue.put(_PendingRequest(call, future, label))
        return await future

    async def _drain(self, queue: asyncio.Queue):
        while True:
            request = await queue.get()
            if request.future.done():
                continue

            self._current = request
            try:
                result = await self._dispatch(request)
            except Exception as e:
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(result)
            finally:
                if self._current is request:
                    self._current = None

    async def _dispatch(self, request: _PendingRequest) -> Any:
        attempt = 0
        while True:
            await self.state.acquire()
            try:
                return await request.call()
            except RetryableError as e:
                if attempt >= self.max_retries:
                    logger.error(f"{request.label}: giving up after {attempt + 1} attempts: {e.message}")
                    raise

                retry_after = getattr(e, "retry_after", None)
                delay = retry_after if retry_after else self.retry_delay * (2 ** attempt)
                delay = min(delay, self.state.max_sleep)
                attempt += 1
                logger.warning(
                    f"{request.label}: {type(e).__name__}, retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await self.clock.sleep(delay)
            finally:
                await self.clock.sleep(self.inter_request_delay)

    def clear_queue(self) -> int:
        """
        Reject every pending request (and the in-flight one) with
        RequestCancelledError and stop the consumer.

        Returns:
            Number of requests rejected
        """
        rejected = 0
        to_reject: List[_PendingRequest] = []

        if self._queue is not None:
            while True:
                try:
                    to_reject.append(self._queue.get_nowait())
                except asyncio.QueueEmpty:
                    break
        if self._current is not None:
            to_reject.append(self._current)

        for request in to_reject:
            if not request.future.done():
                request.future.set_exception(
                    RequestCancelledError("Request cancelled", context={"request": request.label})
                )
                rejected += 1

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()

        self._worker = None
        self._queue = None
        self._current = None

        if rejected:
            logger.info(f"Dispatcher queue cleared, {rejected} request(s) cancelled")
        return rejected

    async def aclose(self):
        worker = self._worker
        self.clear_queue()
        if worker is not None:
            await asyncio.gather(worker, return_exceptions=True)

    def get_rate_limit_status(self) -> Dict[str, Any]:
        status = self.state.status()
        status["queue_length"] = self.pending
        status["processing"] = self.is_processing
        return status

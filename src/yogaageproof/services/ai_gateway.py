"""Rate-limited gateway for every call to the AI service.

Calls are queued FIFO and dispatched one at a time by a single drain task.
At most ``rate_limit`` calls are admitted in any trailing ``window_seconds``
window. Each admitted call is retried on transient failures and bounded by
a hard timeout; a timeout is surfaced immediately and never retried.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from yogaageproof.domain.errors import AITimeoutError
from yogaageproof.services.retry import Sleep, call_with_retry

T = TypeVar("T")

RATE_LIMIT = 50
RATE_WINDOW_SECONDS = 60.0
_WAIT_BUFFER_SECONDS = 0.1

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayStats:
    """Current load on the gateway."""

    queue_size: int
    current_requests: int
    rate_limit: int


@dataclass
class _QueuedCall:
    func: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"
    timeout: float
    operation: str


class AIRequestGateway:
    """Single choke point that queues, rate-limits, retries and times out."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        rate_limit: int = RATE_LIMIT,
        window_seconds: float = RATE_WINDOW_SECONDS,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 4.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[_QueuedCall] = deque()
        self._timestamps: deque[float] = deque()
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    async def execute(
        self,
        request_fn: Callable[[], Awaitable[T]],
        timeout: float = 30.0,
        operation: str = "AI operation",
    ) -> T:
        """Queue a call and wait for its result."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.append(
            _QueuedCall(
                func=request_fn, future=future, timeout=timeout, operation=operation
            )
        )
        _logger.info("Queued %s (queue depth=%s)", operation, len(self._queue))
        if not self.is_draining:
            self._drain_task = asyncio.create_task(self._drain())
        return await future

    def stats(self) -> GatewayStats:
        """Return queue depth and admissions in the current window."""
        self._prune(self._clock())
        return GatewayStats(
            queue_size=len(self._queue),
            current_requests=len(self._timestamps),
            rate_limit=self.rate_limit,
        )

    async def close(self) -> None:
        """Stop draining and fail any calls still waiting."""
        if self._drain_task is not None:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
            self._drain_task = None
        while self._queue:
            call = self._queue.popleft()
            if not call.future.done():
                call.future.cancel()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    async def _drain(self) -> None:
        while self._queue:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.rate_limit:
                wait = self.window_seconds - (now - self._timestamps[0])
                _logger.info(
                    "Rate limit reached, waiting %.1fs (queue depth=%s)",
                    wait,
                    len(self._queue),
                )
                await self._sleep(max(wait, 0.0) + _WAIT_BUFFER_SECONDS)
                continue

            call = self._queue.popleft()
            if call.future.done():
                continue
            self._timestamps.append(self._clock())
            try:
                result = await self._run(call)
            except Exception as exc:  # noqa: BLE001
                if not call.future.done():
                    call.future.set_exception(exc)
            else:
                if not call.future.done():
                    call.future.set_result(result)

    async def _run(self, call: _QueuedCall) -> Any:
        deadline = asyncio.timeout(call.timeout)
        try:
            async with deadline:
                return await call_with_retry(
                    call.func,
                    action=call.operation,
                    max_retries=self.max_retries,
                    initial_delay=self.initial_delay,
                    max_delay=self.max_delay,
                    sleep=self._sleep,
                )
        except TimeoutError as exc:
            if deadline.expired():
                _logger.warning(
                    "%s timed out after %.1fs", call.operation, call.timeout
                )
                raise AITimeoutError(call.operation) from exc
            raise

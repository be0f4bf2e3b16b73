"""Tests for the AI request gateway and retry policy."""

import asyncio

import pytest

from yogaageproof.domain.errors import (
    AIRateLimitError,
    AITimeoutError,
    ClientError,
    NetworkError,
    ServerError,
)
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.retry import backoff_delay, call_with_retry, is_retryable
from tests.conftest import FakeClock, FakeSleep


class _FlakyCall:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def test_execute_returns_result() -> None:
    gateway = AIRequestGateway(sleep=FakeSleep())
    call = _FlakyCall([])

    result = asyncio.run(gateway.execute(call, operation="Skin analysis"))

    assert result == "ok"
    assert call.attempts == 1


def test_rate_limit_defers_calls_beyond_window_budget() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock=clock)
    gateway = AIRequestGateway(rate_limit=2, window_seconds=60, clock=clock, sleep=sleep)
    admitted_at: list[float] = []

    async def request() -> float:
        admitted_at.append(clock.now)
        return clock.now

    async def run() -> list[float]:
        return await asyncio.gather(*(gateway.execute(request) for _ in range(3)))

    results = asyncio.run(run())

    assert admitted_at[:2] == [0.0, 0.0]
    assert admitted_at[2] == pytest.approx(60.1)
    assert results == admitted_at
    assert sleep.delays == [pytest.approx(60.1)]


def test_admissions_in_any_window_never_exceed_limit() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock=clock)
    gateway = AIRequestGateway(rate_limit=3, window_seconds=10, clock=clock, sleep=sleep)
    admitted_at: list[float] = []

    async def request() -> None:
        admitted_at.append(clock.now)
        clock.now += 1

    async def run() -> None:
        await asyncio.gather(*(gateway.execute(request) for _ in range(10)))

    asyncio.run(run())

    assert len(admitted_at) == 10
    for start in admitted_at:
        in_window = [t for t in admitted_at if start <= t < start + 10]
        assert len(in_window) <= 3


def test_calls_are_admitted_in_fifo_order() -> None:
    gateway = AIRequestGateway(sleep=FakeSleep())
    order: list[int] = []

    def make(index: int):  # noqa: ANN202
        async def request() -> int:
            order.append(index)
            return index

        return request

    async def run() -> list[int]:
        return await asyncio.gather(*(gateway.execute(make(i)) for i in range(5)))

    assert asyncio.run(run()) == [0, 1, 2, 3, 4]
    assert order == [0, 1, 2, 3, 4]


def test_server_errors_are_retried_with_exponential_backoff() -> None:
    sleep = FakeSleep()
    gateway = AIRequestGateway(sleep=sleep)
    call = _FlakyCall([ServerError("down", 503)] * 3)

    result = asyncio.run(gateway.execute(call))

    assert result == "ok"
    assert call.attempts == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_gives_up_after_three_retries() -> None:
    sleep = FakeSleep()
    gateway = AIRequestGateway(sleep=sleep)
    call = _FlakyCall([ServerError("down", 500)] * 5)

    with pytest.raises(ServerError):
        asyncio.run(gateway.execute(call))

    assert call.attempts == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.parametrize("status", [400, 401, 403, 413])
def test_client_errors_are_not_retried(status: int) -> None:
    sleep = FakeSleep()
    gateway = AIRequestGateway(sleep=sleep)
    call = _FlakyCall([ClientError("rejected", status)])

    with pytest.raises(ClientError) as exc_info:
        asyncio.run(gateway.execute(call))

    assert exc_info.value.status == status
    assert call.attempts == 1
    assert sleep.delays == []


def test_rate_limit_and_network_errors_are_retried() -> None:
    sleep = FakeSleep()
    gateway = AIRequestGateway(sleep=sleep)
    call = _FlakyCall([AIRateLimitError(), NetworkError()])

    assert asyncio.run(gateway.execute(call)) == "ok"
    assert call.attempts == 3


def test_timeout_raises_without_retry() -> None:
    gateway = AIRequestGateway()
    attempts = 0

    async def slow() -> str:
        nonlocal attempts
        attempts += 1
        await asyncio.sleep(5)
        return "late"

    with pytest.raises(AITimeoutError) as exc_info:
        asyncio.run(gateway.execute(slow, timeout=0.05, operation="Skin analysis"))

    assert isinstance(exc_info.value, TimeoutError)
    assert exc_info.value.operation == "Skin analysis"
    assert attempts == 1


def test_failed_call_does_not_block_the_queue() -> None:
    gateway = AIRequestGateway(sleep=FakeSleep())
    failing = _FlakyCall([ClientError("bad", 400)])
    succeeding = _FlakyCall([], result="second")

    async def run() -> list[object]:
        return await asyncio.gather(
            gateway.execute(failing), gateway.execute(succeeding), return_exceptions=True
        )

    first, second = asyncio.run(run())

    assert isinstance(first, ClientError)
    assert second == "second"


def test_stats_reports_admissions_in_window() -> None:
    clock = FakeClock()
    gateway = AIRequestGateway(rate_limit=50, window_seconds=60, clock=clock)

    async def run() -> None:
        await gateway.execute(_FlakyCall([]))
        await gateway.execute(_FlakyCall([]))

    asyncio.run(run())
    stats = gateway.stats()

    assert stats.current_requests == 2
    assert stats.queue_size == 0
    assert stats.rate_limit == 50

    clock.now = 61
    assert gateway.stats().current_requests == 0


def test_retry_helpers() -> None:
    assert [backoff_delay(attempt, 1.0, 4.0) for attempt in range(4)] == [
        1.0,
        2.0,
        4.0,
        4.0,
    ]
    assert is_retryable(ServerError("x", 502))
    assert not is_retryable(ClientError("x", 404))
    assert not is_retryable(ValueError("x"))


def test_call_with_retry_normalizes_plain_exceptions() -> None:
    sleep = FakeSleep()
    attempts = 0

    async def broken() -> None:
        nonlocal attempts
        attempts += 1
        raise ConnectionError("reset")

    with pytest.raises(NetworkError):
        asyncio.run(call_with_retry(broken, action="Upload", max_retries=2, sleep=sleep))

    assert attempts == 3
    assert sleep.delays == [1.0, 2.0]

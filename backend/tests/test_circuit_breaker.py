"""
Unit tests for the circuit breaker.

Time is driven by an injected clock so state transitions are deterministic.
"""
import pytest

from caseflow.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


async def ok():
    return "success"


async def fail():
    raise RuntimeError("provider down")


async def run(cb, func):
    try:
        return await cb.call_async(func)
    except RuntimeError:
        return None


@pytest.fixture
def clock():
    return FakeClock()


def make_breaker(clock, **kwargs):
    options = dict(
        failure_threshold=0.5,
        time_window_seconds=60,
        open_duration_seconds=30,
        min_requests=4,
        half_open_max_probes=1,
        half_open_success_threshold=2,
        clock=clock,
    )
    options.update(kwargs)
    return CircuitBreaker("test", **options)


@pytest.mark.asyncio
async def test_closed_state_passes_calls(clock):
    cb = make_breaker(clock)

    assert cb.state == CircuitState.CLOSED
    assert await cb.call_async(ok) == "success"


@pytest.mark.asyncio
async def test_exceptions_are_reraised(clock):
    cb = make_breaker(clock)
    with pytest.raises(RuntimeError):
        await cb.call_async(fail)


@pytest.mark.asyncio
async def test_stays_closed_below_min_requests(clock):
    cb = make_breaker(clock)
    for _ in range(3):
        await run(cb, fail)

    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_opens_when_failure_rate_reached(clock):
    cb = make_breaker(clock)
    await run(cb, ok)
    await run(cb, ok)
    await run(cb, fail)
    await run(cb, fail)

    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        await cb.call_async(ok)


@pytest.mark.asyncio
async def test_old_outcomes_leave_the_window(clock):
    cb = make_breaker(clock)
    for _ in range(3):
        await run(cb, fail)
    clock.advance(61)
    await run(cb, fail)

    assert cb.state == CircuitState.CLOSED
    assert cb.get_metrics()["recent_requests"] == 1


@pytest.mark.asyncio
async def test_half_open_after_open_duration(clock):
    cb = make_breaker(clock)
    for _ in range(4):
        await run(cb, fail)
    assert cb.state == CircuitState.OPEN

    clock.advance(29)
    assert cb.state == CircuitState.OPEN
    clock.advance(1)
    assert cb.state == CircuitState.HALF_OPEN


@pytest.mark.asyncio
async def test_half_open_closes_after_successful_probes(clock):
    cb = make_breaker(clock)
    for _ in range(4):
        await run(cb, fail)
    clock.advance(30)

    assert await cb.call_async(ok) == "success"
    assert cb.state == CircuitState.HALF_OPEN
    assert await cb.call_async(ok) == "success"
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_probe_failure_reopens(clock):
    cb = make_breaker(clock)
    for _ in range(4):
        await run(cb, fail)
    clock.advance(30)

    await run(cb, fail)

    assert cb.state == CircuitState.OPEN
    assert cb.get_metrics()["opened_at"] == clock.now


@pytest.mark.asyncio
async def test_half_open_limits_concurrent_probes(clock):
    import asyncio

    cb = make_breaker(clock)
    for _ in range(4):
        await run(cb, fail)
    clock.advance(30)

    release = asyncio.Event()

    async def slow():
        await release.wait()
        return "done"

    probe = asyncio.create_task(cb.call_async(slow))
    await asyncio.sleep(0)

    with pytest.raises(CircuitBreakerOpenError):
        await cb.call_async(ok)

    release.set()
    assert await probe == "done"


@pytest.mark.asyncio
async def test_cancelled_probe_frees_its_slot(clock):
    import asyncio

    cb = make_breaker(clock)
    for _ in range(4):
        await run(cb, fail)
    clock.advance(31)

    async def hang():
        await asyncio.Event().wait()

    probe = asyncio.create_task(cb.call_async(hang))
    await asyncio.sleep(0)
    probe.cancel()
    with pytest.raises(asyncio.CancelledError):
        await probe

    assert cb.state == CircuitState.HALF_OPEN

    clock.advance(3600)
    results = [await cb.call_async(ok) for _ in range(5)]

    assert results == ["success"] * 5
    assert cb.state == CircuitState.CLOSED


def test_metrics_snapshot(clock):
    cb = make_breaker(clock)
    metrics = cb.get_metrics()

    assert metrics["name"] == "test"
    assert metrics["state"] == "closed"
    assert metrics["recent_requests"] == 0
    assert metrics["failure_rate"] == 0.0
    assert metrics["opened_at"] is None

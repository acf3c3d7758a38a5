"""
Failure Injection Tests.

Validates that notification failures stay isolated from the matching flow.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock
from sqlalchemy.exc import OperationalError

from backend.app.core.exceptions import InternalError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.services.notification_dispatcher import NotificationDispatcher


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers(mocker):
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=10)
    clock = mocker.patch("backend.app.core.reliability.time.time", return_value=1000.0)

    with pytest.raises(ValueError):
        await cb.call(AsyncMock(side_effect=ValueError("Boom")))
    assert cb.state == "OPEN"

    clock.return_value = 1011.0
    result = await cb.call(AsyncMock(return_value="ok"))

    assert result == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=60)

    with pytest.raises(ValueError):
        await cb.call(AsyncMock(side_effect=ValueError("Boom")))
    await cb.call(AsyncMock(return_value=None))

    assert cb.failures == 0
    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_dispatcher_runs_jobs_in_background():
    dispatcher = NotificationDispatcher(queue_size=10, workers=2)
    job = AsyncMock()
    try:
        assert dispatcher.submit(job, 1)
        assert dispatcher.submit(job, 2)
        job.assert_not_awaited()  # Nothing runs until the caller yields

        await dispatcher.drain()

        assert job.await_count == 2
    finally:
        await dispatcher.aclose()


@pytest.mark.asyncio
async def test_dispatcher_isolates_failures():
    dispatcher = NotificationDispatcher(queue_size=10, workers=1)
    failing = AsyncMock(side_effect=RuntimeError("provider down"))
    healthy = AsyncMock()
    try:
        dispatcher.submit(failing, 1)
        dispatcher.submit(healthy, 2)
        await dispatcher.drain()
    finally:
        await dispatcher.aclose()

    healthy.assert_awaited_once_with(2)
    assert dispatcher.failed == 1


@pytest.mark.asyncio
async def test_dispatcher_drops_when_queue_full():
    dispatcher = NotificationDispatcher(queue_size=1, workers=1)
    job = AsyncMock()
    try:
        assert dispatcher.submit(job, "first")
        assert not dispatcher.submit(job, "second")
        await dispatcher.drain()
    finally:
        await dispatcher.aclose()

    job.assert_awaited_once_with("first")
    assert dispatcher.dropped == 1


@pytest.mark.asyncio
async def test_dispatcher_stops_calling_failing_notifier():
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60, name="test")
    dispatcher = NotificationDispatcher(queue_size=10, workers=1, circuit_breaker=breaker)
    failing = AsyncMock(side_effect=RuntimeError("provider down"))
    try:
        for i in range(4):
            dispatcher.submit(failing, i)
        await dispatcher.drain()
    finally:
        await dispatcher.aclose()

    assert failing.await_count == 2
    assert breaker.state == "OPEN"
    assert dispatcher.failed == 4


@pytest.mark.asyncio
async def test_dispatcher_close_cancels_idle_workers():
    dispatcher = NotificationDispatcher(queue_size=10, workers=2)
    dispatcher.submit(AsyncMock())
    await dispatcher.drain()
    workers = list(dispatcher._workers)

    await dispatcher.aclose()
    await asyncio.sleep(0)

    assert all(w.done() for w in workers)


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_internal_error(manager, store, mocker):
    mocker.patch.object(
        store, "get_match",
        side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
    )

    with pytest.raises(InternalError) as exc_info:
        await manager.accept(1, 10)

    assert exc_info.value.status_code == 500
    assert exc_info.value.details == {"operation": "accept"}


@pytest.mark.asyncio
async def test_store_failure_on_create_surfaces_as_internal_error(manager, store, mocker):
    mocker.patch.object(
        store, "get_trip",
        side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
    )

    with pytest.raises(InternalError):
        await manager.create_matches_for_trip(1)

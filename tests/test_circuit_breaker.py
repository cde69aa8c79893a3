from unittest.mock import AsyncMock

import pytest

from narrative_memory.core.circuit_breaker import CircuitBreaker, CircuitState, RetryWithCircuitBreaker
from narrative_memory.core.errors import RateLimitError, ServiceError


@pytest.mark.asyncio
async def test_opens_after_threshold():
    breaker = CircuitBreaker("test", failure_threshold=2, recovery_timeout=60.0)
    func = AsyncMock(side_effect=ValueError("nope"))

    for _ in range(2):
        with pytest.raises(ValueError):
            await breaker.call_async(func)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(ServiceError):
        await breaker.call_async(func)
    assert func.await_count == 2


@pytest.mark.asyncio
async def test_half_open_recovers_after_successes():
    breaker = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.0, success_threshold=2)
    with pytest.raises(ValueError):
        await breaker.call_async(AsyncMock(side_effect=ValueError("nope")))

    ok = AsyncMock(return_value=42)
    assert await breaker.call_async(ok) == 42
    assert breaker.state == CircuitState.HALF_OPEN
    assert await breaker.call_async(ok) == 42
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_unexpected_exceptions_do_not_count():
    breaker = CircuitBreaker("test", failure_threshold=1, expected_exception_types=(RateLimitError,))
    with pytest.raises(KeyError):
        await breaker.call_async(AsyncMock(side_effect=KeyError("x")))
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_retry_retries_retryable_errors():
    breaker = CircuitBreaker("test", failure_threshold=10)
    retry = RetryWithCircuitBreaker(breaker, max_retries=3, initial_delay=0.0)
    func = AsyncMock(side_effect=[RateLimitError("slow down"), RateLimitError("slow down"), "done"])

    assert await retry.call_async(func) == "done"
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_retries():
    breaker = CircuitBreaker("test", failure_threshold=10)
    retry = RetryWithCircuitBreaker(breaker, max_retries=2, initial_delay=0.0)
    func = AsyncMock(side_effect=RateLimitError("slow down"))

    with pytest.raises(RateLimitError):
        await retry.call_async(func)
    assert func.await_count == 2

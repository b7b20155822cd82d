from __future__ import annotations

from types import SimpleNamespace

import aiohttp
import pytest

from pumpfun_trader.exceptions import (
    APIError,
    InvalidSlippageError,
    RetryError,
    ValidationError,
)
from pumpfun_trader.retry import (
    Classification,
    RetryExecutor,
    RetryPolicy,
    classify,
    describe_failure,
)


class _Flaky:
    def __init__(self, failures: int, error: BaseException) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__("request failed")
        self.response = SimpleNamespace(status_code=status_code)


@pytest.mark.parametrize(
    "error, expected",
    [
        (APIError("busy", status_code=429), Classification.RETRYABLE),
        (APIError("timeout", status_code=408), Classification.RETRYABLE),
        (APIError("down", status_code=503), Classification.RETRYABLE),
        (APIError("missing", status_code=404), Classification.FATAL),
        (_StatusError(502), Classification.RETRYABLE),
        (_StatusError(400), Classification.FATAL),
        (TimeoutError(), Classification.RETRYABLE),
        (ConnectionResetError(), Classification.RETRYABLE),
        (aiohttp.ClientConnectionError("refused"), Classification.RETRYABLE),
        (Exception("socket hang up"), Classification.RETRYABLE),
        (Exception("Too Many Requests"), Classification.RETRYABLE),
        (Exception("getaddrinfo EAI_AGAIN api.mainnet-beta.solana.com"), Classification.RETRYABLE),
        (Exception("Server responded with 502 Bad Gateway"), Classification.RETRYABLE),
        (Exception("custom program error: 0x1771"), Classification.FATAL),
        (ValidationError("connection reset while validating"), Classification.FATAL),
        (RetryError("Failed after 5 attempts: timeout", attempts=5), Classification.FATAL),
    ],
)
def test_classify(error: BaseException, expected: Classification) -> None:
    assert classify(error) is expected


def test_classify_never_raises() -> None:
    class _Broken(Exception):
        def __str__(self) -> str:
            raise RuntimeError("no message for you")

    assert classify(_Broken()) is Classification.FATAL


def test_describe_failure_reads_status_structurally() -> None:
    info = describe_failure(APIError("Failed to retrieve coin data: 503", status_code=503))

    assert info.status_code == 503
    assert info.message == "Failed to retrieve coin data: 503"


def test_describe_failure_ignores_placeholder_status() -> None:
    assert describe_failure(APIError("Error fetching coin data: boom", status_code=0)).status_code is None

    flagged = Exception("x")
    flagged.status = True
    assert describe_failure(flagged).status_code is None


@pytest.mark.asyncio
async def test_retryable_failures_then_success(sleeps) -> None:
    operation = _Flaky(failures=2, error=ConnectionError("connection reset"))
    executor = RetryExecutor(RetryPolicy(max_attempts=5, jitter=False), sleep=sleeps)

    result = await executor.execute(operation)

    assert result == "ok"
    assert operation.calls == 3
    assert sleeps.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_exhaustion_raises_retry_error(sleeps) -> None:
    operation = _Flaky(failures=100, error=Exception("429 Too Many Requests"))
    executor = RetryExecutor(RetryPolicy(max_attempts=4, jitter=False), sleep=sleeps)

    with pytest.raises(RetryError) as exc_info:
        await executor.execute(operation)

    assert operation.calls == 4
    assert exc_info.value.attempts == 4
    assert exc_info.value.last_message == "429 Too Many Requests"
    assert exc_info.value.message == "Failed after 4 attempts: 429 Too Many Requests"
    assert len(sleeps.delays) == 3


@pytest.mark.asyncio
async def test_fatal_failure_propagates_unchanged(sleeps) -> None:
    error = APIError("Failed to retrieve coin data: 404", status_code=404)
    operation = _Flaky(failures=100, error=error)
    executor = RetryExecutor(sleep=sleeps)

    with pytest.raises(APIError) as exc_info:
        await executor.execute(operation)

    assert exc_info.value is error
    assert operation.calls == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_validation_errors_are_never_retried(sleeps) -> None:
    operation = _Flaky(failures=100, error=InvalidSlippageError("Slippage must be between 0 and 1"))
    executor = RetryExecutor(sleep=sleeps)

    with pytest.raises(InvalidSlippageError):
        await executor.execute(operation)

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_backoff_is_capped_at_max_delay(sleeps) -> None:
    policy = RetryPolicy(max_attempts=5, initial_delay=1.0, max_delay=3.0, factor=2.0, jitter=False)
    executor = RetryExecutor(policy, sleep=sleeps)

    with pytest.raises(RetryError):
        await executor.execute(_Flaky(failures=100, error=TimeoutError()))

    assert sleeps.delays == [1.0, 2.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_jitter_scales_each_delay(sleeps) -> None:
    draws = []

    def rng(low: float, high: float) -> float:
        draws.append((low, high))
        return 1.5

    executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=sleeps, rng=rng)

    with pytest.raises(RetryError):
        await executor.execute(_Flaky(failures=100, error=TimeoutError()))

    assert draws == [(0.5, 1.5), (0.5, 1.5)]
    assert sleeps.delays == pytest.approx([0.75, 1.5])


@pytest.mark.asyncio
async def test_call_policy_overrides_executor_policy(sleeps) -> None:
    executor = RetryExecutor(RetryPolicy(max_attempts=5, jitter=False), sleep=sleeps)
    operation = _Flaky(failures=100, error=TimeoutError())

    with pytest.raises(RetryError) as exc_info:
        await executor.execute(operation, executor.policy.with_overrides(max_attempts=2))

    assert operation.calls == 2
    assert exc_info.value.attempts == 2


@pytest.mark.parametrize(
    "changes",
    [
        {"max_attempts": 0},
        {"initial_delay": 0},
        {"initial_delay": 2.0, "max_delay": 1.0},
        {"factor": 1.0},
    ],
)
def test_policy_rejects_invalid_values(changes) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**changes)


def test_policy_from_settings() -> None:
    settings = SimpleNamespace(max_attempts=7, initial_delay=0.25, max_delay=4.0, factor=3.0, jitter=False)

    policy = RetryPolicy.from_settings(settings)

    assert policy.max_attempts == 7
    assert policy.initial_delay == 0.25
    assert policy.factor == 3.0
    assert policy.jitter is False

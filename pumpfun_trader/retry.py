"""
Retry Module - classified retry with exponential backoff.

Every network call made by the engine goes through ``RetryExecutor.execute``.
Failures are first reduced to a ``FailureInfo`` (message plus an optional
status code read structurally from the exception), then classified as
retryable or fatal. Fatal failures propagate untouched; retryable ones are
retried with exponential backoff and jitter until the policy's attempt
budget runs out, at which point a ``RetryError`` is raised.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Optional,
    Pattern,
    Tuple,
    TypeVar,
)

import aiohttp

from .exceptions import ErrorKind, PumpFunError, RetryError, error_message

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429})

TRANSIENT_ERROR_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\b429\b",
        r"too many requests",
        r"rate limit",
        r"timeout",
        r"timed out",
        r"ETIMEDOUT",
        r"ConnectionError",
        r"network error",
        r"EAI_AGAIN",
        r"temporary failure in name resolution",
        r"ECONNRESET",
        r"ECONNREFUSED",
        r"connection reset",
        r"connection refused",
        r"socket hang up",
        r"server responded with 5\d\d",
        r"internal server error",
        r"connection terminated",
    )
)

TRANSIENT_EXCEPTION_TYPES: Tuple[type, ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    aiohttp.ClientConnectionError,
)


class Classification(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class FailureInfo:
    """Structured view of a failure: message plus optional status code."""
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total calls allowed, first attempt included
        initial_delay: Delay before the first retry, in seconds
        max_delay: Cap on the backoff delay, in seconds
        factor: Multiplier applied to the delay after each retry
        jitter: Scale each sleep by uniform(0.5, 1.5)
        retryable_patterns: Message signatures of transient faults
    """
    max_attempts: int = 5
    initial_delay: float = 0.5
    max_delay: float = 10.0
    factor: float = 2.0
    jitter: bool = True
    retryable_patterns: Tuple[Pattern[str], ...] = field(
        default=TRANSIENT_ERROR_PATTERNS, repr=False
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.factor <= 1:
            raise ValueError("factor must be > 1")

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        """Return a copy of this policy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            factor=settings.factor,
            jitter=settings.jitter,
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def _coerce_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    return None


def describe_failure(error: BaseException) -> FailureInfo:
    """
    Reduce an exception to a FailureInfo.

    The status code is read structurally: a ``status_code`` or ``status``
    attribute on the exception (APIError, aiohttp.ClientResponseError) or on
    an attached ``response`` object (httpx.HTTPStatusError and friends).
    """
    try:
        message = error_message(error)
    except Exception:
        message = type(error).__name__

    status = _coerce_status(getattr(error, "status_code", None))
    if status is None:
        status = _coerce_status(getattr(error, "status", None))
    if status is None:
        response = getattr(error, "response", None)
        if response is not None:
            status = _coerce_status(getattr(response, "status_code", None))
            if status is None:
                status = _coerce_status(getattr(response, "status", None))

    return FailureInfo(message=message, status_code=status)


def classify(
    error: BaseException,
    patterns: Tuple[Pattern[str], ...] = TRANSIENT_ERROR_PATTERNS,
) -> Classification:
    """Decide whether a failure is worth retrying. Never raises."""
    try:
        if isinstance(error, PumpFunError) and error.kind in (
            ErrorKind.VALIDATION,
            ErrorKind.RETRY,
        ):
            return Classification.FATAL

        info = describe_failure(error)

        if info.status_code is not None:
            if info.status_code in RETRYABLE_STATUS_CODES or info.status_code >= 500:
                return Classification.RETRYABLE
            return Classification.FATAL

        if isinstance(error, TRANSIENT_EXCEPTION_TYPES):
            return Classification.RETRYABLE

        text = f"{type(error).__name__}: {info.message}"
        if any(pattern.search(text) for pattern in patterns):
            return Classification.RETRYABLE
    except Exception:
        logger.debug("Failure classification errored; treating as fatal", exc_info=True)

    return Classification.FATAL


class RetryExecutor:
    """
    Runs a zero-argument async operation under a RetryPolicy.

    The executor keeps no per-call state on the instance, so a single
    executor can serve any number of concurrent operations.

    Usage:
        executor = RetryExecutor()
        slot = await executor.execute(lambda: client.get_slot())
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
    ):
        self.policy = policy or DEFAULT_RETRY_POLICY
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
    ) -> T:
        policy = policy or self.policy
        attempt = 1
        delay = policy.initial_delay
        total_delay = 0.0

        while True:
            try:
                result = await operation()
            except Exception as e:
                if classify(e, policy.retryable_patterns) is Classification.FATAL:
                    raise

                info = describe_failure(e)
                if attempt >= policy.max_attempts:
                    logger.error(
                        "Operation failed after %d attempts (%.2fs total delay). Last error: %s",
                        attempt,
                        total_delay,
                        info.message,
                    )
                    raise RetryError(
                        f"Failed after {attempt} attempts: {info.message}",
                        attempts=attempt,
                        last_message=info.message,
                    ) from e

                wait = delay * self._rng(0.5, 1.5) if policy.jitter else delay
                logger.warning(
                    "Retry attempt %d/%d after %.2fs delay. Exception: %s",
                    attempt,
                    policy.max_attempts,
                    wait,
                    info.message,
                )
                await self._sleep(wait)
                total_delay += wait
                delay = min(delay * policy.factor, policy.max_delay)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(
                    "Operation succeeded after %d attempts (%.2fs total delay)",
                    attempt,
                    total_delay,
                )
            return result


__all__ = [
    "Classification",
    "FailureInfo",
    "RetryPolicy",
    "RetryExecutor",
    "DEFAULT_RETRY_POLICY",
    "TRANSIENT_ERROR_PATTERNS",
    "TRANSIENT_EXCEPTION_TYPES",
    "RETRYABLE_STATUS_CODES",
    "classify",
    "describe_failure",
]

"""
Retry with exponential backoff.

Wraps one network call at a time: each attempt of a governed call consumes
its own governor slot. Retryable failures (429, 5xx, network errors) back off
and try again; anything else aborts at once.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import openai

from docs_translator.config import RetryConfig
from docs_translator.errors import TranslationError
from docs_translator.logging_config import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

# Lower-cased substrings of network failure messages
NETWORK_ERROR_PATTERNS = (
    "timeout",
    "timed out",
    "econnrefused",
    "connection refused",
    "econnreset",
    "connection reset",
    "connection error",
    "enotfound",
    "name or service not known",
    "getaddrinfo",
    "temporary failure in name resolution",
    "network",
    "socket",
)

JITTER_RANGE = (0.75, 1.25)


@dataclass(frozen=True)
class FailedAttempt:
    """Details passed to the failed-attempt callback."""

    attempt: int
    error: BaseException
    retries_left: int


def _status_of(error: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def is_retryable(error: BaseException) -> bool:
    """
    Classify an error as transient (retry) or fatal (abort).

    Retryable: HTTP 429, HTTP 5xx, timeouts, refused/reset connections and
    DNS failures. Fatal: other 4xx, auth and validation failures, and
    anything unrecognized.
    """
    if isinstance(error, TranslationError):
        return bool(error.retryable)

    status = _status_of(error)
    if status is not None:
        return status == 429 or 500 <= status < 600

    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True

    if isinstance(error, openai.APIConnectionError):
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in NETWORK_ERROR_PATTERNS)


def compute_delay(attempt: int, policy: RetryConfig, rng: random.Random | None = None) -> float:
    """
    Backoff before the attempt following ``attempt`` (0-based).

    ``min(initial_delay * multiplier**attempt, max_delay)``, scaled by a
    uniform factor in [0.75, 1.25] when jitter is enabled.
    """
    base = min(policy.initial_delay * (policy.multiplier**attempt), policy.max_delay)
    if not policy.jitter:
        return base
    rng = rng or random
    return base * rng.uniform(*JITTER_RANGE)


def _tag(error: BaseException, attempts: int, elapsed: float) -> None:
    error.retry_attempts = attempts  # type: ignore[attr-defined]
    error.retry_elapsed = elapsed  # type: ignore[attr-defined]
    if isinstance(error, TranslationError):
        error.metadata.update({"attempts": attempts, "elapsed_s": round(elapsed, 3)})


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryConfig | None = None,
    context: Mapping[str, Any] | None = None,
    on_failed_attempt: Callable[[FailedAttempt], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with up to ``policy.max_retries`` retries.

    Args:
        operation: Zero-argument callable returning an awaitable.
        policy: Backoff policy (defaults when None).
        context: Fields added to retry log lines.
        on_failed_attempt: Called after every failed attempt.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        The first successful result.

    Raises:
        The last error, tagged with ``retry_attempts`` and ``retry_elapsed``.
    """
    policy = policy or RetryConfig()
    context = dict(context or {})
    started = time.monotonic()
    total_attempts = policy.max_retries + 1

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as error:
            retries_left = total_attempts - attempt - 1
            retryable = is_retryable(error)

            if on_failed_attempt is not None:
                on_failed_attempt(
                    FailedAttempt(
                        attempt=attempt + 1,
                        error=error,
                        retries_left=retries_left if retryable else 0,
                    )
                )

            if not retryable or retries_left == 0:
                elapsed = time.monotonic() - started
                _tag(error, attempt + 1, elapsed)
                if retryable:
                    logger.error(
                        "Retries exhausted",
                        extra={**context, "attempts": attempt + 1, "elapsed_s": elapsed, "error": str(error)},
                    )
                raise

            delay = compute_delay(attempt, policy)
            logger.warning(
                "Retrying operation after transient failure",
                extra={
                    **context,
                    "attempt": attempt + 1,
                    "max_retries": policy.max_retries,
                    "delay_s": delay,
                    "error": str(error),
                },
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("with_retry exited without result")

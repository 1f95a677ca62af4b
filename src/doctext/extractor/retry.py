"""Bounded retry with linear backoff for extraction operations.

Wraps any async operation that returns an outcome or raises ExtractionError.
Attempts are numbered 0..max_retries (max_retries + 1 in total); after a
failed attempt i the orchestrator waits ``retry_delay_base_ms * (i + 1)``
before trying again. Retry is handled by tenacity; the retry predicate
matches on the error's kind and status instead of the exception type.

Errors that cannot change on retry abort immediately and are re-raised
unchanged:

- ``PROVIDER_TERMINAL`` and ``CONFIGURATION`` kinds.
- Any error whose status code is client-class (< 500), e.g. a 404 download.
- With ``abort_on_unavailable`` (PDF path only), status 503.

When the budget is spent, RetryExhaustedError wraps the last error.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from doctext.types import (
    ErrorKind,
    ExtractionError,
    ExtractionOptions,
    RetryExhaustedError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TERMINAL_KINDS = frozenset({ErrorKind.PROVIDER_TERMINAL, ErrorKind.CONFIGURATION})

SERVICE_UNAVAILABLE = 503


def is_terminal(exc: BaseException, *, abort_on_unavailable: bool = False) -> bool:
    """Return True when *exc* must not be retried."""
    if not isinstance(exc, ExtractionError):
        return False
    if exc.kind in _TERMINAL_KINDS:
        return True
    if exc.status_code is not None:
        if exc.status_code < 500:
            return True
        if abort_on_unavailable and exc.status_code == SERVICE_UNAVAILABLE:
            return True
    return False


def linear_backoff(options: ExtractionOptions) -> wait_incrementing:
    """Wait ``base * attempt_number`` seconds after each failed attempt."""
    delay_seconds = options.retry_delay_base_ms / 1000
    return wait_incrementing(start=delay_seconds, increment=delay_seconds)


async def _classified(operation: Callable[[], Awaitable[T]]) -> T:
    """Run *operation*, converting unclassified exceptions to UNKNOWN errors."""
    try:
        return await operation()
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(
            ErrorKind.UNKNOWN, str(exc) or type(exc).__name__
        ) from exc


async def attempt_with_retry(
    operation: Callable[[], Awaitable[T]],
    options: ExtractionOptions,
    *,
    abort_on_unavailable: bool = False,
) -> T:
    """Run *operation* with bounded, linearly backed-off retries.

    Args:
        operation: Zero-argument coroutine function performing one attempt.
        options: Supplies ``max_retries`` and ``retry_delay_base_ms``.
        abort_on_unavailable: Also treat status 503 as terminal.

    Returns:
        Whatever *operation* returns on its first successful attempt.

    Raises:
        ExtractionError: The original error when it is terminal.
        RetryExhaustedError: When every attempt failed with a retryable error.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries + 1),
        wait=linear_backoff(options),
        retry=retry_if_exception(
            lambda exc: not is_terminal(exc, abort_on_unavailable=abort_on_unavailable)
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=False,
    )

    try:
        return await retrying(_classified, operation)
    except RetryError as exc:
        attempt = exc.last_attempt
        last_error = attempt.exception()
        logger.error(
            "Giving up after %d attempts: %s", attempt.attempt_number, last_error
        )
        raise RetryExhaustedError(attempt.attempt_number, last_error) from last_error

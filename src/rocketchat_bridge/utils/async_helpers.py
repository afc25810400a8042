"""Async utilities for resilient API calls and cooperative cancellation.

This module provides:
- The shared exception base for the bridge
- A retry decorator with exponential backoff for idempotent reads
- A cancellation token used as the monitor's abort signal
- An interruptible sleep for poll intervals
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


class BridgeError(Exception):
    """Base exception for all bridge errors."""


# =============================================================================
# Retry Decorator
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


TRANSIENT_ERRORS: tuple[type[Exception], ...] = (httpx.TimeoutException, httpx.NetworkError)


def create_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Create a customized retry decorator.

    Only apply this to idempotent calls. Rocket.Chat's react endpoint
    toggles, so a retried react can undo itself.

    Args:
        max_attempts: Maximum number of attempts.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        A retry decorator configured with the given parameters.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# Default retry decorator for read-only API calls
api_retry = create_retry()


# =============================================================================
# Cancellation Utilities
# =============================================================================


class CancellationToken:
    """Token for cooperative cancellation of async operations.

    Example:
        token = CancellationToken()

        async def worker(token: CancellationToken):
            while not token.is_cancelled:
                await do_work()

        # Cancel from elsewhere
        token.cancel()
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._event.wait()


async def sleep_unless_cancelled(seconds: float, token: CancellationToken | None) -> bool:
    """Sleep for ``seconds``, returning early if the token is cancelled.

    Returns:
        True if the sleep was cut short by cancellation.
    """
    if token is None:
        await asyncio.sleep(seconds)
        return False
    if token.is_cancelled:
        return True

    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(token.wait(), timeout=seconds)
    return token.is_cancelled

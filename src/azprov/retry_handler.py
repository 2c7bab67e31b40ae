"""Retry logic with exponential backoff for transient failures.

Design Philosophy:
- Ruthless simplicity: Single decorator for all retry needs
- Configurable: Max attempts, delays, jitter can be tuned
- Observable: Clear logging of retry attempts

Usage:
    @retry_with_exponential_backoff(max_attempts=3)
    def azure_operation():
        ...

    # Only retry errors the predicate accepts
    @retry_with_exponential_backoff(
        max_attempts=5,
        retryable_exceptions=(ProviderError,),
        should_retry=is_transient_provider_error,
    )
    def throttled_operation():
        ...
"""

import functools
import logging
import random
import re
import time
from collections.abc import Callable
from typing import Any, TypeVar

from azprov.exceptions import ProviderError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Azure CLI error text for throttling and transient service faults
TRANSIENT_ERROR_MARKERS = (
    "TooManyRequests",
    "429",
    "ServiceUnavailable",
    "InternalServerError",
    "GatewayTimeout",
    "RetryableError",
    "Command timeout",
    "Connection aborted",
    "Connection reset",
)


def is_transient_provider_error(error: Exception) -> bool:
    """Check whether a provider failure looks transient.

    Args:
        error: Exception raised by a provider call

    Returns:
        True for throttling / availability / timeout failures
    """
    if not isinstance(error, ProviderError):
        return False
    text = f"{error} {error.stderr or ''}"
    return any(marker.lower() in text.lower() for marker in TRANSIENT_ERROR_MARKERS)


def retry_with_exponential_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (TimeoutError, ConnectionError),
    should_retry: Callable[[Exception], bool] | None = None,
) -> Callable[[F], F]:
    """Decorator for retrying operations with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (1 disables retries)
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        jitter: Add +/-25% random jitter to delays
        retryable_exceptions: Exception types eligible for retry
        should_retry: Optional predicate narrowing which errors are retried

    Returns:
        Decorated function that will retry on transient failures
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 1:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt}/{max_attempts}"
                        )
                    return result

                except retryable_exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_attempts:
                        if max_attempts > 1:
                            logger.error(
                                f"{func.__name__} failed after {max_attempts} attempts: "
                                f"{_safe_error_message(e)}"
                            )
                        raise

                    actual_delay = delay
                    if jitter:
                        jitter_amount = delay * 0.25
                        actual_delay = delay + random.uniform(-jitter_amount, jitter_amount)
                    actual_delay = min(actual_delay, max_delay)

                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt}/{max_attempts}, "
                        f"retrying in {actual_delay:.2f}s: {_safe_error_message(e)}"
                    )
                    time.sleep(actual_delay)
                    delay *= 2

            raise RuntimeError(f"{func.__name__} called with max_attempts={max_attempts}")

        return wrapper  # type: ignore[return-value]

    return decorator


_SECRET_ASSIGNMENT = re.compile(r"(password|secret|token|key)=\S+", re.IGNORECASE)


def _safe_error_message(exception: Exception) -> str:
    """Create a log-safe error message (truncated, secrets stripped)."""
    error_str = str(exception)
    if len(error_str) > 200:
        error_str = error_str[:200] + "..."
    return _SECRET_ASSIGNMENT.sub(r"\1=[REDACTED]", error_str)


__all__ = ["is_transient_provider_error", "retry_with_exponential_backoff"]

"""Retry logic and decorators using tenacity.

This module provides retry decorators configured for Appwrite API calls,
with exponential backoff and jitter. Only transient failures are retried:
a 404 or 409 is an answer, not an outage.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from appwrite_migration.client.exceptions import NetworkError, RateLimitError, ServerError
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRANSIENT_ERRORS = (NetworkError, ServerError, RateLimitError)


def retry_with_backoff(
    max_attempts: int = 5,
    min_wait: int = 2,
    max_wait: int = 60,
    retry_on_exceptions: tuple = TRANSIENT_ERRORS,
) -> Callable[[F], F]:
    """Retry decorator for coroutine functions with exponential backoff and jitter.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        retry_on_exceptions: Tuple of exception types to retry on

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt_obj in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
                retry=retry_if_exception_type(retry_on_exceptions),
                reraise=True,
            ):
                with attempt_obj:
                    attempt = attempt_obj.retry_state.attempt_number
                    if attempt > 1:
                        logger.info(
                            "retry_attempt",
                            function=func.__name__,
                            attempt=attempt,
                            max_attempts=max_attempts,
                        )
                    return await func(*args, **kwargs)

        return async_wrapper  # type: ignore

    return decorator


# Decorator applied to the Appwrite client calls
retry_api_call = retry_with_backoff(max_attempts=5, min_wait=2, max_wait=60)

"""
Retry utilities with exponential backoff for async functions.

The entity store wraps its idempotent reads with these helpers so that a
transient database hiccup does not surface as a failed snapshot load.
Writes are never retried here: the orchestrator owns compensation for them.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from site_allocation.core.environment import (
    get_store_retry_attempts,
    get_store_retry_base_delay,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class RetryableError(Exception):
    """
    Exception that may succeed when the same call is repeated.

    Used for transient failures:
    - Database connection timeouts and temporary unavailability
    - Network timeouts and intermittent connectivity issues
    - Connection pool saturation
    """
    pass


class NonRetryableError(Exception):
    """
    Exception that will fail the same way on every attempt.

    Used for deterministic failures:
    - Validation errors (malformed input, business rule violations)
    - Eligibility rejections and invalid lifecycle transitions
    - Unknown record identifiers
    """
    pass


RETRYABLE_EXCEPTIONS = (RetryableError, SQLAlchemyError, asyncio.TimeoutError, OSError)


def async_retry(
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: float = 10.0
) -> Callable[[F], F]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts (default: STORE_RETRY_ATTEMPTS)
        base_delay: Initial delay in seconds between retries (default: STORE_RETRY_BASE_DELAY)
        max_delay: Maximum delay in seconds between retries (default: 10.0)

    Returns:
        Decorated async function with retry logic

    Example:
        @async_retry(max_attempts=3, base_delay=0.5, max_delay=5.0)
        async def list_sites():
            ...

    Error Handling:
    - NonRetryableError: Raised immediately without retry
    - RetryableError, SQLAlchemyError, asyncio.TimeoutError, OSError:
      retried up to max_attempts times, then the last one is raised
    - Anything else: raised immediately (programming errors do not heal)

    Backoff Strategy:
    - delay = base_delay * (2 ^ attempt), capped at max_delay
    """
    attempts = max_attempts if max_attempts is not None else get_store_retry_attempts()
    initial_delay = base_delay if base_delay is not None else get_store_retry_base_delay()
    attempts = max(attempts, 1)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception = None

            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)

                except NonRetryableError:
                    raise

                except RETRYABLE_EXCEPTIONS as e:
                    last_exception = e
                    if attempt < attempts - 1:
                        delay = min(initial_delay * (2 ** attempt), max_delay)
                        logger.warning(
                            f"Retry attempt {attempt + 1}/{attempts} for {func.__name__}. "
                            f"Error: {str(e)}. Waiting {delay:.2f}s..."
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"All {attempts} attempts failed for {func.__name__}. "
                            f"Final error: {str(e)}"
                        )

            raise last_exception

        return wrapper
    return decorator

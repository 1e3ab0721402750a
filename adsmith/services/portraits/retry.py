"""
Retry logic for portrait generation.

Portrait attempts use a fixed delay between retries and a hard timeout per
attempt. A timeout counts as a collaborator failure and is retried like any
other.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from adsmith.infrastructure.constants.generation_constants import (
    PORTRAIT_MAX_RETRIES,
    PORTRAIT_RETRY_DELAY_SECONDS,
    PORTRAIT_TIMEOUT_SECONDS,
)
from adsmith.services.generative.exceptions import (
    CollaboratorUnavailable,
    ExhaustedRetries,
    PersonaPipelineError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]
FailureCallback = Callable[[int, Exception], None]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = PORTRAIT_MAX_RETRIES
    base_delay: float = PORTRAIT_RETRY_DELAY_SECONDS
    attempt_timeout: Optional[float] = PORTRAIT_TIMEOUT_SECONDS
    retryable_exceptions: Tuple[Type[Exception], ...] = (PersonaPipelineError,)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self) -> float:
        """Delay before the next attempt."""
        return self.base_delay


DEFAULT_RETRY_CONFIG = RetryConfig()


async def _call_with_timeout(
    func: Callable[..., Awaitable[T]], timeout: Optional[float], *args, **kwargs
) -> T:
    if timeout is None:
        return await func(*args, **kwargs)
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CollaboratorUnavailable(f"No response within {timeout:.1f}s") from e


def with_retry(
    config: Optional[RetryConfig] = None,
    sleep: Optional[SleepFunc] = None,
    on_failure: Optional[FailureCallback] = None,
):
    """
    Decorator that adds bounded retry logic to async functions.

    Args:
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)
        sleep: Awaitable used between attempts (asyncio.sleep if None)
        on_failure: Called with (attempt_number, error) after each failed attempt

    Raises:
        ExhaustedRetries: when every attempt failed with a retryable error
    """
    retry_config = config or DEFAULT_RETRY_CONFIG
    sleeper = sleep or asyncio.sleep

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            last_exception: Optional[Exception] = None

            for attempt in range(retry_config.max_attempts):
                try:
                    return await _call_with_timeout(
                        func, retry_config.attempt_timeout, *args, **kwargs
                    )
                except retry_config.retryable_exceptions as e:
                    last_exception = e
                    if on_failure is not None:
                        on_failure(attempt + 1, e)

                    if attempt < retry_config.max_retries:
                        delay = retry_config.get_delay()
                        logger.warning(
                            f"Attempt {attempt + 1}/{retry_config.max_attempts} "
                            f"failed for {func.__name__}: {e}. "
                            f"Retrying in {delay:.2f}s..."
                        )
                        await sleeper(delay)
                    else:
                        logger.error(
                            f"All {retry_config.max_attempts} attempts failed "
                            f"for {func.__name__}: {e}"
                        )

            raise ExhaustedRetries(retry_config.max_attempts, last_exception)

        return wrapper

    return decorator


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    config: Optional[RetryConfig] = None,
    sleep: Optional[SleepFunc] = None,
    on_failure: Optional[FailureCallback] = None,
    **kwargs,
) -> T:
    """
    Execute an async function with retry logic.

    Args:
        func: Async function to execute
        *args: Positional arguments for the function
        config: Retry configuration
        sleep: Awaitable used between attempts
        on_failure: Called with (attempt_number, error) after each failed attempt
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function
    """

    @with_retry(config=config, sleep=sleep, on_failure=on_failure)
    async def _execute():
        return await func(*args, **kwargs)

    return await _execute()

"""Retry with exponential backoff for outbound API calls.

Used by the Google API client. Only transient failures are retried:
timeouts, network errors, 429 and 5xx responses.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import httpx

from catalog.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0  # Seconds before the first retry
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.1  # +/- 10%
    retryable_exceptions: tuple = field(
        default_factory=lambda: (
            httpx.TimeoutException,
            httpx.NetworkError,
            ConnectionError,
            asyncio.TimeoutError,
        )
    )
    retryable_status_codes: tuple = field(
        default_factory=lambda: (429, 500, 502, 503, 504)
    )

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        settings = get_settings()
        return cls(
            max_attempts=settings.max_retry_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Backoff for the given 0-based attempt, capped and jittered."""
    delay = min(config.base_delay * (config.exponential_base ** attempt), config.max_delay)
    jitter_range = delay * config.jitter
    return max(0.0, delay + random.uniform(-jitter_range, jitter_range))


def is_retryable_exception(exc: Exception, config: RetryConfig) -> bool:
    if isinstance(exc, config.retryable_exceptions):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in config.retryable_status_codes
    return False


def async_retry(config: RetryConfig | None = None):
    """
    Decorator for retrying async functions with exponential backoff.

    Usage:
        @async_retry(RetryConfig(max_attempts=3))
        async def call_api():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            retry_config = config or RetryConfig.from_settings()
            for attempt in range(retry_config.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_attempt = attempt == retry_config.max_attempts - 1
                    if not is_retryable_exception(e, retry_config) or last_attempt:
                        if last_attempt:
                            logger.error(
                                f"All {retry_config.max_attempts} attempts failed for {func.__name__}: {e}"
                            )
                        raise
                    delay = calculate_delay(attempt, retry_config)
                    logger.warning(
                        f"Retry {attempt + 1}/{retry_config.max_attempts} for {func.__name__} "
                        f"after {type(e).__name__}: {e}. Waiting {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError(f"{func.__name__} exhausted retries without raising")

        return wrapper

    return decorator

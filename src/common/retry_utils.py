"""Retry utility with exponential backoff for handling transient backend errors."""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, List

import httpx

from common.config import settings
from common.errors import TranslationError

logger = logging.getLogger(__name__)


def calculate_exponential_backoff_delay(
    initial_delay: float,
    attempt: int,
    exponential_base: int,
    max_delay: float,
    jitter: float = 0.0,
) -> float:
    """
    Calculate the delay before a retry.

    The delay before retry ``attempt + 1`` is
    ``initial_delay * exponential_base ** attempt`` plus an optional random
    jitter of up to ``jitter`` times that delay, never more than ``max_delay``.

    Args:
        initial_delay: Delay in seconds before the first retry
        attempt: Retry number (0-indexed: 0 is the first retry)
        exponential_base: Base for exponential calculation (e.g., 2)
        max_delay: Maximum delay in seconds
        jitter: Fraction of the delay added as random jitter (0 disables it)

    Returns:
        Delay in seconds

    Example:
        >>> [calculate_exponential_backoff_delay(1.0, n, 2, 10.0) for n in range(5)]
        [1.0, 2.0, 4.0, 8.0, 10.0]
    """
    delay = initial_delay * (exponential_base**attempt)

    if jitter > 0:
        delay += random.uniform(0, delay * jitter)

    return min(delay, max_delay)


def is_transient_error(error: BaseException) -> bool:
    """
    Determine if an error is transient (should retry) or permanent (should not retry).

    Args:
        error: Exception to check

    Returns:
        True if error is transient and should be retried, False otherwise
    """
    if isinstance(error, TranslationError):
        return error.retryable

    # Network-related errors from the standard library and httpx
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True

    # Default: treat unknown errors as permanent to avoid pointless retries
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff schedule for one kind of remote call."""

    max_retries: int = 3
    initial_delay: float = 1.0
    exponential_base: int = 2
    max_delay: float = 10.0
    jitter: float = 0.0

    @classmethod
    def for_translation(cls) -> "RetryPolicy":
        """Build the policy for translation backend calls from settings."""
        return cls(
            max_retries=settings.translation_max_retries,
            initial_delay=settings.translation_retry_initial_delay,
            exponential_base=settings.translation_retry_exponential_base,
            max_delay=settings.translation_retry_max_delay,
            jitter=settings.translation_retry_jitter,
        )

    @classmethod
    def for_source_downloads(cls) -> "RetryPolicy":
        """Build the policy for source subtitle provider calls from settings."""
        return cls(
            max_retries=settings.opensubtitles_max_retries,
            initial_delay=settings.opensubtitles_retry_delay,
            max_delay=settings.opensubtitles_retry_max_delay,
        )

    def delays(self) -> List[float]:
        """Return the full backoff schedule, one delay per retry."""
        return [
            calculate_exponential_backoff_delay(
                self.initial_delay,
                attempt,
                self.exponential_base,
                self.max_delay,
                self.jitter,
            )
            for attempt in range(self.max_retries)
        ]

    def decorator(self) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Return a retry decorator configured with this policy."""
        return retry_with_exponential_backoff(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            exponential_base=self.exponential_base,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )


def retry_with_exponential_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    exponential_base: int = 2,
    max_delay: float = 10.0,
    jitter: float = 0.0,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator that adds retry logic with exponential backoff to async functions.

    Only retries on transient errors (connection issues, rate limits, count
    mismatches). Permanent errors (authentication failures, exhausted
    balance, invalid requests) fail immediately after the first attempt.

    Args:
        max_retries: Maximum number of retry attempts (after initial try)
        initial_delay: Delay in seconds before the first retry
        exponential_base: Base for exponential backoff calculation
        max_delay: Maximum delay in seconds between retries
        jitter: Fraction of each delay added as random jitter

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_exponential_backoff(max_retries=3, initial_delay=1)
        async def fetch_data():
            return await api_call()
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            # Initial attempt + retries
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except Exception as e:
                    if not is_transient_error(e):
                        logger.error(
                            f"❌ Permanent error in {func.__name__}: {e}. Not retrying."
                        )
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            f"❌ Max retries ({max_retries}) exceeded for {func.__name__}. Last error: {e}"
                        )
                        raise

                    delay = calculate_exponential_backoff_delay(
                        initial_delay=initial_delay,
                        attempt=attempt,
                        exponential_base=exponential_base,
                        max_delay=max_delay,
                        jitter=jitter,
                    )

                    logger.warning(
                        f"⚠️  Transient error in {func.__name__}: {e}. "
                        f"Retry {attempt + 1}/{max_retries} in {delay:.2f}s..."
                    )

                    await asyncio.sleep(delay)

        return wrapper

    return decorator

"""Error taxonomy for the subtitle translation pipeline.

Every failure that can end a translation job is expressed as a
``TranslationError`` subclass. The ``retryable`` flag drives the retry
policy in ``common.retry_utils``; ``user_message`` is what a viewer sees in
the failure placeholder.
"""

import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Constants for error message display
MAX_MISSING_SEGMENTS_TO_DISPLAY = 10


class TranslationError(Exception):
    """Base class for all translation pipeline errors."""

    retryable: bool = False
    user_message: str = "Translation failed. Please check your configuration and try again."


class ParseError(TranslationError):
    """Source subtitle could not be parsed into any usable blocks."""

    user_message = "Translation failed. The source subtitle file could not be read."


class NetworkError(TranslationError):
    """Transient network or backend failure (timeouts, 5xx, rate limits)."""

    retryable = True
    user_message = "Translation failed. The translation service is unavailable, please try again later."


class RateLimitError(NetworkError):
    """Backend rejected the call because of request rate."""

    user_message = "Translation failed. Rate limit exceeded. Please wait a moment and try again."


class AuthError(TranslationError):
    """Credentials were rejected by the backend."""

    user_message = "Translation failed. Invalid credentials (API key). Please check your addon configuration."


class QuotaError(TranslationError):
    """Account quota is exhausted."""

    user_message = "Translation failed. API quota exceeded. Please wait or upgrade your plan."


class BalanceError(TranslationError):
    """Account has insufficient balance to pay for the call."""

    user_message = "Translation failed. API account has insufficient balance. Please top up your account."


class InvalidArgumentError(TranslationError):
    """Backend rejected the request itself (bad language, bad model, ...)."""

    user_message = "Translation failed. The translation service rejected the request. Please check your configuration."


class FilesystemError(TranslationError):
    """Cache or temporary file could not be read or written."""

    user_message = "Translation failed. The subtitle could not be saved."


class CountMismatchError(TranslationError):
    """
    Backend returned a different number of translations than it was given.

    Several backends silently merge or split lines, so this is retried a
    bounded number of times before the job fails.
    """

    retryable = True
    user_message = "Translation failed. The translation service returned incomplete subtitles."

    def __init__(
        self,
        expected_count: int,
        actual_count: int,
        batch_index: Optional[int] = None,
        total_batches: Optional[int] = None,
        parsed_indices: Optional[List[int]] = None,
    ):
        """
        Initialize the error with detailed context.

        Args:
            expected_count: Number of texts sent to the backend
            actual_count: Number of translations received
            batch_index: Index of the batch being translated (if available)
            total_batches: Total number of batches (if available)
            parsed_indices: 0-based indices the backend did return (if known)
        """
        self.expected_count = expected_count
        self.actual_count = actual_count
        self.batch_index = batch_index
        self.total_batches = total_batches
        self.parsed_indices = parsed_indices or []

        message = (
            f"Translation count mismatch: expected {expected_count} translations, "
            f"but got {actual_count}"
        )

        if batch_index is not None and total_batches is not None:
            message += f" in batch {batch_index + 1}/{total_batches}"

        if parsed_indices:
            missing = set(range(expected_count)) - set(parsed_indices)
            if missing:
                missing_list = sorted(missing)[:MAX_MISSING_SEGMENTS_TO_DISPLAY]
                message += f". Missing indices: {missing_list}"
                if len(missing) > MAX_MISSING_SEGMENTS_TO_DISPLAY:
                    message += (
                        f" (and {len(missing) - MAX_MISSING_SEGMENTS_TO_DISPLAY} more)"
                    )

        super().__init__(message)


# Substrings seen in provider error messages, checked in order
_MESSAGE_CLASSIFICATION = [
    ("insufficient balance", BalanceError),
    ("insufficient_quota", QuotaError),
    ("quota_exceeded", QuotaError),
    ("quota exceeded", QuotaError),
    ("invalid_api_key", AuthError),
    ("api key not valid", AuthError),
    ("incorrect api key", AuthError),
    ("unauthorized", AuthError),
    ("authentication", AuthError),
    ("invalid_argument", InvalidArgumentError),
    ("rate_limit", RateLimitError),
    ("rate limit", RateLimitError),
]


def classify_provider_error(error: BaseException, provider: str = "") -> TranslationError:
    """
    Map an arbitrary provider exception into the translation error taxonomy.

    Already-classified errors are returned unchanged. Anything else is
    matched on its message; unknown errors become retryable ``NetworkError``
    only when they are connection or timeout errors, otherwise a plain
    (non-retryable) ``TranslationError``.

    Args:
        error: Exception raised by a backend or its client library
        provider: Provider name used to prefix the message

    Returns:
        TranslationError instance with the original chained as ``__cause__``
    """
    if isinstance(error, TranslationError):
        return error

    prefix = f"{provider} error: " if provider else ""
    message = f"{prefix}{error}"
    lowered = str(error).lower()

    for needle, error_class in _MESSAGE_CLASSIFICATION:
        if needle in lowered:
            classified = error_class(message)
            break
    else:
        if isinstance(error, (ConnectionError, TimeoutError)):
            classified = NetworkError(message)
        else:
            classified = TranslationError(message)

    classified.__cause__ = error
    return classified


def describe_failure(error: BaseException) -> str:
    """
    Build the viewer-facing failure reason for a failed job.

    Args:
        error: Exception that ended the job

    Returns:
        Human-readable message for the failure placeholder
    """
    if isinstance(error, TranslationError):
        return error.user_message
    if isinstance(error, OSError):
        return FilesystemError.user_message
    return TranslationError.user_message

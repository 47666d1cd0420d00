"""Tests for the error taxonomy and provider error classification."""

import pytest

from common.errors import (
    AuthError,
    BalanceError,
    CountMismatchError,
    FilesystemError,
    InvalidArgumentError,
    NetworkError,
    ParseError,
    QuotaError,
    RateLimitError,
    TranslationError,
    classify_provider_error,
    describe_failure,
)


class TestRetryableFlags:
    """Which errors the retry policy may retry."""

    @pytest.mark.parametrize(
        "error_class,retryable",
        [
            (NetworkError, True),
            (RateLimitError, True),
            (ParseError, False),
            (AuthError, False),
            (QuotaError, False),
            (BalanceError, False),
            (InvalidArgumentError, False),
            (FilesystemError, False),
        ],
    )
    def test_retryable_flag(self, error_class, retryable):
        assert error_class("x").retryable is retryable

    def test_count_mismatch_is_retryable(self):
        assert CountMismatchError(expected_count=2, actual_count=1).retryable


class TestCountMismatchError:
    """Test count mismatch messages."""

    def test_message_includes_batch_position(self):
        error = CountMismatchError(
            expected_count=40, actual_count=39, batch_index=1, total_batches=3
        )

        assert "expected 40" in str(error)
        assert "got 39" in str(error)
        assert "batch 2/3" in str(error)

    def test_message_lists_missing_indices(self):
        error = CountMismatchError(
            expected_count=4, actual_count=2, parsed_indices=[0, 3]
        )

        assert "Missing indices: [1, 2]" in str(error)

    def test_missing_indices_are_truncated(self):
        error = CountMismatchError(
            expected_count=30, actual_count=0, parsed_indices=[29]
        )

        assert "(and 19 more)" in str(error)


class TestClassifyProviderError:
    """Map free-form provider errors into the taxonomy."""

    def test_already_classified_error_is_returned_unchanged(self):
        error = AuthError("bad")

        assert classify_provider_error(error) is error

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Insufficient Balance on account", BalanceError),
            ("Error code: 429 - insufficient_quota", QuotaError),
            ("Incorrect API key provided", AuthError),
            ("API key not valid. Please pass a valid API key.", AuthError),
            ("INVALID_ARGUMENT: target language", InvalidArgumentError),
            ("rate limit reached", RateLimitError),
        ],
    )
    def test_classifies_by_message(self, message, expected):
        classified = classify_provider_error(RuntimeError(message), "DeepSeek API")

        assert type(classified) is expected
        assert str(classified).startswith("DeepSeek API error:")

    def test_connection_errors_become_network_errors(self):
        original = ConnectionError("reset by peer")

        classified = classify_provider_error(original)

        assert isinstance(classified, NetworkError)
        assert classified.__cause__ is original

    def test_unknown_errors_are_permanent(self):
        classified = classify_provider_error(RuntimeError("something odd"))

        assert type(classified) is TranslationError
        assert not classified.retryable


class TestDescribeFailure:
    """Viewer-facing failure messages."""

    def test_auth_failure_mentions_credentials(self):
        message = describe_failure(AuthError("401"))

        assert "Invalid credentials" in message
        assert "API key" in message

    def test_os_errors_map_to_filesystem_message(self):
        assert describe_failure(PermissionError("denied")) == FilesystemError.user_message

    def test_unknown_errors_get_generic_message(self):
        assert describe_failure(RuntimeError("x")) == TranslationError.user_message

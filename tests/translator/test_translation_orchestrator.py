"""Tests for batch translation orchestration."""

import pytest

from common.errors import AuthError, CountMismatchError, NetworkError
from common.retry_utils import RetryPolicy
from common.subtitle_parser import SRTParser
from conftest import StubBackend
from translator.translation_orchestrator import (
    BatchTranslationOrchestrator,
    translate_batch_with_retry,
    translate_document,
    validate_batch_output,
)


def make_srt(count: int) -> str:
    return "".join(
        f"{i}\n00:00:{i:02d},000 --> 00:00:{i:02d},900\nLine {i}\n\n"
        for i in range(1, count + 1)
    )


class TestValidateBatchOutput:
    """Test per-batch count validation."""

    def test_matching_counts_pass(self):
        validate_batch_output(["a", "b"], ["x", "y"])

    def test_mismatch_raises_with_context(self):
        with pytest.raises(CountMismatchError) as exc_info:
            validate_batch_output(["a", "b", "c"], ["x"], batch_index=0, total_batches=2)

        assert exc_info.value.expected_count == 3
        assert exc_info.value.actual_count == 1
        assert "batch 1/2" in str(exc_info.value)


class TestTranslateBatchWithRetry:
    """Test retrying a single batch."""

    @pytest.mark.asyncio
    async def test_strips_translations(self, fast_retry_policy):
        backend = StubBackend([["  Olá \n"]])

        result = await translate_batch_with_retry(backend, ["Hi"], "pt", fast_retry_policy)

        assert result == ["Olá"]

    @pytest.mark.asyncio
    async def test_count_mismatch_is_retried_then_fatal(self, fast_retry_policy):
        # Every call drops the last line
        backend = StubBackend([lambda texts: texts[:-1]] * 10)

        with pytest.raises(CountMismatchError):
            await translate_batch_with_retry(
                backend, ["a", "b", "c"], "pt", fast_retry_policy
            )

        assert len(backend.calls) == fast_retry_policy.max_retries + 1

    @pytest.mark.asyncio
    async def test_recovers_when_a_retry_returns_the_right_count(self, fast_retry_policy):
        backend = StubBackend([["only one"], NetworkError("timeout"), ["x", "y"]])

        result = await translate_batch_with_retry(backend, ["a", "b"], "pt", fast_retry_policy)

        assert result == ["x", "y"]
        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_auth_error_fails_after_one_call(self, fast_retry_policy):
        backend = StubBackend([AuthError("invalid key")])

        with pytest.raises(AuthError):
            await translate_batch_with_retry(backend, ["a"], "pt", fast_retry_policy)

        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_classified(self, fast_retry_policy):
        backend = StubBackend([ConnectionError("reset"), ["ok"]])

        result = await translate_batch_with_retry(backend, ["a"], "pt", fast_retry_policy)

        assert result == ["ok"]


class TestTranslateDocument:
    """Test whole-document translation."""

    @pytest.mark.asyncio
    async def test_two_block_document(self, fast_retry_policy):
        source = (
            "1\n00:00:01,000 --> 00:00:02,000\nHello\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\nWorld\n"
        )
        backend = StubBackend([["Bonjour", "Monde"]])

        translated = await translate_document(
            SRTParser.parse(source), "fr", backend, batch_size=2, retry_policy=fast_retry_policy
        )

        assert backend.calls == [["Hello", "World"]]
        assert SRTParser.render(translated) == (
            "1\n00:00:01,000 --> 00:00:02,000\nBonjour\n\n"
            "2\n00:00:03,000 --> 00:00:04,000\nMonde\n"
        )

    @pytest.mark.asyncio
    async def test_translates_every_block_in_order(self, fast_retry_policy):
        document = SRTParser.parse(make_srt(5))
        backend = StubBackend()

        translated = await translate_document(
            document, "pt", backend, batch_size=2, retry_policy=fast_retry_policy
        )

        assert [len(call) for call in backend.calls] == [2, 2, 1]
        assert [b.text for b in translated.blocks] == [f"[pt] Line {i}" for i in range(1, 6)]
        assert [b.time_range for b in translated.blocks] == [
            b.time_range for b in document.blocks
        ]
        assert [b.sequence_label for b in translated.blocks] == ["1", "2", "3", "4", "5"]

    @pytest.mark.asyncio
    async def test_opaque_blocks_are_not_sent(self, fast_retry_policy):
        document = SRTParser.parse("junk\n\n1\n00:00:01,000 --> 00:00:02,000\nHi\n")
        backend = StubBackend()

        translated = await translate_document(
            document, "es", backend, retry_policy=fast_retry_policy
        )

        assert backend.calls == [["Hi"]]
        assert SRTParser.render(translated) == (
            "junk\n\n1\n00:00:01,000 --> 00:00:02,000\n[es] Hi\n"
        )

    @pytest.mark.asyncio
    async def test_failed_batch_fails_document(self, fast_retry_policy):
        document = SRTParser.parse(make_srt(4))
        backend = StubBackend([lambda texts: texts, AuthError("revoked")])

        with pytest.raises(AuthError):
            await translate_document(
                document, "pt", backend, batch_size=2, retry_policy=fast_retry_policy
            )

    @pytest.mark.asyncio
    async def test_mismatch_in_second_batch_reports_position(self):
        document = SRTParser.parse(make_srt(4))
        backend = StubBackend([lambda texts: texts, lambda texts: texts[:1]])

        with pytest.raises(CountMismatchError) as exc_info:
            await translate_document(
                document, "pt", backend, batch_size=2, retry_policy=RetryPolicy(max_retries=0)
            )

        assert exc_info.value.batch_index == 1
        assert exc_info.value.total_batches == 2


class TestBatchTranslationOrchestrator:
    """Test the orchestrator wrapper."""

    @pytest.mark.asyncio
    async def test_translate(self, sample_srt, fast_retry_policy):
        orchestrator = BatchTranslationOrchestrator(
            StubBackend(), batch_size=40, retry_policy=fast_retry_policy
        )

        translated = await orchestrator.translate(SRTParser.parse(sample_srt), "pt")

        assert translated.blocks[1].text == "[pt] <i>How are you?</i>"
        assert translated.blocks[2].text == "[pt] Fine, thanks\nSee you later"

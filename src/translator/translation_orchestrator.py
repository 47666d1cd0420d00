"""Batch translation orchestration with per-batch retry and count validation."""

import logging
import time
from typing import List, Optional, Sequence

from common.config import settings
from common.errors import CountMismatchError, TranslationError, classify_provider_error
from common.retry_utils import RetryPolicy
from common.subtitle_parser import (
    SubtitleDocument,
    chunk_texts,
    extract_text_for_translation,
)
from translator.backends.base import TranslationBackend

logger = logging.getLogger(__name__)


def validate_batch_output(
    inputs: Sequence[str],
    outputs: Sequence[str],
    batch_index: Optional[int] = None,
    total_batches: Optional[int] = None,
) -> None:
    """
    Check that a backend returned exactly one translation per input.

    Args:
        inputs: Texts sent to the backend
        outputs: Texts returned by the backend
        batch_index: 0-based batch number, for error messages
        total_batches: Number of batches in the document, for error messages

    Raises:
        CountMismatchError: If the counts differ
    """
    if len(outputs) != len(inputs):
        raise CountMismatchError(
            expected_count=len(inputs),
            actual_count=len(outputs),
            batch_index=batch_index,
            total_batches=total_batches,
        )


async def translate_batch_with_retry(
    backend: TranslationBackend,
    texts: Sequence[str],
    target_language: str,
    retry_policy: RetryPolicy,
    batch_index: int = 0,
    total_batches: int = 1,
) -> List[str]:
    """
    Translate one batch, retrying transient failures and count mismatches.

    Args:
        backend: Backend to call
        texts: Batch texts in document order
        target_language: Target language code
        retry_policy: Retry budget and backoff schedule
        batch_index: 0-based batch number
        total_batches: Number of batches in the document

    Returns:
        Translations, one per input text

    Raises:
        TranslationError: Permanent failure, or transient failure after the
            retry budget is spent
    """

    @retry_policy.decorator()
    async def translate_batch() -> List[str]:
        try:
            translations = await backend.translate_batch(list(texts), target_language)
        except TranslationError:
            raise
        except Exception as e:
            raise classify_provider_error(e, backend.provider_name) from e

        validate_batch_output(texts, translations, batch_index, total_batches)
        return [translation.strip() for translation in translations]

    return await translate_batch()


async def translate_document(
    document: SubtitleDocument,
    target_language: str,
    backend: TranslationBackend,
    batch_size: Optional[int] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> SubtitleDocument:
    """
    Translate every block of a document, batch by batch.

    Batches are sent sequentially in document order. Any batch that fails for
    good fails the whole document; earlier batches are discarded.

    Args:
        document: Parsed source document
        target_language: Target language code
        backend: Backend to call
        batch_size: Blocks per backend call (defaults to settings.translation_batch_size)
        retry_policy: Retry policy (defaults to the translation policy from settings)

    Returns:
        New document with the same blocks, timings and order, text translated

    Raises:
        TranslationError: If any batch fails permanently
    """
    batch_size = batch_size or settings.translation_batch_size
    retry_policy = retry_policy or RetryPolicy.for_translation()

    texts = extract_text_for_translation(document)
    if not texts:
        logger.info("No translatable blocks in document")
        return document

    batches = chunk_texts(texts, batch_size)
    translated: List[str] = []

    for batch_index, batch in enumerate(batches):
        logger.info(
            f"🔄 Translating batch {batch_index + 1}/{len(batches)} ({len(batch)} blocks)"
        )
        translated.extend(
            await translate_batch_with_retry(
                backend,
                batch,
                target_language,
                retry_policy,
                batch_index=batch_index,
                total_batches=len(batches),
            )
        )

    return document.with_texts(translated)


class BatchTranslationOrchestrator:
    """Translates documents with a fixed backend, batch size and retry policy."""

    def __init__(
        self,
        backend: TranslationBackend,
        batch_size: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.backend = backend
        self.batch_size = batch_size or settings.translation_batch_size
        self.retry_policy = retry_policy or RetryPolicy.for_translation()

    async def translate(
        self, document: SubtitleDocument, target_language: str
    ) -> SubtitleDocument:
        """
        Translate a document and log timing.

        Args:
            document: Parsed source document
            target_language: Target language code

        Returns:
            Translated document
        """
        block_count = len(document.translatable_blocks)
        logger.info(
            f"🚀 Translating {block_count} blocks to {target_language} "
            f"with {self.backend.provider_name} (batch size {self.batch_size})"
        )
        started = time.monotonic()

        translated = await translate_document(
            document,
            target_language,
            self.backend,
            batch_size=self.batch_size,
            retry_policy=self.retry_policy,
        )

        logger.info(
            f"✅ Translated {block_count} blocks in {time.monotonic() - started:.1f}s"
        )
        return translated

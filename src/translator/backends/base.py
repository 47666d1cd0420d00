"""Translation backend interface shared by every provider."""

from abc import ABC, abstractmethod
from typing import List

# Provider names as selected by the viewer
GOOGLE_TRANSLATE = "Google Translate"
GOOGLE_API = "Google API"
CHATGPT_API = "ChatGPT API"
DEEPSEEK_API = "DeepSeek API"
GEMINI_API = "Gemini API"


class TranslationBackend(ABC):
    """
    Translates an ordered batch of subtitle texts.

    Implementations perform exactly one provider call per ``translate_batch``
    and map provider failures into ``common.errors``; retrying is left to the
    orchestrator so every backend shares one retry policy.
    """

    provider_name: str = ""

    @abstractmethod
    async def translate_batch(self, texts: List[str], target_language: str) -> List[str]:
        """
        Translate a batch of texts.

        Args:
            texts: Subtitle texts in document order
            target_language: Target language code (e.g., 'pt')

        Returns:
            Translated texts, ideally one per input, in the same order

        Raises:
            TranslationError: Classified provider failure
        """

    async def close(self) -> None:
        """Release network resources held by the backend."""

"""Chat-completion translation backend for OpenAI-compatible APIs."""

import json
import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from common.config import settings
from common.errors import (
    AuthError,
    BalanceError,
    InvalidArgumentError,
    NetworkError,
    QuotaError,
    RateLimitError,
    TranslationError,
    classify_provider_error,
)
from common.gpt_utils import (
    LLMResponseParsingError,
    build_indexed_payload,
    parse_indexed_texts,
)
from common.utils import LanguageUtils
from translator.backends.base import TranslationBackend

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(TranslationBackend):
    """
    Translates batches through a chat completions endpoint.

    Used for ChatGPT, DeepSeek and Gemini, which all expose the OpenAI wire
    format. The model receives ``{"texts": [{"index", "text"}]}`` and must
    answer with the same structure.
    """

    def __init__(
        self,
        provider_name: str,
        api_key: str,
        model_name: str,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize the backend.

        Args:
            provider_name: Provider display name, used in logs and errors
            api_key: Provider API key
            model_name: Model to call
            base_url: API base URL (defaults to the OpenAI endpoint)
            client: Pre-built client, mainly for tests
        """
        self.provider_name = provider_name
        self.model_name = model_name
        # Retry logic is handled by the orchestrator's retry policy
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or settings.openai_base_url,
            timeout=settings.translation_request_timeout,
            max_retries=0,
        )
        logger.info(f"Initialized {provider_name} backend with model: {model_name}")

    def _build_translation_prompt(self, texts: List[str], target_language: str) -> str:
        """
        Build the user prompt for a batch.

        Args:
            texts: Texts to translate
            target_language: Target language code

        Returns:
            Prompt string embedding the JSON payload
        """
        language_name = LanguageUtils.iso_to_language_name(target_language)
        payload = json.dumps(build_indexed_payload(texts), ensure_ascii=False)

        return (
            f"You are a professional movie subtitle translator.\n"
            f'Translate each subtitle text in the "texts" array of the following JSON '
            f'object into {language_name} (language code "{target_language}").\n\n'
            f"The output must be a JSON object with the same structure as the input. "
            f'The "texts" array should contain the translated texts corresponding to '
            f"their original indices.\n\n"
            f"**Strict Requirements:**\n"
            f"- Strictly preserve line breaks and original formatting for each subtitle.\n"
            f"- Preserve all HTML tags (like <i>, <b>) exactly as they appear.\n"
            f"- Do not combine or split texts during translation.\n"
            f"- The number of elements in the output array must exactly match the input array.\n"
            f"- Ensure the final JSON is valid and retains the complete structure.\n\n"
            f"Input:\n{payload}\n"
        )

    async def translate_batch(self, texts: List[str], target_language: str) -> List[str]:
        if not texts:
            return []

        logger.info(
            f"Translating {len(texts)} texts to {target_language} via {self.provider_name}"
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {
                        "role": "user",
                        "content": self._build_translation_prompt(texts, target_language),
                    }
                ],
                response_format={"type": "json_object"},
                temperature=settings.translation_temperature,
            )
        except openai.OpenAIError as e:
            raise self._map_api_error(e) from e

        if not response.choices:
            raise LLMResponseParsingError(
                f"{self.provider_name} returned no choices in response"
            )

        choice = response.choices[0]
        content = choice.message.content
        if not content:
            raise LLMResponseParsingError(
                f"{self.provider_name} returned empty content "
                f"(finish_reason={choice.finish_reason})"
            )
        if choice.finish_reason == "length":
            logger.warning(
                f"⚠️  {self.provider_name} response was truncated (finish_reason=length); "
                f"{len(texts)} texts in batch"
            )

        return parse_indexed_texts(content, len(texts))

    def _map_api_error(self, error: openai.OpenAIError) -> TranslationError:
        """
        Map an OpenAI client exception into the translation error taxonomy.

        Args:
            error: Exception raised by the OpenAI client

        Returns:
            Classified TranslationError
        """
        message = f"{self.provider_name} error: {error}"
        lowered = str(error).lower()

        if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError)):
            return NetworkError(message)
        if isinstance(error, openai.AuthenticationError):
            return AuthError(message)
        if isinstance(error, openai.RateLimitError):
            if "quota" in lowered:
                return QuotaError(message)
            return RateLimitError(message)
        if isinstance(error, openai.APIStatusError):
            if error.status_code == 402 or "insufficient balance" in lowered:
                return BalanceError(message)
            if error.status_code == 403:
                return AuthError(message)
            if error.status_code >= 500:
                return NetworkError(message)
            classified = classify_provider_error(error, self.provider_name)
            if type(classified) is TranslationError and error.status_code in (400, 404, 422):
                return InvalidArgumentError(message)
            return classified

        return classify_provider_error(error, self.provider_name)

    async def close(self) -> None:
        await self.client.close()

"""Selects the translation backend for a provider name."""

import logging
from typing import Optional

from common.config import settings
from common.errors import AuthError, InvalidArgumentError
from translator.backends.base import (
    CHATGPT_API,
    DEEPSEEK_API,
    GEMINI_API,
    GOOGLE_API,
    GOOGLE_TRANSLATE,
    TranslationBackend,
)
from translator.backends.google_backend import GoogleCloudBackend, GoogleFreeBackend
from translator.backends.openai_backend import OpenAICompatibleBackend

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = (GOOGLE_TRANSLATE, GOOGLE_API, CHATGPT_API, DEEPSEEK_API, GEMINI_API)


def _default_base_url(provider: str) -> str:
    return {
        CHATGPT_API: settings.openai_base_url,
        DEEPSEEK_API: settings.deepseek_base_url,
        GEMINI_API: settings.gemini_base_url,
    }[provider]


def get_backend(
    provider: str,
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    base_url: Optional[str] = None,
) -> TranslationBackend:
    """
    Build the backend for a provider.

    Args:
        provider: One of SUPPORTED_PROVIDERS
        api_key: Provider credentials (not needed for 'Google Translate')
        model_name: Model override for chat providers
        base_url: Endpoint override; only honoured for 'ChatGPT API'

    Returns:
        TranslationBackend instance

    Raises:
        InvalidArgumentError: If the provider is unknown
        AuthError: If the provider needs an API key and none was given
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise InvalidArgumentError(
            f"Unknown translation provider '{provider}'. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    if provider == GOOGLE_TRANSLATE:
        return GoogleFreeBackend()

    if not api_key:
        raise AuthError(f"{provider} requires an API key")

    if provider == GOOGLE_API:
        return GoogleCloudBackend(api_key)

    # DeepSeek and Gemini always use their own endpoints
    endpoint = base_url if provider == CHATGPT_API and base_url else _default_base_url(provider)
    return OpenAICompatibleBackend(
        provider_name=provider,
        api_key=api_key,
        model_name=model_name or settings.get_default_model(provider),
        base_url=endpoint,
    )

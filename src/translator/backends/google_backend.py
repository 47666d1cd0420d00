"""Google translation backends: the free web endpoint and Cloud Translation v2."""

import logging
from typing import Any, List, Optional

import httpx

from common.config import settings
from common.errors import (
    AuthError,
    NetworkError,
    QuotaError,
    RateLimitError,
    TranslationError,
    classify_provider_error,
)
from common.gpt_utils import truncate_for_logging
from translator.backends.base import GOOGLE_API, GOOGLE_TRANSLATE, TranslationBackend

logger = logging.getLogger(__name__)

# Separator used to send a whole batch as one string to the free endpoint
BATCH_SEPARATOR = " ||| "

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


def _map_http_error(response: httpx.Response, provider: str) -> TranslationError:
    """
    Map a non-success HTTP response into the translation error taxonomy.

    Args:
        response: Response with a 4xx/5xx status
        provider: Provider name for the message

    Returns:
        Classified TranslationError
    """
    body = truncate_for_logging(response.text, max_length=300, edge_length=150)
    message = f"{provider} error: HTTP {response.status_code}: {body}"

    if response.status_code == 429:
        if "quota" in body.lower():
            return QuotaError(message)
        return RateLimitError(message)
    if response.status_code >= 500:
        return NetworkError(message)
    if response.status_code == 401:
        return AuthError(message)

    classified = classify_provider_error(RuntimeError(body), provider)
    if type(classified) is TranslationError and response.status_code == 403:
        return AuthError(message)
    return classified


class _HTTPBackend(TranslationBackend):
    """Base for backends that talk plain HTTP through httpx."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.translation_request_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self.http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.provider_name} request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"{self.provider_name} request failed: {e}") from e

        if response.status_code >= 400:
            raise _map_http_error(response, self.provider_name)

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f"{self.provider_name} returned a non-JSON response"
            ) from e

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()


class GoogleFreeBackend(_HTTPBackend):
    """
    Google Translate web endpoint (no API key).

    The whole batch is sent as a single query joined with ``|||`` and split
    again on the way back; when Google eats or duplicates a separator the
    count check in the orchestrator catches it.
    """

    provider_name = GOOGLE_TRANSLATE

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)

    async def translate_batch(self, texts: List[str], target_language: str) -> List[str]:
        if not texts:
            return []

        data = await self._send(
            "GET",
            settings.google_free_url,
            params={
                "client": "gtx",
                "sl": "auto",
                "tl": target_language,
                "dt": "t",
                "q": BATCH_SEPARATOR.join(texts),
            },
        )

        # Response shape: [[["translated", "original", ...], ...], ...]
        translated = ""
        if isinstance(data, list) and data and isinstance(data[0], list):
            translated = "".join(
                element[0] for element in data[0] if element and element[0]
            )

        results = [part.strip() for part in translated.split("|||")]
        if len(results) != len(texts):
            logger.warning(
                f"⚠️  Google Translate returned {len(results)} texts for {len(texts)} inputs"
            )
        return results


class GoogleCloudBackend(_HTTPBackend):
    """Google Cloud Translation v2 REST API; one request per batch."""

    provider_name = GOOGLE_API

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        self.api_key = api_key

    async def translate_batch(self, texts: List[str], target_language: str) -> List[str]:
        if not texts:
            return []

        data = await self._send(
            "POST",
            settings.google_cloud_url,
            params={"key": self.api_key},
            json={"q": texts, "target": target_language, "format": "text"},
        )

        try:
            translations = data["data"]["translations"]
        except (KeyError, TypeError) as e:
            raise NetworkError(
                f"{self.provider_name} returned an unexpected response shape"
            ) from e

        return [item.get("translatedText", "") for item in translations]

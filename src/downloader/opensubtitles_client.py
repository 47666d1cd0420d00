"""OpenSubtitles v3 (Stremio addon endpoint) client."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import httpx

from common.config import settings
from common.errors import NetworkError, TranslationError
from common.retry_utils import RetryPolicy
from common.schemas import ContentKind, SubtitleCandidate
from common.utils import LanguageUtils
from translator.file_operations import decode_subtitle_bytes, write_file_atomically

logger = logging.getLogger(__name__)


class OpenSubtitlesAPIError(TranslationError):
    """Raised when the subtitle source rejects a request."""

    user_message = "Could not fetch source subtitles. Please try again later."


def select_best_candidate(
    candidates: List[SubtitleCandidate], preferred_language: str
) -> Optional[SubtitleCandidate]:
    """
    Pick the subtitle to use: one already in the preferred language, else the first.

    Args:
        candidates: Candidates in provider order
        preferred_language: ISO 639-1 code of the target language

    Returns:
        Chosen candidate, or None when there are none
    """
    if not candidates:
        return None

    preferred = preferred_language.lower()
    for candidate in candidates:
        if candidate.lang.lower() == preferred:
            return candidate
    return candidates[0]


class OpenSubtitlesV3Client:
    """
    Client for the public OpenSubtitles v3 endpoint used by Stremio.

    No authentication is needed. Network failures are retried with the
    source-download retry policy.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Endpoint root (defaults to settings.opensubtitles_base_url)
            http_client: Shared httpx client; one is created when omitted
            retry_policy: Retry policy (defaults to settings)
        """
        self.base_url = (base_url or settings.opensubtitles_base_url).rstrip("/") + "/"
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.opensubtitles_timeout, follow_redirects=True
        )
        self.retry_policy = retry_policy or RetryPolicy.for_source_downloads()

    async def disconnect(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()
            logger.info("🔌 OpenSubtitles client disconnected")

    def build_search_url(
        self,
        kind: Union[ContentKind, str],
        title_id: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> str:
        """
        Build the search URL for a title.

        Example:
            >>> OpenSubtitlesV3Client().build_search_url("series", "tt1", 1, 3)
            'https://opensubtitles-v3.strem.io/subtitles/series/tt1:1:3.json'
        """
        kind = ContentKind(kind)
        if kind is ContentKind.SERIES:
            return f"{self.base_url}{kind.value}/{title_id}:{season}:{episode}.json"
        return f"{self.base_url}{kind.value}/{title_id}.json"

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self.http_client.get(url)
        except httpx.RequestError as e:
            raise NetworkError(f"OpenSubtitles request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkError(
                f"OpenSubtitles returned HTTP {response.status_code} for {url}"
            )
        return response

    async def search_subtitles(
        self,
        kind: Union[ContentKind, str],
        title_id: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> List[SubtitleCandidate]:
        """
        List subtitles available for a title.

        Args:
            kind: 'movie' or 'series'
            title_id: IMDb title id
            season: Season number (series only)
            episode: Episode number (series only)

        Returns:
            Candidates with ISO 639-1 language codes, in provider order

        Raises:
            NetworkError: If the endpoint stays unreachable after retries
            OpenSubtitlesAPIError: If the endpoint rejects the request
        """
        url = self.build_search_url(kind, title_id, season, episode)

        @self.retry_policy.decorator()
        async def _do_search() -> httpx.Response:
            return await self._get(url)

        logger.info(f"🔍 Searching subtitles: {url}")
        response = await _do_search()

        if response.status_code == 404:
            return []
        if response.status_code >= 400:
            raise OpenSubtitlesAPIError(
                f"OpenSubtitles search failed with HTTP {response.status_code}"
            )

        try:
            subtitles = response.json().get("subtitles") or []
        except (ValueError, AttributeError) as e:
            raise OpenSubtitlesAPIError("OpenSubtitles returned an invalid response") from e

        candidates = [
            SubtitleCandidate(
                url=item["url"],
                lang=LanguageUtils.opensubtitles_to_iso(item.get("lang", "")),
                id=str(item["id"]) if item.get("id") is not None else None,
            )
            for item in subtitles
            if isinstance(item, dict) and item.get("url")
        ]
        logger.info(f"Found {len(candidates)} subtitle(s) for {title_id}")
        return candidates

    async def find_best_subtitle(
        self,
        kind: Union[ContentKind, str],
        title_id: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
        preferred_language: str = "en",
    ) -> Optional[SubtitleCandidate]:
        """Search and pick the candidate to translate (see select_best_candidate)."""
        candidates = await self.search_subtitles(kind, title_id, season, episode)
        return select_best_candidate(candidates, preferred_language)

    async def download_subtitle(
        self, candidate: SubtitleCandidate, output_path: Union[str, Path]
    ) -> Path:
        """
        Download a subtitle file.

        Args:
            candidate: Subtitle to download
            output_path: Local destination

        Returns:
            Path to the downloaded file

        Raises:
            NetworkError: If the download stays unreachable after retries
            OpenSubtitlesAPIError: If the file is not available
        """

        @self.retry_policy.decorator()
        async def _do_download() -> httpx.Response:
            return await self._get(candidate.url)

        response = await _do_download()
        if response.status_code >= 400:
            raise OpenSubtitlesAPIError(
                f"Subtitle download failed with HTTP {response.status_code}"
            )

        # Stored as UTF-8 text so later reads see one consistent encoding
        saved = write_file_atomically(output_path, decode_subtitle_bytes(response.content))
        logger.info(f"✅ Downloaded subtitle to {saved}")
        return saved

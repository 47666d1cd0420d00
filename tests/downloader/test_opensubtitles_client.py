"""Tests for the OpenSubtitles v3 client."""

import httpx
import pytest

from common.errors import NetworkError
from common.retry_utils import RetryPolicy
from common.schemas import ContentKind, SubtitleCandidate
from downloader.opensubtitles_client import (
    OpenSubtitlesAPIError,
    OpenSubtitlesV3Client,
    select_best_candidate,
)

BASE_URL = "https://subs.example.test/subtitles/"

SEARCH_RESPONSE = {
    "subtitles": [
        {"id": "101", "url": "https://subs.example.test/file/101", "lang": "eng"},
        {"id": "102", "url": "https://subs.example.test/file/102", "lang": "por"},
        {"id": "103", "lang": "spa"},
    ]
}


def make_client(handler, max_retries: int = 2) -> OpenSubtitlesV3Client:
    return OpenSubtitlesV3Client(
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(max_retries=max_retries, initial_delay=0.0, max_delay=0.0),
    )


class TestSelectBestCandidate:
    """Test candidate selection."""

    def test_prefers_target_language(self):
        candidates = [
            SubtitleCandidate(url="a", lang="en"),
            SubtitleCandidate(url="b", lang="pt"),
        ]

        assert select_best_candidate(candidates, "PT").url == "b"

    def test_falls_back_to_first(self):
        candidates = [
            SubtitleCandidate(url="a", lang="en"),
            SubtitleCandidate(url="b", lang="es"),
        ]

        assert select_best_candidate(candidates, "pt").url == "a"

    def test_no_candidates(self):
        assert select_best_candidate([], "pt") is None


class TestBuildSearchUrl:
    """Test search URL construction."""

    def test_series_url(self):
        client = OpenSubtitlesV3Client(base_url="https://subs.example.test/subtitles")

        assert client.build_search_url(ContentKind.SERIES, "tt1", 2, 5) == (
            "https://subs.example.test/subtitles/series/tt1:2:5.json"
        )

    def test_movie_url(self):
        client = OpenSubtitlesV3Client(base_url=BASE_URL)

        assert client.build_search_url("movie", "tt1") == (
            "https://subs.example.test/subtitles/movie/tt1.json"
        )


class TestSearchSubtitles:
    """Test subtitle search."""

    @pytest.mark.asyncio
    async def test_search_maps_languages_and_skips_entries_without_url(self):
        client = make_client(lambda request: httpx.Response(200, json=SEARCH_RESPONSE))

        candidates = await client.search_subtitles(ContentKind.MOVIE, "tt1")

        assert [(c.id, c.lang) for c in candidates] == [("101", "en"), ("102", "pt")]
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_not_found_means_no_candidates(self):
        client = make_client(lambda request: httpx.Response(404))

        assert await client.search_subtitles(ContentKind.MOVIE, "tt1") == []
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=SEARCH_RESPONSE)

        client = make_client(handler, max_retries=2)

        candidates = await client.search_subtitles(ContentKind.SERIES, "tt1", 1, 1)

        assert len(calls) == 3
        assert len(candidates) == 2
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("unreachable", request=request)

        client = make_client(handler, max_retries=2)

        with pytest.raises(NetworkError):
            await client.search_subtitles(ContentKind.MOVIE, "tt1")

        assert len(calls) == 3
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        client = make_client(handler)

        with pytest.raises(OpenSubtitlesAPIError):
            await client.search_subtitles(ContentKind.MOVIE, "tt1")

        assert len(calls) == 1
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_find_best_subtitle(self):
        client = make_client(lambda request: httpx.Response(200, json=SEARCH_RESPONSE))

        best = await client.find_best_subtitle(
            ContentKind.MOVIE, "tt1", preferred_language="pt"
        )

        assert best.id == "102"
        await client.http_client.aclose()


class TestDownloadSubtitle:
    """Test subtitle download."""

    @pytest.mark.asyncio
    async def test_download_writes_utf8(self, tmp_path):
        body = "1\n00:00:01,000 --> 00:00:02,000\nOlá\n".encode("cp1252")
        client = make_client(lambda request: httpx.Response(200, content=body))
        candidate = SubtitleCandidate(url="https://subs.example.test/file/1", lang="pt")

        saved = await client.download_subtitle(candidate, tmp_path / "dl" / "sub.srt")

        assert saved.read_text(encoding="utf-8").endswith("Olá\n")
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        client = make_client(lambda request: httpx.Response(410))
        candidate = SubtitleCandidate(url="https://subs.example.test/file/1", lang="pt")

        with pytest.raises(OpenSubtitlesAPIError):
            await client.download_subtitle(candidate, tmp_path / "sub.srt")

        assert not (tmp_path / "sub.srt").exists()
        await client.http_client.aclose()

    @pytest.mark.asyncio
    async def test_disconnect_leaves_shared_client_open(self):
        http_client = httpx.AsyncClient()
        client = OpenSubtitlesV3Client(base_url=BASE_URL, http_client=http_client)

        await client.disconnect()

        assert not http_client.is_closed
        await http_client.aclose()

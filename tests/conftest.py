"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import fakeredis.aioredis
import pytest
import pytest_asyncio

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from common.job_registry import InMemoryJobRegistry, RedisJobRegistry
from common.redis_client import RedisJobClient
from common.retry_utils import RetryPolicy
from common.schemas import ContentKind, SubtitleCandidate, TranslationRequest
from translator.backends.base import TranslationBackend
from translator.file_operations import write_file_atomically

SAMPLE_SRT = """1
00:00:01,000 --> 00:00:04,000
Hello there

2
00:00:05,000 --> 00:00:08,000
<i>How are you?</i>

3
00:00:09,000 --> 00:00:12,000
Fine, thanks
See you later
"""


class StubBackend(TranslationBackend):
    """
    Scriptable translation backend.

    Each call to translate_batch pops the next entry of ``script``: an
    exception is raised, a callable is applied to the inputs, and a list is
    returned as-is. With an empty script every text is prefixed with the
    target language.
    """

    provider_name = "Stub"

    def __init__(self, script: Optional[list] = None):
        self.script = list(script or [])
        self.calls: List[List[str]] = []
        self.closed = False

    async def translate_batch(self, texts: List[str], target_language: str) -> List[str]:
        self.calls.append(list(texts))
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, BaseException):
                raise step
            if callable(step):
                return step(texts)
            return step
        return [f"[{target_language}] {text}" for text in texts]

    async def close(self) -> None:
        self.closed = True


class FakeSourceClient:
    """In-memory stand-in for the OpenSubtitles client."""

    def __init__(
        self,
        candidates: Optional[List[SubtitleCandidate]] = None,
        content: str = SAMPLE_SRT,
        download_error: Optional[BaseException] = None,
    ):
        self.candidates = (
            [SubtitleCandidate(url="https://example.test/sub.srt", lang="en", id="1")]
            if candidates is None
            else candidates
        )
        self.content = content
        self.download_error = download_error
        self.search_calls = 0
        self.downloaded: List[Path] = []

    async def find_best_subtitle(
        self, kind, title_id, season=None, episode=None, preferred_language="en"
    ) -> Optional[SubtitleCandidate]:
        self.search_calls += 1
        for candidate in self.candidates:
            if candidate.lang == preferred_language:
                return candidate
        return self.candidates[0] if self.candidates else None

    async def download_subtitle(self, candidate: SubtitleCandidate, output_path) -> Path:
        if self.download_error is not None:
            raise self.download_error
        saved = write_file_atomically(output_path, self.content)
        self.downloaded.append(saved)
        return saved

    async def disconnect(self) -> None:
        pass


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


@pytest.fixture
def storage_root(tmp_path) -> Path:
    """Empty subtitle storage directory."""
    root = tmp_path / "subtitles"
    root.mkdir()
    return root


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    """Retry policy with the default budget and no waiting."""
    return RetryPolicy(max_retries=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def memory_registry() -> InMemoryJobRegistry:
    return InMemoryJobRegistry()


@pytest.fixture
def fake_source_client() -> FakeSourceClient:
    return FakeSourceClient()


@pytest.fixture
def stub_backend_factory() -> Callable[[StubBackend], Callable[..., TranslationBackend]]:
    """
    Build a backend factory that always hands out the given backend.

    The factory records the arguments of every call on ``factory.calls``.
    """

    def make(backend: StubBackend) -> Callable[..., TranslationBackend]:
        def factory(provider, api_key=None, model_name=None, base_url=None):
            factory.calls.append((provider, api_key, model_name, base_url))
            return backend

        factory.calls = []
        return factory

    return make


@pytest.fixture
def movie_request() -> TranslationRequest:
    return TranslationRequest(
        title_id="tt1234567",
        kind=ContentKind.MOVIE,
        target_language="pt",
        provider="ChatGPT API",
        api_key="sk-test",
    )


@pytest.fixture
def series_request() -> TranslationRequest:
    return TranslationRequest(
        title_id="tt7654321",
        kind=ContentKind.SERIES,
        season=1,
        episode=3,
        target_language="pt",
        provider="ChatGPT API",
        api_key="sk-test",
    )


@pytest_asyncio.fixture
async def fake_redis_client():
    """
    Fake Redis client using fakeredis for realistic Redis behavior.

    This provides a real Redis-like interface without requiring a Redis server.
    """
    fake_redis = fakeredis.aioredis.FakeRedis(decode_responses=True, encoding="utf-8")
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest_asyncio.fixture
async def fake_redis_job_client(fake_redis_client):
    """RedisJobClient wired to fakeredis."""
    client = RedisJobClient(client=fake_redis_client)
    yield client
    client.connected = False


@pytest_asyncio.fixture
async def redis_registry(fake_redis_job_client) -> RedisJobRegistry:
    return RedisJobRegistry(fake_redis_job_client, ttl_seconds=60)

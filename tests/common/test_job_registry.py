"""Tests for the job registry and its dedup guarantee."""

import asyncio
import json
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
import pytest_asyncio
from redis.exceptions import RedisError

from common.job_registry import (
    InMemoryJobRegistry,
    RedisJobRegistry,
    create_job_registry,
)
from common.redis_client import RedisJobClient
from common.schemas import JobKey, TranslationJob


@pytest.fixture
def job_key() -> JobKey:
    return JobKey(title_id="tt1234567", season=1, episode=3, target_language="pt")


@pytest.fixture
def job(job_key) -> TranslationJob:
    return TranslationJob(key=job_key, provider="ChatGPT API", api_key="sk-secret")


@pytest_asyncio.fixture(params=["memory", "redis"])
async def registry(request):
    """Run the shared registry contract against both implementations."""
    if request.param == "memory":
        yield InMemoryJobRegistry()
        return

    fake_redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield RedisJobRegistry(RedisJobClient(client=fake_redis), ttl_seconds=60)
    await fake_redis.flushall()
    await fake_redis.aclose()


class TestRegistryContract:
    """Behaviour shared by every registry implementation."""

    @pytest.mark.asyncio
    async def test_first_admission_wins(self, registry, job_key, job):
        assert await registry.try_admit(job_key, job) is True
        assert await registry.try_admit(job_key, job) is False
        assert await registry.is_active(job_key)

    @pytest.mark.asyncio
    async def test_release_allows_readmission(self, registry, job_key, job):
        await registry.try_admit(job_key, job)
        await registry.release(job_key)

        assert not await registry.is_active(job_key)
        assert await registry.try_admit(job_key, job) is True

    @pytest.mark.asyncio
    async def test_release_unknown_key_is_noop(self, registry, job_key):
        await registry.release(job_key)

        assert not await registry.is_active(job_key)

    @pytest.mark.asyncio
    async def test_keys_differ_by_language(self, registry, job_key, job):
        other = job_key.model_copy(update={"target_language": "es"})

        assert await registry.try_admit(job_key, job)
        assert await registry.try_admit(other)

    @pytest.mark.asyncio
    async def test_concurrent_admission_admits_exactly_one(self, registry, job_key, job):
        results = await asyncio.gather(
            *[registry.try_admit(job_key, job) for _ in range(10)]
        )

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_stored_job_has_no_credentials(self, registry, job_key, job):
        await registry.try_admit(job_key, job)

        stored = await registry.get_job(job_key)

        assert stored is not None
        assert stored.provider == "ChatGPT API"
        assert stored.api_key is None

    @pytest.mark.asyncio
    async def test_record_source_files(self, registry, job_key, job):
        await registry.try_admit(job_key, job)
        await registry.record_source_files(job_key, 2)

        stored = await registry.get_job(job_key)

        assert stored.source_file_count == 2

    @pytest.mark.asyncio
    async def test_admission_context_releases_on_exception(self, registry, job_key, job):
        with pytest.raises(RuntimeError):
            async with registry.admission(job_key, job) as admitted:
                assert admitted
                raise RuntimeError("job blew up")

        assert not await registry.is_active(job_key)

    @pytest.mark.asyncio
    async def test_admission_context_does_not_release_others_job(
        self, registry, job_key, job
    ):
        await registry.try_admit(job_key, job)

        async with registry.admission(job_key, job) as admitted:
            assert not admitted

        # The first holder still owns the key
        assert await registry.is_active(job_key)

    @pytest.mark.asyncio
    async def test_admission_context_releases_on_cancellation(
        self, registry, job_key, job
    ):
        entered = asyncio.Event()

        async def hold():
            async with registry.admission(job_key, job):
                entered.set()
                await asyncio.sleep(3600)

        task = asyncio.create_task(hold())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not await registry.is_active(job_key)


class TestRedisJobRegistry:
    """Redis-specific behaviour."""

    @pytest.mark.asyncio
    async def test_record_never_contains_api_key(
        self, redis_registry, fake_redis_client, job_key, job
    ):
        await redis_registry.try_admit(job_key, job)

        raw = await fake_redis_client.get("translation:tt1234567:1:3:pt")

        assert raw is not None
        assert "sk-secret" not in raw
        assert json.loads(raw)["provider"] == "ChatGPT API"

    @pytest.mark.asyncio
    async def test_entries_carry_safety_ttl(
        self, redis_registry, fake_redis_client, job_key, job
    ):
        await redis_registry.try_admit(job_key, job)

        ttl = await fake_redis_client.ttl("translation:tt1234567:1:3:pt")

        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_release_removes_source_file_counter(
        self, redis_registry, fake_redis_client, job_key, job
    ):
        await redis_registry.try_admit(job_key, job)
        await redis_registry.record_source_files(job_key, 1)

        await redis_registry.release(job_key)

        assert await fake_redis_client.exists("translation:tt1234567:1:3:pt:source_files") == 0

    @pytest.mark.asyncio
    async def test_admits_when_redis_is_unavailable(self, job_key, job):
        client = RedisJobClient()
        client.ensure_connected = AsyncMock(return_value=False)
        registry = RedisJobRegistry(client)

        assert await registry.try_admit(job_key, job) is True
        assert await registry.is_active(job_key) is False

    @pytest.mark.asyncio
    async def test_admits_on_redis_error(self, fake_redis_job_client, job_key, job):
        fake_redis_job_client.ensure_connected = AsyncMock(return_value=True)
        fake_redis_job_client.client = AsyncMock()
        fake_redis_job_client.client.set = AsyncMock(side_effect=RedisError("boom"))
        registry = RedisJobRegistry(fake_redis_job_client)

        assert await registry.try_admit(job_key, job) is True

    @pytest.mark.asyncio
    async def test_health_check_reports_backend(self, redis_registry):
        health = await redis_registry.health_check()

        assert health["connected"] is True
        assert health["backend"] == "redis"


class TestCreateJobRegistry:
    """Registry selection by configuration."""

    @pytest.mark.asyncio
    async def test_memory_backend(self):
        registry = await create_job_registry("memory")

        assert isinstance(registry, InMemoryJobRegistry)

    @pytest.mark.asyncio
    async def test_unknown_backend_is_rejected(self):
        with pytest.raises(ValueError):
            await create_job_registry("etcd")

"""Tests for the Redis connection manager."""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from common.redis_client import RedisJobClient


class TestRedisJobClientConnect:
    """Test connection establishment."""

    @pytest.mark.asyncio
    async def test_connect_success(self, fake_redis_client):
        client = RedisJobClient(redis_url="redis://example:6379")

        with patch("common.redis_client.redis.from_url", return_value=fake_redis_client):
            await client.connect()

        assert client.connected is True
        assert client.client is fake_redis_client

    @pytest.mark.asyncio
    async def test_connect_failure_degrades(self):
        broken = AsyncMock()
        broken.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        client = RedisJobClient(redis_url="redis://nowhere:6379")

        with patch("common.redis_client.redis.from_url", return_value=broken), patch(
            "common.redis_client.asyncio.sleep", new=AsyncMock()
        ):
            await client.connect()

        assert client.connected is False

    @pytest.mark.asyncio
    async def test_injected_client_counts_as_connected(self, fake_redis_client):
        client = RedisJobClient(client=fake_redis_client)

        assert client.connected is True
        assert await client.ensure_connected() is True


class TestRedisJobClientHealth:
    """Test health reporting and reconnection."""

    @pytest.mark.asyncio
    async def test_health_check_without_client(self):
        health = await RedisJobClient().health_check()

        assert health["connected"] is False
        assert health["status"] == "disconnected"

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, fake_redis_job_client):
        health = await fake_redis_job_client.health_check()

        assert health == {"connected": True, "status": "healthy"}

    @pytest.mark.asyncio
    async def test_ensure_connected_reconnects_after_failed_ping(self, fake_redis_client):
        stale = AsyncMock()
        stale.ping = AsyncMock(side_effect=RedisConnectionError("gone"))
        client = RedisJobClient(client=stale)

        with patch("common.redis_client.redis.from_url", return_value=fake_redis_client):
            assert await client.ensure_connected() is True

        stale.aclose.assert_awaited_once()
        assert client.client is fake_redis_client

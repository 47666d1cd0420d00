"""Job registry and dedup guard for in-flight translation jobs."""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import ValidationError
from redis.exceptions import RedisError

from common.config import settings
from common.redis_client import RedisJobClient
from common.schemas import JobKey, TranslationJob

logger = logging.getLogger(__name__)


class JobRegistry(ABC):
    """
    Admission control for translation jobs.

    At most one job may be active per JobKey. Callers that fail to admit must
    not start work and should report "translating" instead. Every admitted key
    must be released exactly once; ``admission`` guarantees that.
    """

    @abstractmethod
    async def try_admit(self, key: JobKey, job: Optional[TranslationJob] = None) -> bool:
        """
        Register a job for a key if none is active.

        Args:
            key: Job identity
            job: Job details to record alongside the key

        Returns:
            True if admitted, False if another job is active for the key
        """

    @abstractmethod
    async def is_active(self, key: JobKey) -> bool:
        """Return True if a job is currently registered for the key."""

    @abstractmethod
    async def release(self, key: JobKey) -> None:
        """Remove the key from the registry. Releasing an unknown key is a no-op."""

    @abstractmethod
    async def record_source_files(self, key: JobKey, count: int) -> None:
        """Record how many source files the job downloaded, for cleanup bookkeeping."""

    @abstractmethod
    async def get_job(self, key: JobKey) -> Optional[TranslationJob]:
        """Return the job registered for the key, without credentials."""

    async def health_check(self) -> Dict[str, Any]:
        return {"connected": True, "status": "healthy"}

    async def close(self) -> None:
        """Release any resources held by the registry."""

    @asynccontextmanager
    async def admission(
        self, key: JobKey, job: Optional[TranslationJob] = None
    ) -> AsyncIterator[bool]:
        """
        Scoped admission: yields whether the key was admitted and releases it on exit.

        The release runs on every exit path, including exceptions and task
        cancellation.

        Example:
            async with registry.admission(key, job) as admitted:
                if not admitted:
                    return
                await run_job()
        """
        admitted = await self.try_admit(key, job)
        try:
            yield admitted
        finally:
            if admitted:
                await asyncio.shield(self.release(key))


class InMemoryJobRegistry(JobRegistry):
    """Process-local registry backed by a dict."""

    def __init__(self):
        self._jobs: Dict[str, TranslationJob] = {}
        self._lock: Optional[asyncio.Lock] = None

    @property
    def lock(self) -> asyncio.Lock:
        """Lazy initialization of the lock (must be created within event loop)."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def try_admit(self, key: JobKey, job: Optional[TranslationJob] = None) -> bool:
        async with self.lock:
            registry_key = key.as_string()
            if registry_key in self._jobs:
                logger.info(f"⏳ Translation already in progress for {registry_key}")
                return False

            self._jobs[registry_key] = (job or _anonymous_job(key)).model_copy(
                update={"api_key": None}
            )
            logger.debug(f"Admitted translation job {registry_key}")
            return True

    async def is_active(self, key: JobKey) -> bool:
        return key.as_string() in self._jobs

    async def release(self, key: JobKey) -> None:
        async with self.lock:
            if self._jobs.pop(key.as_string(), None) is not None:
                logger.debug(f"Released translation job {key}")

    async def record_source_files(self, key: JobKey, count: int) -> None:
        async with self.lock:
            job = self._jobs.get(key.as_string())
            if job is not None:
                self._jobs[key.as_string()] = job.model_copy(
                    update={"source_file_count": count}
                )

    async def get_job(self, key: JobKey) -> Optional[TranslationJob]:
        return self._jobs.get(key.as_string())

    def active_count(self) -> int:
        return len(self._jobs)

    async def health_check(self) -> Dict[str, Any]:
        return {
            "connected": True,
            "status": "healthy",
            "backend": "memory",
            "active_jobs": len(self._jobs),
        }


class RedisJobRegistry(JobRegistry):
    """
    Registry shared between processes through Redis.

    Admission is a single ``SET NX`` so two processes racing on the same key
    cannot both win. Entries carry a safety TTL so a crashed process does not
    block a key forever. When Redis is unavailable the registry degrades
    gracefully: jobs are admitted and a warning is logged.
    """

    KEY_PREFIX = "translation"

    def __init__(self, redis_client: RedisJobClient, ttl_seconds: Optional[int] = None):
        """
        Initialize the registry.

        Args:
            redis_client: Connection manager used for all registry operations
            ttl_seconds: Safety expiry for entries (0 disables it)
        """
        self.redis_client = redis_client
        self.ttl_seconds = (
            settings.job_registry_ttl_seconds if ttl_seconds is None else ttl_seconds
        )

    def _registry_key(self, key: JobKey) -> str:
        return f"{self.KEY_PREFIX}:{key.as_string()}"

    def _source_files_key(self, key: JobKey) -> str:
        return f"{self._registry_key(key)}:source_files"

    @property
    def _expiry(self) -> Optional[int]:
        return self.ttl_seconds if self.ttl_seconds > 0 else None

    async def try_admit(self, key: JobKey, job: Optional[TranslationJob] = None) -> bool:
        if not await self.redis_client.ensure_connected():
            logger.warning(
                f"Redis unavailable - admitting {key} without duplicate check"
            )
            return True

        record = (job or _anonymous_job(key)).to_registry_record()
        try:
            admitted = await self.redis_client.client.set(
                self._registry_key(key), record, nx=True, ex=self._expiry
            )
        except RedisError as e:
            logger.error(f"Redis error during admission of {key}: {e}")
            return True

        if not admitted:
            logger.info(f"⏳ Translation already in progress for {key}")
            return False

        logger.debug(f"Admitted translation job {key}")
        return True

    async def is_active(self, key: JobKey) -> bool:
        if not await self.redis_client.ensure_connected():
            return False

        try:
            return bool(await self.redis_client.client.exists(self._registry_key(key)))
        except RedisError as e:
            logger.error(f"Redis error checking job {key}: {e}")
            return False

    async def release(self, key: JobKey) -> None:
        if not await self.redis_client.ensure_connected():
            logger.warning(f"Redis unavailable - could not release {key}")
            return

        try:
            await self.redis_client.client.delete(
                self._registry_key(key), self._source_files_key(key)
            )
            logger.debug(f"Released translation job {key}")
        except RedisError as e:
            logger.error(f"Redis error releasing job {key}: {e}")

    async def record_source_files(self, key: JobKey, count: int) -> None:
        if not await self.redis_client.ensure_connected():
            return

        try:
            await self.redis_client.client.set(
                self._source_files_key(key), count, ex=self._expiry
            )
        except RedisError as e:
            logger.error(f"Redis error recording source files for {key}: {e}")

    async def get_job(self, key: JobKey) -> Optional[TranslationJob]:
        if not await self.redis_client.ensure_connected():
            return None

        try:
            record = await self.redis_client.client.get(self._registry_key(key))
            if record is None:
                return None
            count = await self.redis_client.client.get(self._source_files_key(key))
        except RedisError as e:
            logger.error(f"Redis error reading job {key}: {e}")
            return None

        try:
            job = TranslationJob.model_validate_json(record)
        except ValidationError as e:
            logger.error(f"Invalid job record in Redis for {key}: {e}")
            return None

        if count is not None:
            job = job.model_copy(update={"source_file_count": int(count)})
        return job

    async def health_check(self) -> Dict[str, Any]:
        status = await self.redis_client.health_check()
        status["backend"] = "redis"
        return status

    async def close(self) -> None:
        await self.redis_client.disconnect()


def _anonymous_job(key: JobKey) -> TranslationJob:
    return TranslationJob(key=key, provider="unknown")


async def create_job_registry(backend: Optional[str] = None) -> JobRegistry:
    """
    Build the job registry selected by configuration.

    Args:
        backend: 'memory' or 'redis' (defaults to settings.job_registry_backend)

    Returns:
        Ready-to-use JobRegistry
    """
    backend = (backend or settings.job_registry_backend).lower()

    if backend == "redis":
        redis_client = RedisJobClient()
        await redis_client.connect()
        logger.info(f"🗂️  Using Redis job registry at {settings.redis_url}")
        return RedisJobRegistry(redis_client)

    if backend != "memory":
        raise ValueError(f"Unknown job registry backend: '{backend}'")

    logger.info("🗂️  Using in-memory job registry")
    return InMemoryJobRegistry()

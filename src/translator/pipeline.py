"""Translation pipeline entry point: one request in, cache file state out."""

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Optional, Set, Union

from common.config import settings
from common.errors import FilesystemError
from common.job_registry import JobRegistry
from common.path_resolver import (
    resolve_source_directory,
    resolve_subtitle_path,
    to_storage_path,
)
from common.retry_utils import RetryPolicy
from common.schemas import (
    ContentKind,
    LookupResult,
    LookupStatus,
    PlaceholderKind,
    SubtitleCandidate,
    TranslationJob,
    TranslationRequest,
)
from common.subtitle_parser import SRTParser
from downloader.opensubtitles_client import OpenSubtitlesV3Client
from translator.backends.base import TranslationBackend
from translator.backends.factory import get_backend
from translator.file_operations import (
    read_and_parse_subtitle_file,
    read_subtitle_file,
    remove_files,
    save_translated_document,
    write_file_atomically,
)
from translator.subtitle_state import (
    CacheFileState,
    StateDecision,
    SubtitleStateMachine,
    inspect_cache_file,
)
from translator.translation_orchestrator import BatchTranslationOrchestrator

logger = logging.getLogger(__name__)

BackendFactory = Callable[..., TranslationBackend]


class TranslationPipeline:
    """
    Answers subtitle requests and runs translation jobs.

    A request either finds a complete translation, finds a job already
    working on it, or admits a new job. Admitted jobs write a "translating"
    placeholder straight away, run in the background, and always release
    their registry entry and delete their downloaded source file, however
    they end.
    """

    def __init__(
        self,
        registry: JobRegistry,
        source_client: OpenSubtitlesV3Client,
        storage_root: Optional[Union[str, Path]] = None,
        backend_factory: BackendFactory = get_backend,
        batch_size: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            registry: Job registry shared by every request
            source_client: Client for the source subtitle provider
            storage_root: Cache directory (defaults to settings)
            backend_factory: Builds a backend from (provider, api_key, model_name, base_url)
            batch_size: Blocks per backend call (defaults to settings)
            retry_policy: Retry policy for backend calls (defaults to settings)
        """
        self.registry = registry
        self.source_client = source_client
        self.storage_root = Path(storage_root or settings.get_storage_root())
        self.backend_factory = backend_factory
        self.batch_size = batch_size or settings.translation_batch_size
        self.retry_policy = retry_policy or RetryPolicy.for_translation()
        self.state = SubtitleStateMachine(registry)
        self._running: Dict[str, asyncio.Task] = {}
        self._cleanups: Set[asyncio.Task] = set()

    @property
    def running_jobs(self) -> int:
        return len(self._running)

    def cache_path(self, request: TranslationRequest) -> Path:
        """Local cache file for a request."""
        return to_storage_path(self.storage_root, self._relative_path(request))

    def _relative_path(self, request: TranslationRequest) -> PurePosixPath:
        return resolve_subtitle_path(
            request.provider,
            request.target_language,
            request.title_id,
            request.kind,
            request.season,
            request.episode,
        )

    def _source_path(self, request: TranslationRequest, candidate: SubtitleCandidate) -> Path:
        directory = to_storage_path(
            self.storage_root,
            resolve_source_directory(
                request.target_language, request.title_id, request.kind, request.season
            ),
        )
        if request.kind is ContentKind.SERIES:
            name = f"{request.title_id}-subtitle_{request.episode}-{candidate.lang}.srt"
        else:
            name = f"{request.title_id}-subtitle-{candidate.lang}.srt"
        return directory / name

    async def lookup(
        self, request: TranslationRequest, wait: bool = False
    ) -> LookupResult:
        """
        Answer a subtitle request.

        Never raises for job failures: they are reported as a FAILED result
        backed by a failure placeholder.

        Args:
            request: Title, language, provider and credentials
            wait: Run an admitted job to completion before returning instead
                of in the background

        Returns:
            LookupResult describing the cache file
        """
        key = request.key
        try:
            relative_path = str(self._relative_path(request))
        except ValueError as e:
            logger.warning(f"⚠️  No cache location for {key}: {e}")
            return LookupResult(status=LookupStatus.FAILED, relative_path="", message=str(e))
        path = to_storage_path(self.storage_root, PurePosixPath(relative_path))

        try:
            inspection, decision = await self.state.evaluate(key, path)
        except FilesystemError as e:
            logger.error(f"❌ Could not inspect cache file {path}: {e}")
            return LookupResult(
                status=LookupStatus.FAILED, relative_path=relative_path, message=e.user_message
            )

        if decision is StateDecision.SERVE:
            logger.info(f"📄 Serving cached translation {relative_path}")
            return LookupResult(status=LookupStatus.TRANSLATED, relative_path=relative_path)

        if decision is StateDecision.REPORT_TRANSLATING:
            return LookupResult(status=LookupStatus.TRANSLATING, relative_path=relative_path)

        job = request.to_job()
        stack = AsyncExitStack()
        admitted = await stack.enter_async_context(self.registry.admission(key, job))
        if not admitted:
            await stack.aclose()
            return LookupResult(status=LookupStatus.TRANSLATING, relative_path=relative_path)

        handed_off = False
        try:
            # A job may have finished between the first read and admission
            if inspect_cache_file(path).state is CacheFileState.COMPLETE:
                logger.info(f"📄 Translation for {key} completed meanwhile; serving it")
                return LookupResult(status=LookupStatus.TRANSLATED, relative_path=relative_path)

            self.state.write_placeholder(path, PlaceholderKind.TRANSLATING)

            candidate = await self.source_client.find_best_subtitle(
                request.kind,
                request.title_id,
                request.season,
                request.episode,
                preferred_language=request.target_language,
            )
            if candidate is None:
                logger.info(f"🚫 No subtitles found for {key}")
                self.state.write_placeholder(path, PlaceholderKind.NO_SUBTITLES)
                return LookupResult(
                    status=LookupStatus.NO_SUBTITLES, relative_path=relative_path
                )

            source_path = self._source_path(request, candidate)
            stack.callback(remove_files, [source_path])

            handed_off = True
            job_coroutine = self._run_job(
                stack, job, candidate, path, source_path, relative_path
            )
            if wait:
                return await job_coroutine

            self._start_background_job(key.as_string(), stack, job_coroutine)
            return LookupResult(status=LookupStatus.TRANSLATING, relative_path=relative_path)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Could not start translation job for {key}: {e}", exc_info=True)
            message = self.state.write_failure(path, e)
            return LookupResult(
                status=LookupStatus.FAILED, relative_path=relative_path, message=message
            )
        finally:
            if not handed_off:
                await stack.aclose()

    def _start_background_job(self, job_id: str, stack: AsyncExitStack, coroutine) -> None:
        task = asyncio.create_task(coroutine, name=f"translate:{job_id}")
        self._running[job_id] = task

        def _on_done(finished: asyncio.Task) -> None:
            self._running.pop(job_id, None)
            if finished.cancelled():
                # A task cancelled before its first step never entered the stack
                cleanup = asyncio.ensure_future(stack.aclose())
                self._cleanups.add(cleanup)
                cleanup.add_done_callback(self._cleanups.discard)

        task.add_done_callback(_on_done)

    async def _run_job(
        self,
        stack: AsyncExitStack,
        job: TranslationJob,
        candidate: SubtitleCandidate,
        path: Path,
        source_path: Path,
        relative_path: str,
    ) -> LookupResult:
        """Run an admitted job; the stack releases the key and removes the source file."""
        async with stack:
            return await self._execute_job(job, candidate, path, source_path, relative_path)

    async def _execute_job(
        self,
        job: TranslationJob,
        candidate: SubtitleCandidate,
        path: Path,
        source_path: Path,
        relative_path: str,
    ) -> LookupResult:
        key = job.key

        try:
            await self.source_client.download_subtitle(candidate, source_path)
            await self.registry.record_source_files(key, 1)

            if candidate.lang.lower() == key.target_language.lower():
                logger.info(f"📥 Source subtitle already in {key.target_language}; serving as-is")
                content = read_subtitle_file(source_path)
                SRTParser.parse_for_translation(content)
                write_file_atomically(path, content)
                return LookupResult(status=LookupStatus.TRANSLATED, relative_path=relative_path)

            document = read_and_parse_subtitle_file(source_path)
            backend = self.backend_factory(
                job.provider, job.api_key, job.model_name, job.base_url
            )
            try:
                orchestrator = BatchTranslationOrchestrator(
                    backend, batch_size=self.batch_size, retry_policy=self.retry_policy
                )
                translated = await orchestrator.translate(document, key.target_language)
            finally:
                await backend.close()

            save_translated_document(translated, path)
            logger.info(f"✅ Translation job {key} completed")
            return LookupResult(status=LookupStatus.TRANSLATED, relative_path=relative_path)

        except asyncio.CancelledError:
            logger.warning(f"⚠️  Translation job {key} cancelled")
            raise
        except Exception as e:
            logger.error(f"❌ Translation job {key} failed: {e}", exc_info=True)
            message = self.state.write_failure(path, e)
            return LookupResult(
                status=LookupStatus.FAILED, relative_path=relative_path, message=message
            )

    async def shutdown(self) -> None:
        """Cancel running jobs and wait until each has released its key."""
        tasks = list(self._running.values())
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"🛑 Cancelling {len(tasks)} running translation job(s)")
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._cleanups:
            await asyncio.gather(*list(self._cleanups), return_exceptions=True)

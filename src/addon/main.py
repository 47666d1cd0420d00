"""FastAPI application serving translated subtitles to the player."""

from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from addon.schemas import (
    HealthResponse,
    SubtitleEntry,
    SubtitleLookupRequest,
    SubtitleLookupResponse,
)
from common.config import settings
from common.job_registry import JobRegistry, create_job_registry
from common.logging_config import setup_service_logging
from common.path_resolver import generate_subtitle_url
from common.schemas import ContentKind, LookupResult, LookupStatus, TranslationRequest
from common.utils import ContentIdUtils, LanguageUtils
from downloader.opensubtitles_client import OpenSubtitlesV3Client
from translator.backends.factory import get_backend
from translator.pipeline import BackendFactory, TranslationPipeline

# Configure logging
service_logger = setup_service_logging("addon")
logger = service_logger.logger

STATUS_LABELS = {
    LookupStatus.TRANSLATED: "Translated",
    LookupStatus.TRANSLATING: "Translating...",
    LookupStatus.NO_SUBTITLES: "No subtitles found",
    LookupStatus.FAILED: "Translation failed",
}


def build_subtitle_entry(
    content_id: str, target_language: str, result: LookupResult
) -> SubtitleEntry:
    """
    Turn a pipeline result into the entry shown in the player's subtitle menu.

    Args:
        content_id: Requested content id
        target_language: Target language code
        result: Pipeline answer

    Returns:
        SubtitleEntry with public URL and a label such as 'Portuguese (Translated)'
    """
    language_name = LanguageUtils.iso_to_language_name(target_language)
    return SubtitleEntry(
        id=f"{content_id}-{target_language}",
        url=generate_subtitle_url(
            settings.public_base_url, PurePosixPath(result.relative_path)
        ),
        lang=target_language,
        label=f"{language_name} ({STATUS_LABELS[result.status]})",
    )


def to_translation_request(lookup: SubtitleLookupRequest) -> TranslationRequest:
    """
    Convert an API request into a pipeline request.

    Raises:
        ValueError: If the content id is malformed or a series id lacks season/episode
    """
    title_id, inferred_kind, season, episode = ContentIdUtils.parse_content_id(
        lookup.content_id
    )
    kind = lookup.kind or ContentKind(inferred_kind)
    if kind is ContentKind.SERIES and (season is None or episode is None):
        raise ValueError("series requests need a content id of the form 'tt123:season:episode'")

    return TranslationRequest(
        title_id=title_id,
        kind=kind,
        season=season,
        episode=episode,
        target_language=lookup.target_language,
        provider=lookup.provider,
        api_key=lookup.api_key,
        model_name=lookup.model_name,
        base_url=lookup.base_url,
    )


def create_app(
    storage_root: Optional[Union[str, Path]] = None,
    registry: Optional[JobRegistry] = None,
    source_client: Optional[OpenSubtitlesV3Client] = None,
    backend_factory: BackendFactory = get_backend,
) -> FastAPI:
    """
    Build the addon application.

    Collaborators default to the ones configured in settings; tests pass
    their own.

    Args:
        storage_root: Cache directory served under /subtitles
        registry: Job registry
        source_client: Source subtitle client
        backend_factory: Translation backend factory

    Returns:
        FastAPI application
    """
    storage_path = Path(storage_root or settings.get_storage_root())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        logger.info("Starting subtitle translation addon...")
        storage_path.mkdir(parents=True, exist_ok=True)
        job_registry = registry or await create_job_registry()
        client = source_client or OpenSubtitlesV3Client()
        app.state.pipeline = TranslationPipeline(
            registry=job_registry,
            source_client=client,
            storage_root=storage_path,
            backend_factory=backend_factory,
        )
        logger.info(f"Addon ready, serving subtitles from {storage_path}")

        yield

        logger.info("Shutting down subtitle translation addon...")
        await app.state.pipeline.shutdown()
        if source_client is None:
            await client.disconnect()
        if registry is None:
            await job_registry.close()

    app = FastAPI(
        title="Subtitle Translation Addon",
        description="Fetches subtitles and machine-translates them on demand",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.post("/subtitles/lookup", response_model=SubtitleLookupResponse)
    async def lookup_subtitles(lookup: SubtitleLookupRequest, request: Request):
        """
        Return the translated subtitle for a title, starting a translation if needed.

        Job failures are not HTTP errors: they come back as an entry labelled
        'Translation failed' whose file explains the reason.
        """
        pipeline: TranslationPipeline = request.app.state.pipeline
        try:
            translation_request = to_translation_request(lookup)
            pipeline.cache_path(translation_request)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        result = await pipeline.lookup(translation_request)
        logger.info(
            f"Lookup {lookup.content_id} ({lookup.target_language}, {lookup.provider}): "
            f"{result.status.value}"
        )

        return SubtitleLookupResponse(
            subtitles=[
                build_subtitle_entry(lookup.content_id, lookup.target_language, result)
            ]
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Report registry health and the number of running jobs."""
        pipeline: TranslationPipeline = request.app.state.pipeline
        registry_health = await pipeline.registry.health_check()
        return HealthResponse(
            status="healthy" if registry_health.get("connected") else "degraded",
            registry=registry_health,
            running_jobs=pipeline.running_jobs,
        )

    app.mount("/subtitles", StaticFiles(directory=storage_path, check_dir=False), name="subtitles")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("addon.main:app", host=settings.api_host, port=settings.api_port)

"""Shared Pydantic schemas for the subtitle translation pipeline."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from common.utils import DateTimeUtils


class ContentKind(str, Enum):
    """Kind of title a subtitle belongs to."""

    MOVIE = "movie"
    SERIES = "series"


class PlaceholderKind(str, Enum):
    """Status carried by a placeholder cache file."""

    NO_SUBTITLES = "no_subtitles"
    TRANSLATING = "translating"
    FAILED = "failed"


class JobKey(BaseModel):
    """Identity of one translation effort; at most one active job per key."""

    title_id: str = Field(..., description="IMDb title id (e.g., 'tt1234567')")
    season: Optional[int] = Field(None, description="Season number for series")
    episode: Optional[int] = Field(None, description="Episode number for series")
    target_language: str = Field(..., description="Target language code (e.g., 'pt')")

    class Config:
        frozen = True

    def as_string(self) -> str:
        """
        Stable string form used as registry key.

        Example:
            >>> JobKey(title_id="tt1", season=1, episode=3, target_language="pt").as_string()
            'tt1:1:3:pt'
        """
        season = "" if self.season is None else str(self.season)
        episode = "" if self.episode is None else str(self.episode)
        return f"{self.title_id}:{season}:{episode}:{self.target_language}"

    def __str__(self) -> str:
        return self.as_string()


class TranslationJob(BaseModel):
    """An admitted translation job."""

    key: JobKey
    kind: ContentKind = ContentKind.MOVIE
    provider: str = Field(..., description="Translation provider name")
    api_key: Optional[str] = Field(
        None, exclude=True, repr=False, description="Provider credentials"
    )
    model_name: Optional[str] = Field(None, description="Model hint for LLM providers")
    base_url: Optional[str] = Field(None, description="Custom API base URL")
    source_file_count: int = Field(
        default=0, description="Downloaded source files awaiting cleanup"
    )
    created_at: datetime = Field(default_factory=DateTimeUtils.get_current_utc_datetime)

    def to_registry_record(self) -> str:
        """Serialize the job for the registry; credentials are never included."""
        return self.model_dump_json()


class TranslationRequest(BaseModel):
    """What the request layer hands to the pipeline."""

    title_id: str
    kind: ContentKind = ContentKind.MOVIE
    season: Optional[int] = None
    episode: Optional[int] = None
    target_language: str
    provider: str
    api_key: Optional[str] = Field(None, repr=False)
    model_name: Optional[str] = None
    base_url: Optional[str] = None

    @property
    def key(self) -> JobKey:
        return JobKey(
            title_id=self.title_id,
            season=self.season,
            episode=self.episode,
            target_language=self.target_language,
        )

    def to_job(self) -> TranslationJob:
        return TranslationJob(
            key=self.key,
            kind=self.kind,
            provider=self.provider,
            api_key=self.api_key,
            model_name=self.model_name,
            base_url=self.base_url,
        )


class LookupStatus(str, Enum):
    """Outcome reported to the viewer for a subtitle request."""

    TRANSLATED = "translated"
    TRANSLATING = "translating"
    NO_SUBTITLES = "no_subtitles"
    FAILED = "failed"


class LookupResult(BaseModel):
    """Pipeline answer for one request: where the cache file is and what it holds."""

    status: LookupStatus
    relative_path: str = Field(..., description="Cache file path relative to storage")
    message: Optional[str] = None


class SubtitleCandidate(BaseModel):
    """A subtitle offered by the source provider."""

    url: str = Field(..., description="Download URL of the subtitle file")
    lang: str = Field(..., description="ISO 639-1 language code")
    id: Optional[str] = Field(None, description="Provider-side subtitle id")

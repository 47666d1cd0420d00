"""Request and response models for the addon API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from common.schemas import ContentKind
from common.utils import DateTimeUtils
from translator.backends.factory import SUPPORTED_PROVIDERS


class SubtitleLookupRequest(BaseModel):
    """Subtitle request coming from the player."""

    content_id: str = Field(
        ..., description="Stremio content id ('tt1234567' or 'tt1234567:1:3')"
    )
    kind: Optional[ContentKind] = Field(
        None, description="'movie' or 'series'; inferred from content_id when omitted"
    )
    target_language: str = Field(..., description="Target language code (e.g., 'pt')")
    provider: str = Field(..., description="Translation provider")
    api_key: Optional[str] = Field(None, description="Provider API key")
    base_url: Optional[str] = Field(None, description="Custom API base URL (ChatGPT API only)")
    model_name: Optional[str] = Field(None, description="Model override for chat providers")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """
        Reject providers the service cannot translate with.

        Args:
            v: Provider name

        Returns:
            Provider name unchanged

        Raises:
            ValueError: If the provider is not supported
        """
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"provider must be one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return v

    @field_validator("target_language")
    @classmethod
    def validate_target_language(cls, v: str) -> str:
        normalized = v.strip().lower()
        if not normalized or "/" in normalized:
            raise ValueError("target_language must be a language code")
        return normalized

    class Config:
        json_schema_extra = {
            "example": {
                "content_id": "tt1234567:1:3",
                "target_language": "pt",
                "provider": "ChatGPT API",
                "api_key": "sk-...",
            }
        }


class SubtitleEntry(BaseModel):
    """One subtitle offered to the player."""

    id: str
    url: str
    lang: str
    label: str


class SubtitleLookupResponse(BaseModel):
    """Subtitles offered for a request."""

    subtitles: List[SubtitleEntry] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    registry: Dict[str, Any]
    running_jobs: int
    timestamp: datetime = Field(default_factory=DateTimeUtils.get_current_utc_datetime)

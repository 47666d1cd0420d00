"""Configuration management for the subtitle translation service."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=3000, env="API_PORT")
    public_base_url: str = Field(
        default="http://localhost:3000", env="PUBLIC_BASE_URL"
    )  # Prefix for subtitle URLs handed to viewers

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_to_file: bool = Field(default=False, env="LOG_TO_FILE")

    # File Storage
    subtitle_storage_path: str = Field(
        default="./storage/subtitles", env="SUBTITLE_STORAGE_PATH"
    )

    # Job Registry Configuration
    job_registry_backend: str = Field(
        default="memory", env="JOB_REGISTRY_BACKEND"
    )  # "memory" or "redis"
    job_registry_ttl_seconds: int = Field(
        default=3600, env="JOB_REGISTRY_TTL_SECONDS"
    )  # Safety expiry for orphaned registry entries (0 = never)

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379", env="REDIS_URL")
    redis_reconnect_max_retries: int = Field(
        default=3, env="REDIS_RECONNECT_MAX_RETRIES"
    )
    redis_reconnect_initial_delay: float = Field(
        default=1.0, env="REDIS_RECONNECT_INITIAL_DELAY"
    )
    redis_reconnect_max_delay: float = Field(
        default=10.0, env="REDIS_RECONNECT_MAX_DELAY"
    )

    # Subtitle Source - OpenSubtitles v3 (Stremio addon endpoint)
    opensubtitles_base_url: str = Field(
        default="https://opensubtitles-v3.strem.io/subtitles/",
        env="OPENSUBTITLES_BASE_URL",
    )
    opensubtitles_timeout: float = Field(default=30.0, env="OPENSUBTITLES_TIMEOUT")
    opensubtitles_max_retries: int = Field(default=3, env="OPENSUBTITLES_MAX_RETRIES")
    opensubtitles_retry_delay: float = Field(
        default=1.0, env="OPENSUBTITLES_RETRY_DELAY"
    )
    opensubtitles_retry_max_delay: float = Field(
        default=10.0, env="OPENSUBTITLES_RETRY_MAX_DELAY"
    )

    # Translation Batching
    translation_batch_size: int = Field(
        default=40, env="TRANSLATION_BATCH_SIZE"
    )  # Number of subtitle blocks per backend call

    # Translation Retry Configuration
    translation_max_retries: int = Field(
        default=3, env="TRANSLATION_MAX_RETRIES"
    )  # Retries after the initial attempt
    translation_retry_initial_delay: float = Field(
        default=1.0, env="TRANSLATION_RETRY_INITIAL_DELAY"
    )  # Delay in seconds before the first retry
    translation_retry_max_delay: float = Field(
        default=10.0, env="TRANSLATION_RETRY_MAX_DELAY"
    )  # Backoff cap in seconds
    translation_retry_exponential_base: int = Field(
        default=2, env="TRANSLATION_RETRY_EXPONENTIAL_BASE"
    )
    translation_retry_jitter: float = Field(
        default=0.0, env="TRANSLATION_RETRY_JITTER"
    )  # Fraction of the delay added as random jitter (0 = exact delays)

    # Translation Providers
    translation_request_timeout: float = Field(
        default=60.0, env="TRANSLATION_REQUEST_TIMEOUT"
    )
    translation_temperature: float = Field(default=0.3, env="TRANSLATION_TEMPERATURE")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", env="OPENAI_BASE_URL"
    )
    openai_default_model: str = Field(default="gpt-4o-mini", env="OPENAI_DEFAULT_MODEL")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com", env="DEEPSEEK_BASE_URL"
    )
    deepseek_default_model: str = Field(
        default="deepseek-chat", env="DEEPSEEK_DEFAULT_MODEL"
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        env="GEMINI_BASE_URL",
    )
    gemini_default_model: str = Field(
        default="gemini-1.5-flash", env="GEMINI_DEFAULT_MODEL"
    )
    google_free_url: str = Field(
        default="https://translate.googleapis.com/translate_a/single",
        env="GOOGLE_FREE_URL",
    )
    google_cloud_url: str = Field(
        default="https://translation.googleapis.com/language/translate/v2",
        env="GOOGLE_CLOUD_URL",
    )

    @field_validator("translation_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        """Reject batch sizes that could never make progress."""
        if v < 1:
            raise ValueError(f"translation_batch_size must be at least 1, got {v}")
        return v

    @field_validator("job_registry_backend")
    @classmethod
    def validate_registry_backend(cls, v: str) -> str:
        """
        Normalize and validate the registry backend name.

        Args:
            v: Backend name from the environment

        Returns:
            Lower-cased backend name
        """
        normalized = v.strip().lower()
        if normalized not in ("memory", "redis"):
            raise ValueError(
                f"job_registry_backend must be 'memory' or 'redis', got '{v}'"
            )
        return normalized

    def get_storage_root(self) -> Path:
        """Return the subtitle storage directory as a Path."""
        return Path(self.subtitle_storage_path)

    def get_default_model(self, provider: str) -> Optional[str]:
        """
        Get the default model name for an LLM-backed provider.

        Args:
            provider: Provider display name (e.g., 'ChatGPT API')

        Returns:
            Default model name, or None for providers without models
        """
        return {
            "ChatGPT API": self.openai_default_model,
            "DeepSeek API": self.deepseek_default_model,
            "Gemini API": self.gemini_default_model,
        }.get(provider)

    class Config:
        # Find .env file relative to project root
        # This file is in src/common/, so go up 2 levels to project root
        _project_root = Path(__file__).parent.parent.parent
        env_file = str(_project_root / ".env")
        case_sensitive = False


# Global settings instance
settings = Settings()

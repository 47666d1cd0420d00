"""Deterministic cache locations for translated subtitles."""

import logging
from pathlib import Path, PurePosixPath
from typing import Optional, Union
from urllib.parse import quote

from common.schemas import ContentKind

logger = logging.getLogger(__name__)

SOURCES_DIRECTORY = "_sources"


def _validate_segment(name: str, value: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{name} cannot be empty")
    if "/" in value or "\\" in value or value in (".", ".."):
        raise ValueError(f"{name} contains a path separator: '{value}'")
    return value


def _validate_series_position(season: Optional[int], episode: Optional[int]) -> None:
    # Season 0 holds specials
    if season is None or season < 0:
        raise ValueError(f"series entries require a season, got {season}")
    if episode is None or episode < 0:
        raise ValueError(f"series entries require an episode, got {episode}")


def resolve_subtitle_path(
    provider: str,
    target_language: str,
    title_id: str,
    kind: Union[ContentKind, str],
    season: Optional[int] = None,
    episode: Optional[int] = None,
) -> PurePosixPath:
    """
    Map a translation request to its cache file, relative to the storage root.

    The mapping is pure: the same inputs always give the same path, which is
    what lets cached files be found again after a restart.

    Args:
        provider: Translation provider name (e.g., 'ChatGPT API')
        target_language: Target language code (e.g., 'pt')
        title_id: IMDb title id
        kind: 'series' or 'movie'
        season: Season number (series only)
        episode: Episode number (series only)

    Returns:
        Relative path of the cache file

    Raises:
        ValueError: If a segment is empty or unsafe, or a series lacks season/episode

    Example:
        >>> str(resolve_subtitle_path("ChatGPT API", "pt", "tt1234567", "series", 1, 3))
        'ChatGPT API/pt/tt1234567/season1/tt1234567-translated-3-1.srt'
        >>> str(resolve_subtitle_path("Google Translate", "es", "tt7654321", "movie"))
        'Google Translate/es/tt7654321/tt7654321-translated-1.srt'
    """
    kind = ContentKind(kind)
    base = PurePosixPath(
        _validate_segment("provider", provider),
        _validate_segment("target_language", target_language),
        _validate_segment("title_id", title_id),
    )

    if kind is ContentKind.SERIES:
        _validate_series_position(season, episode)
        return base / f"season{season}" / f"{title_id}-translated-{episode}-1.srt"

    return base / f"{title_id}-translated-1.srt"


def resolve_source_directory(
    target_language: str,
    title_id: str,
    kind: Union[ContentKind, str],
    season: Optional[int] = None,
) -> PurePosixPath:
    """
    Directory for temporary source subtitle downloads, relative to the storage root.

    Args:
        target_language: Target language code
        title_id: IMDb title id
        kind: 'series' or 'movie'
        season: Season number (series only)

    Returns:
        Relative directory path
    """
    kind = ContentKind(kind)
    base = PurePosixPath(
        SOURCES_DIRECTORY,
        _validate_segment("target_language", target_language),
        _validate_segment("title_id", title_id),
    )
    if kind is ContentKind.SERIES and season is not None:
        return base / f"season{season}"
    return base


def to_storage_path(storage_root: Union[str, Path], relative_path: PurePosixPath) -> Path:
    """Join a resolved relative path onto the local storage root."""
    return Path(storage_root).joinpath(*relative_path.parts)


def generate_subtitle_url(base_url: str, relative_path: PurePosixPath) -> str:
    """
    Build the public URL under which a cache file is served.

    Args:
        base_url: Public base URL of the service (e.g., 'http://localhost:3000')
        relative_path: Path returned by resolve_subtitle_path

    Returns:
        Absolute URL with each path segment percent-encoded

    Example:
        >>> generate_subtitle_url("http://localhost:3000", PurePosixPath("ChatGPT API/pt/tt1/tt1-translated-1.srt"))
        'http://localhost:3000/subtitles/ChatGPT%20API/pt/tt1/tt1-translated-1.srt'
    """
    encoded = "/".join(quote(part, safe="") for part in relative_path.parts)
    return f"{base_url.rstrip('/')}/subtitles/{encoded}"

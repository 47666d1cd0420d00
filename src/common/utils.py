"""Utility functions for common operations across the application."""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class DateTimeUtils:
    """Date and time utility functions."""

    @staticmethod
    def get_current_utc_datetime() -> datetime:
        """
        Get the current UTC datetime.

        Returns:
            Current datetime in UTC timezone
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def get_date_string_for_log_file() -> str:
        """
        Get a date string suitable for log file names.

        Returns:
            Date string in YYYYMMDD format

        Example:
            >>> DateTimeUtils.get_date_string_for_log_file()
            '20240101'
        """
        return datetime.now().strftime("%Y%m%d")


class ContentIdUtils:
    """Parsing of viewer-supplied content identifiers."""

    SERIES_ID_PATTERN = re.compile(r"^(tt\d+):(\d+):(\d+)$")
    MOVIE_ID_PATTERN = re.compile(r"^(tt\d+)$")

    @staticmethod
    def parse_content_id(content_id: str) -> Tuple[str, str, Optional[int], Optional[int]]:
        """
        Split a Stremio-style content id into its parts.

        Args:
            content_id: Identifier such as 'tt1234567' or 'tt1234567:1:3'

        Returns:
            Tuple of (title_id, kind, season, episode) where kind is
            'series' or 'movie'

        Raises:
            ValueError: If the id is not an IMDb-based identifier

        Example:
            >>> ContentIdUtils.parse_content_id("tt1234567:1:3")
            ('tt1234567', 'series', 1, 3)
            >>> ContentIdUtils.parse_content_id("tt1234567")
            ('tt1234567', 'movie', None, None)
        """
        if not content_id:
            raise ValueError("content_id cannot be empty")

        normalized = content_id.strip()

        series_match = ContentIdUtils.SERIES_ID_PATTERN.match(normalized)
        if series_match:
            title_id, season, episode = series_match.groups()
            return title_id, "series", int(season), int(episode)

        movie_match = ContentIdUtils.MOVIE_ID_PATTERN.match(normalized)
        if movie_match:
            return movie_match.group(1), "movie", None, None

        raise ValueError(f"Unsupported content id format: '{content_id}'")


class LanguageUtils:
    """Language code conversion utility functions."""

    # Mapping from OpenSubtitles 3-letter language codes to ISO 639-1 2-letter codes
    OPENSUBTITLES_TO_ISO: Dict[str, str] = {
        "eng": "en",
        "heb": "he",
        "spa": "es",
        "fre": "fr",
        "fra": "fr",
        "ger": "de",
        "deu": "de",
        "ita": "it",
        "por": "pt",
        "pob": "pt-br",
        "rus": "ru",
        "jpn": "ja",
        "kor": "ko",
        "chi": "zh",
        "zho": "zh",
        "ara": "ar",
        "dut": "nl",
        "nld": "nl",
        "pol": "pl",
        "tur": "tr",
        "swe": "sv",
        "nor": "no",
        "dan": "da",
        "fin": "fi",
        "cze": "cs",
        "hun": "hu",
        "rum": "ro",
        "ron": "ro",
        "gre": "el",
        "ell": "el",
        "bul": "bg",
        "hrv": "hr",
        "srp": "sr",
        "slv": "sl",
        "est": "et",
        "lav": "lv",
        "lit": "lt",
        "ukr": "uk",
        "tha": "th",
        "vie": "vi",
        "ind": "id",
        "may": "ms",
        "msa": "ms",
        "hin": "hi",
        "ben": "bn",
        "per": "fa",
        "fas": "fa",
    }

    @staticmethod
    def opensubtitles_to_iso(opensubtitles_code: str) -> str:
        """
        Convert an OpenSubtitles 3-letter language code to ISO 639-1.

        Args:
            opensubtitles_code: OpenSubtitles language code (e.g., 'eng', 'heb')

        Returns:
            ISO 639-1 code (e.g., 'en'), or the lower-cased input for unknown codes

        Example:
            >>> LanguageUtils.opensubtitles_to_iso('eng')
            'en'
            >>> LanguageUtils.opensubtitles_to_iso('en')
            'en'
        """
        if not opensubtitles_code:
            return opensubtitles_code

        normalized = opensubtitles_code.lower()
        if len(normalized) == 2:
            return normalized

        iso_code = LanguageUtils.OPENSUBTITLES_TO_ISO.get(normalized)
        if iso_code is None:
            logger.debug(
                f"Unknown OpenSubtitles language code '{opensubtitles_code}' - "
                f"using it unchanged"
            )
            return normalized
        return iso_code

    # Mapping from ISO 639-1 codes to display names
    ISO_TO_LANGUAGE_NAME: Dict[str, str] = {
        "en": "English",
        "he": "Hebrew",
        "es": "Spanish",
        "fr": "French",
        "de": "German",
        "it": "Italian",
        "pt": "Portuguese",
        "pt-br": "Portuguese (Brazil)",
        "ru": "Russian",
        "ja": "Japanese",
        "ko": "Korean",
        "zh": "Chinese",
        "ar": "Arabic",
        "nl": "Dutch",
        "pl": "Polish",
        "tr": "Turkish",
        "sv": "Swedish",
        "no": "Norwegian",
        "da": "Danish",
        "fi": "Finnish",
        "cs": "Czech",
        "hu": "Hungarian",
        "ro": "Romanian",
        "el": "Greek",
        "bg": "Bulgarian",
        "hr": "Croatian",
        "sr": "Serbian",
        "sl": "Slovenian",
        "et": "Estonian",
        "lv": "Latvian",
        "lt": "Lithuanian",
        "uk": "Ukrainian",
        "th": "Thai",
        "vi": "Vietnamese",
        "id": "Indonesian",
        "ms": "Malay",
        "hi": "Hindi",
        "bn": "Bengali",
        "fa": "Persian",
    }

    @staticmethod
    def iso_to_language_name(iso_code: str) -> str:
        """
        Convert an ISO 639-1 code to a language name.

        Args:
            iso_code: ISO 639-1 code (e.g., 'en', 'he')

        Returns:
            Language name (e.g., 'English'), or the code itself if not found

        Example:
            >>> LanguageUtils.iso_to_language_name('pt')
            'Portuguese'
        """
        if not iso_code:
            return iso_code

        return LanguageUtils.ISO_TO_LANGUAGE_NAME.get(iso_code.lower(), iso_code)

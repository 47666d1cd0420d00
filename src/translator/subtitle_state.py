"""Cache file state: placeholders, completion, and what to do about a request."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from common.errors import FilesystemError, describe_failure
from common.job_registry import JobRegistry
from common.schemas import JobKey, PlaceholderKind
from common.subtitle_parser import SRTParser, SubtitleBlock, SubtitleDocument
from translator.file_operations import read_subtitle_file, write_file_atomically

logger = logging.getLogger(__name__)

PLACEHOLDER_SEQUENCE_LABEL = "1"
PLACEHOLDER_TIME_RANGE = "00:00:01,000 --> 00:10:50,000"
STATUS_SENTINEL_PREFIX = "#subtitle-status:"

DEFAULT_PLACEHOLDER_MESSAGES = {
    PlaceholderKind.NO_SUBTITLES: "No subtitles found for this title.",
    PlaceholderKind.TRANSLATING: (
        "Translating subtitles. Please wait a minute and try again."
    ),
    PlaceholderKind.FAILED: "Translation failed. Please try again later.",
}


class CacheFileState(str, Enum):
    """What the cache file currently holds."""

    ABSENT = "absent"
    PLACEHOLDER = "placeholder"
    COMPLETE = "complete"


class StateDecision(str, Enum):
    """What to do with an incoming request."""

    START = "start"
    REPORT_TRANSLATING = "report_translating"
    SERVE = "serve"


@dataclass(frozen=True)
class CacheInspection:
    """Result of looking at a cache file."""

    state: CacheFileState
    placeholder_kind: Optional[PlaceholderKind] = None
    message: Optional[str] = None


def build_placeholder(kind: PlaceholderKind, message: Optional[str] = None) -> str:
    """
    Render a placeholder subtitle.

    The placeholder is a playable one-block SRT showing ``message`` followed
    by a sentinel line that tags its status, e.g. ``#subtitle-status: translating``.

    Args:
        kind: Placeholder status
        message: Text shown to the viewer (defaults per kind)

    Returns:
        SRT content
    """
    text = message or DEFAULT_PLACEHOLDER_MESSAGES[kind]
    document = SubtitleDocument(
        blocks=(
            SubtitleBlock(
                sequence_label=PLACEHOLDER_SEQUENCE_LABEL,
                time_range=PLACEHOLDER_TIME_RANGE,
                text=text,
            ),
            SubtitleBlock.opaque([f"{STATUS_SENTINEL_PREFIX} {kind.value}"]),
        ),
    )
    return SRTParser.render(document)


def parse_placeholder(content: str) -> Optional[Tuple[PlaceholderKind, str]]:
    """
    Recognise placeholder content.

    Only the status sentinel counts; subtitle text that merely mentions
    "translating" is not mistaken for a placeholder.

    Args:
        content: Cache file content

    Returns:
        (kind, message) for a placeholder, None for anything else
    """
    document = SRTParser.parse(content)
    if not document.blocks:
        return None

    sentinel = document.blocks[-1]
    if sentinel.is_translatable or len(sentinel.raw_lines) != 1:
        return None

    line = sentinel.raw_lines[0].strip()
    if not line.startswith(STATUS_SENTINEL_PREFIX):
        return None

    try:
        kind = PlaceholderKind(line[len(STATUS_SENTINEL_PREFIX) :].strip())
    except ValueError:
        return None

    message = "\n".join(block.text for block in document.translatable_blocks)
    return kind, message


def inspect_cache_file(path: Union[str, Path]) -> CacheInspection:
    """
    Classify a cache file by its content.

    Args:
        path: Cache file location

    Returns:
        CacheInspection; a missing or empty file is ABSENT

    Raises:
        FilesystemError: If the file exists but cannot be read
    """
    cache_path = Path(path)
    if not cache_path.is_file():
        return CacheInspection(CacheFileState.ABSENT)

    content = read_subtitle_file(cache_path)
    if not content.strip():
        return CacheInspection(CacheFileState.ABSENT)

    placeholder = parse_placeholder(content)
    if placeholder is not None:
        kind, message = placeholder
        return CacheInspection(CacheFileState.PLACEHOLDER, kind, message)

    return CacheInspection(CacheFileState.COMPLETE)


def decide(inspection: CacheInspection, job_active: bool) -> StateDecision:
    """
    Decide how to answer a request.

    | cache file   | active job | decision            |
    |--------------|------------|---------------------|
    | complete     | any        | serve               |
    | placeholder  | yes        | report translating  |
    | placeholder  | no         | start (orphaned)    |
    | absent       | yes        | report translating  |
    | absent       | no         | start               |
    """
    if inspection.state is CacheFileState.COMPLETE:
        return StateDecision.SERVE
    if job_active:
        return StateDecision.REPORT_TRANSLATING
    if inspection.state is CacheFileState.PLACEHOLDER:
        logger.info(
            f"♻️  Orphaned '{inspection.placeholder_kind.value}' placeholder with no active job; restarting"
        )
    return StateDecision.START


class SubtitleStateMachine:
    """Reads and writes cache file state for the pipeline."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    async def evaluate(
        self, key: JobKey, path: Union[str, Path]
    ) -> Tuple[CacheInspection, StateDecision]:
        """
        Inspect the cache file and decide what to do.

        Complete files are served without consulting the registry.

        Args:
            key: Job identity for the request
            path: Cache file location

        Returns:
            (inspection, decision)
        """
        inspection = inspect_cache_file(path)
        if inspection.state is CacheFileState.COMPLETE:
            return inspection, StateDecision.SERVE

        job_active = await self.registry.is_active(key)
        return inspection, decide(inspection, job_active)

    def write_placeholder(
        self,
        path: Union[str, Path],
        kind: PlaceholderKind,
        message: Optional[str] = None,
    ) -> None:
        write_file_atomically(path, build_placeholder(kind, message))
        logger.debug(f"Wrote '{kind.value}' placeholder to {path}")

    def write_failure(self, path: Union[str, Path], error: BaseException) -> str:
        """
        Replace the cache file with a failure placeholder.

        Never raises: a failure to write the placeholder is logged.

        Args:
            path: Cache file location
            error: Exception that ended the job

        Returns:
            The viewer-facing failure message
        """
        message = describe_failure(error)
        try:
            self.write_placeholder(path, PlaceholderKind.FAILED, message)
        except FilesystemError as e:
            logger.error(f"❌ Could not write failure placeholder to {path}: {e}")
        return message

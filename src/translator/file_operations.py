"""File I/O operations for subtitle files."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Union

from common.errors import FilesystemError
from common.subtitle_parser import SRTParser, SubtitleDocument

logger = logging.getLogger(__name__)

# Tried in order when decoding downloaded subtitles
SOURCE_ENCODINGS = ("utf-8", "cp1252", "latin-1")


def decode_subtitle_bytes(data: bytes) -> str:
    """
    Decode a subtitle file, falling back to legacy encodings.

    Args:
        data: Raw file bytes

    Returns:
        Decoded text (a UTF-8 BOM, if present, is kept as U+FEFF)
    """
    for encoding in SOURCE_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            logger.debug(f"Subtitle is not valid {encoding}, trying next encoding")
    # latin-1 accepts any byte sequence, so this is unreachable in practice
    return data.decode("utf-8", errors="replace")


def read_subtitle_file(subtitle_file_path: Union[str, Path]) -> str:
    """
    Read a subtitle file from disk.

    Args:
        subtitle_file_path: Path to subtitle file

    Returns:
        File content as text

    Raises:
        FilesystemError: If the file cannot be read
    """
    try:
        data = Path(subtitle_file_path).read_bytes()
    except OSError as e:
        raise FilesystemError(f"Could not read subtitle file {subtitle_file_path}: {e}") from e
    return decode_subtitle_bytes(data)


def read_and_parse_subtitle_file(subtitle_file_path: Union[str, Path]) -> SubtitleDocument:
    """
    Read and parse a source subtitle file.

    Args:
        subtitle_file_path: Path to subtitle file

    Returns:
        Parsed document with at least one translatable block

    Raises:
        FilesystemError: If the file cannot be read
        ParseError: If the file contains no subtitle blocks
    """
    logger.info(f"Reading subtitle file: {subtitle_file_path}")
    content = read_subtitle_file(subtitle_file_path)
    logger.debug(f"Read {len(content)} characters from subtitle file")

    document = SRTParser.parse_for_translation(content)
    logger.info(f"Parsed {len(document)} subtitle blocks")
    return document


def write_file_atomically(path: Union[str, Path], content: str) -> Path:
    """
    Write text so readers see either the old file or the new one, never a partial write.

    Content goes to a temporary file in the destination directory which is
    then moved into place with ``os.replace``.

    Args:
        path: Destination file
        content: Text to write (UTF-8, newlines written as given)

    Returns:
        Destination path

    Raises:
        FilesystemError: If the file cannot be written
    """
    destination = Path(path)
    temp_path = None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="",
            dir=destination.parent,
            prefix=f".{destination.name}.",
            suffix=".tmp",
            delete=False,
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, destination)
    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise FilesystemError(f"Could not write {destination}: {e}") from e

    return destination


def save_translated_document(
    document: SubtitleDocument, output_path: Union[str, Path]
) -> Path:
    """
    Render a translated document and write it atomically.

    Args:
        document: Translated document
        output_path: Cache file location

    Returns:
        Path to saved file
    """
    saved = write_file_atomically(output_path, SRTParser.render(document))
    logger.info(f"✅ Saved translated subtitle to: {saved}")
    return saved


def remove_files(paths: Iterable[Union[str, Path]]) -> int:
    """
    Delete temporary files, logging instead of raising on failure.

    Args:
        paths: Files to delete; missing files are ignored

    Returns:
        Number of files actually removed
    """
    removed = 0
    for path in paths:
        try:
            Path(path).unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"⚠️  Could not delete temporary file {path}: {e}")
    if removed:
        logger.debug(f"🧹 Removed {removed} temporary file(s)")
    return removed

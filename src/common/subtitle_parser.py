"""SRT subtitle parser and renderer for translation workflows."""

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from common.errors import ParseError

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"

# Number of blocks per backend call when nothing else is configured
DEFAULT_BATCH_SIZE = 40

# A blank line inside a block would end it early when rendered
BLANK_LINE_PATTERN = re.compile(r"\n[ \t]*(?=\n)")


@dataclass(frozen=True)
class SubtitleBlock:
    """
    One subtitle entry: sequence label, time range and text.

    ``sequence_label`` and ``time_range`` hold the source lines exactly as they
    appeared so untouched blocks render byte-for-byte. Blocks that could not be
    parsed keep their original lines in ``raw_lines``; they are rendered
    verbatim and never sent for translation.
    """

    sequence_label: str
    time_range: str
    text: str
    raw_lines: Optional[Tuple[str, ...]] = None

    @property
    def is_translatable(self) -> bool:
        return self.raw_lines is None

    @classmethod
    def opaque(cls, lines: Sequence[str]) -> "SubtitleBlock":
        """Build a block that is preserved as-is."""
        return cls(sequence_label="", time_range="", text="", raw_lines=tuple(lines))

    def with_text(self, text: str) -> "SubtitleBlock":
        """Return a copy of this block carrying new text, with blank lines removed."""
        if not self.is_translatable:
            raise ValueError("Cannot replace the text of an unparsed block")
        text = text.replace("\r\n", "\n").strip()
        return replace(self, text=BLANK_LINE_PATTERN.sub("", text))

    def render_lines(self) -> List[str]:
        if self.raw_lines is not None:
            return list(self.raw_lines)
        lines = [self.sequence_label, self.time_range]
        if self.text:
            lines.extend(self.text.split("\n"))
        return lines


@dataclass(frozen=True)
class SubtitleDocument:
    """
    Immutable ordered sequence of subtitle blocks.

    ``leading`` and ``trailing`` keep the blank lines found before the first
    and after the last block, so a document renders back to its source.
    """

    blocks: Tuple[SubtitleBlock, ...] = ()
    leading: str = ""
    trailing: str = "\n"
    newline: str = "\n"
    has_bom: bool = False

    @property
    def translatable_blocks(self) -> List[SubtitleBlock]:
        return [block for block in self.blocks if block.is_translatable]

    def __len__(self) -> int:
        return len(self.blocks)

    def with_texts(self, texts: Sequence[str]) -> "SubtitleDocument":
        """
        Produce a new document with the text of every translatable block replaced.

        Args:
            texts: One replacement per translatable block, in document order

        Returns:
            New SubtitleDocument; sequence labels and time ranges are copied

        Raises:
            ValueError: If the number of texts differs from the number of
                translatable blocks
        """
        expected = len(self.translatable_blocks)
        if len(texts) != expected:
            raise ValueError(
                f"Expected {expected} texts to replace, got {len(texts)}"
            )

        replacements = iter(texts)
        new_blocks = tuple(
            block.with_text(next(replacements)) if block.is_translatable else block
            for block in self.blocks
        )
        return replace(self, blocks=new_blocks)


class _ParserState(Enum):
    EXPECT_INDEX = "expect_index"
    EXPECT_TIME_RANGE = "expect_time_range"
    EXPECT_TEXT = "expect_text"
    UNPARSED = "unparsed"


class SRTParser:
    """Parser for SRT subtitle files."""

    INDEX_PATTERN = re.compile(r"^\s*\d+\s*$")

    # SRT timestamp range: HH:MM:SS,mmm --> HH:MM:SS,mmm (optionally followed
    # by position hints); a '.' millisecond separator is accepted too
    TIME_RANGE_PATTERN = re.compile(
        r"^\s*\d{1,2}:\d{2}:\d{2}[,.]\d{1,3}\s*-->\s*\d{1,2}:\d{2}:\d{2}[,.]\d{1,3}"
    )

    @staticmethod
    def parse(content: str) -> SubtitleDocument:
        """
        Parse SRT content into a subtitle document.

        Parsing never fails: a block whose index or time range is malformed is
        kept as an unparsed block and re-emitted verbatim by ``render``.

        Args:
            content: Raw SRT file content

        Returns:
            SubtitleDocument with the blocks in source order
        """
        has_bom = content.startswith(UTF8_BOM)
        if has_bom:
            content = content[len(UTF8_BOM) :]

        newline = "\r\n" if "\r\n" in content else "\n"
        normalized = content.replace("\r\n", "\n")

        without_leading = normalized.lstrip("\n")
        leading = normalized[: len(normalized) - len(without_leading)]
        body = without_leading.rstrip("\n")
        trailing = without_leading[len(body) :]

        blocks = SRTParser._parse_lines(body.split("\n") if body else [])

        unparsed = sum(1 for block in blocks if not block.is_translatable)
        if unparsed:
            logger.warning(
                f"⚠️  {unparsed} malformed subtitle block(s) kept verbatim"
            )
        logger.debug(f"Parsed {len(blocks)} subtitle blocks")

        return SubtitleDocument(
            blocks=tuple(blocks),
            leading=leading,
            trailing=trailing,
            newline=newline,
            has_bom=has_bom,
        )

    @staticmethod
    def _parse_lines(lines: List[str]) -> List[SubtitleBlock]:
        blocks: List[SubtitleBlock] = []
        state = _ParserState.EXPECT_INDEX
        pending: List[str] = []

        def flush() -> None:
            if state is _ParserState.EXPECT_TEXT:
                blocks.append(
                    SubtitleBlock(
                        sequence_label=pending[0],
                        time_range=pending[1],
                        text="\n".join(pending[2:]),
                    )
                )
            elif pending:
                blocks.append(SubtitleBlock.opaque(pending))

        for line in lines:
            if not line.strip():
                flush()
                pending = []
                state = _ParserState.EXPECT_INDEX
                continue

            pending.append(line)

            if state is _ParserState.EXPECT_INDEX:
                if SRTParser.INDEX_PATTERN.match(line):
                    state = _ParserState.EXPECT_TIME_RANGE
                else:
                    state = _ParserState.UNPARSED
            elif state is _ParserState.EXPECT_TIME_RANGE:
                if SRTParser.TIME_RANGE_PATTERN.match(line):
                    state = _ParserState.EXPECT_TEXT
                else:
                    state = _ParserState.UNPARSED

        flush()
        return blocks

    @staticmethod
    def render(document: SubtitleDocument) -> str:
        """
        Render a document back to SRT text.

        Blocks are separated by exactly one blank line; untouched blocks are
        reproduced byte-for-byte.

        Args:
            document: Document to render

        Returns:
            SRT content string
        """
        rendered_blocks = ["\n".join(block.render_lines()) for block in document.blocks]
        text = document.leading + "\n\n".join(rendered_blocks) + document.trailing

        if document.newline != "\n":
            text = text.replace("\n", document.newline)
        if document.has_bom:
            text = UTF8_BOM + text
        return text

    @staticmethod
    def parse_for_translation(content: str) -> SubtitleDocument:
        """
        Parse a source subtitle that is about to be translated.

        Args:
            content: Raw SRT file content

        Returns:
            SubtitleDocument with at least one translatable block

        Raises:
            ParseError: If no block could be parsed
        """
        document = SRTParser.parse(content)
        if not document.translatable_blocks:
            raise ParseError(
                f"No valid subtitle blocks found in source ({len(content)} characters)"
            )
        return document


def extract_text_for_translation(document: SubtitleDocument) -> List[str]:
    """
    Extract the text of every translatable block for batch translation.

    Args:
        document: Parsed subtitle document

    Returns:
        List of text strings in document order
    """
    return [block.text for block in document.translatable_blocks]


def chunk_texts(
    texts: Sequence[str], batch_size: int = DEFAULT_BATCH_SIZE
) -> List[List[str]]:
    """
    Split texts into consecutive batches for backend calls.

    Args:
        texts: Texts in document order
        batch_size: Maximum texts per batch (must be positive)

    Returns:
        List of batches; every batch but the last is full

    Raises:
        ValueError: If batch_size is less than 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    return [list(texts[i : i + batch_size]) for i in range(0, len(texts), batch_size)]

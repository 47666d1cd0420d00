"""Utilities for handling chat-completion responses from LLM translation backends."""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from common.errors import CountMismatchError, TranslationError

logger = logging.getLogger(__name__)


class LLMResponseParsingError(TranslationError):
    """
    The model returned something that is not the expected JSON object.

    Retryable: models usually produce valid JSON on a subsequent attempt.
    """

    retryable = True
    user_message = "Translation failed. The translation service returned an unreadable response."


def truncate_for_logging(
    text: str, max_length: int = 1000, edge_length: int = 500
) -> str:
    """
    Truncate text for logging, showing beginning and end.

    Examples:
        >>> truncate_for_logging("Hello", max_length=100)
        'Hello'
    """
    if len(text) <= max_length:
        return text
    return f"{text[:edge_length]}...\n...{text[-edge_length:]}"


def clean_markdown_code_fences(response: str) -> str:
    """
    Remove markdown code fences from a model response.

    Examples:
        >>> clean_markdown_code_fences('```json\\n{"texts": []}\\n```')
        '{"texts": []}'
        >>> clean_markdown_code_fences('{"texts": []}')
        '{"texts": []}'
    """
    cleaned_response = response.strip()

    if cleaned_response.startswith("```"):
        lines = cleaned_response.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned_response = "\n".join(lines).strip()

    return cleaned_response


def parse_json_robustly(text: str) -> Any:
    """
    Parse JSON with recovery for common model formatting issues.

    Tries plain parsing first, then inserts missing commas between objects,
    then extracts the outermost JSON object from surrounding prose.

    Args:
        text: JSON text to parse

    Returns:
        Parsed JSON data

    Raises:
        LLMResponseParsingError: If all parsing strategies fail
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Standard JSON parsing failed: {e}. Trying recovery strategies...")

    # Missing commas between objects: }{ -> },{
    try:
        return json.loads(re.sub(r"\}(\s*)\{", r"},\1{", text))
    except json.JSONDecodeError:
        logger.debug("Comma insertion strategy failed")

    # Object wrapped in explanations
    object_match = re.search(r"\{.*\}", text, re.DOTALL)
    if object_match:
        try:
            return json.loads(object_match.group(0))
        except json.JSONDecodeError:
            logger.debug("Object extraction strategy failed")

    raise LLMResponseParsingError(
        f"Failed to parse JSON after trying all recovery strategies: "
        f"{truncate_for_logging(text, max_length=200, edge_length=100)}"
    )


def build_indexed_payload(texts: List[str]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Build the JSON request payload sent to the model.

    Example:
        >>> build_indexed_payload(["Hello", "World"])
        {'texts': [{'index': 0, 'text': 'Hello'}, {'index': 1, 'text': 'World'}]}
    """
    return {"texts": [{"index": i, "text": text} for i, text in enumerate(texts)]}


def _collect_indexed_items(data: Any) -> Tuple[Dict[int, str], List[int]]:
    if isinstance(data, dict):
        data = data.get("texts")
    if not isinstance(data, list):
        raise LLMResponseParsingError(
            f"Expected a 'texts' array, got {type(data).__name__}"
        )

    translation_map: Dict[int, str] = {}
    parsed_indices: List[int] = []
    for item in data:
        if not isinstance(item, dict) or "index" not in item or "text" not in item:
            logger.warning(f"Skipping malformed item in response: {item}")
            continue
        try:
            index = int(item["index"])
        except (ValueError, TypeError):
            logger.warning(f"Skipping item with invalid index: {item}")
            continue
        translation_map[index] = str(item["text"])
        parsed_indices.append(index)

    return translation_map, parsed_indices


def parse_indexed_texts(
    response: str, expected_count: int, batch_index: Optional[int] = None
) -> List[str]:
    """
    Parse a ``{"texts": [{"index", "text"}]}`` response into ordered strings.

    Args:
        response: Raw message content from the model
        expected_count: Number of texts that were sent
        batch_index: Batch number, for error messages

    Returns:
        Translated texts ordered by index

    Raises:
        LLMResponseParsingError: If the response is not the expected JSON
        CountMismatchError: If any index in ``range(expected_count)`` is missing
            or extra items were returned
    """
    data = parse_json_robustly(clean_markdown_code_fences(response))
    translation_map, parsed_indices = _collect_indexed_items(data)

    expected_indices = set(range(expected_count))
    if set(translation_map) != expected_indices:
        logger.debug(f"Response sample:\n{truncate_for_logging(response)}")
        raise CountMismatchError(
            expected_count=expected_count,
            actual_count=len(translation_map),
            batch_index=batch_index,
            parsed_indices=parsed_indices,
        )

    return [translation_map[i] for i in range(expected_count)]

"""Validation of the model's final answer into a GenerationResult."""

import json
from typing import Any, Optional, Union

from loguru import logger
from pydantic import ValidationError

from gitscribe.errors import InvalidResponseFormatError
from gitscribe.types.generation import DegradedResponse, GenerationResult, ValidResponse

ValidationOutcome = Union[ValidResponse, DegradedResponse]


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span in text, or None.

    Braces inside JSON string literals are ignored so that file contents such
    as "function() { ... }" do not end the span early.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_response(content: str) -> GenerationResult:
    """Parse and validate the final answer, raising InvalidResponseFormatError."""
    payload: Any
    try:
        payload = json.loads(content)
    except (ValueError, RecursionError):
        span = find_json_object(content)
        if span is None:
            raise InvalidResponseFormatError("No JSON object found in response")
        try:
            payload = json.loads(span)
        except (ValueError, RecursionError) as e:
            raise InvalidResponseFormatError(f"Malformed JSON object: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidResponseFormatError("Response JSON is not an object")

    try:
        return GenerationResult.model_validate(payload)
    except ValidationError as e:
        raise InvalidResponseFormatError(f"Invalid response format: {e.error_count()} validation error(s)") from e


def validate_response(content: Optional[str], summary_chars: int = 200) -> ValidationOutcome:
    """Turn free-form model output into a ValidResponse or a DegradedResponse. Never raises."""
    text = content if isinstance(content, str) else ""
    try:
        return ValidResponse(result=parse_response(text))
    except InvalidResponseFormatError as e:
        logger.warning(f"Degrading final answer: {e}")
        logger.debug(f"Raw content: {text}")
        return DegradedResponse(raw_text=text, reason=str(e), summary_chars=summary_chars)

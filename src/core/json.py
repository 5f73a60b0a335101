"""Fast JSON encoding and tolerant parsing."""

from typing import Any
import json

import msgspec
import orjson
from json_repair import repair_json


class JSONParseError(Exception):
    """JSON parsing failed."""

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original


def _strip_fences(text: str) -> str:
    """Drop a surrounding markdown code block, if any."""
    if "```" not in text:
        return text

    if "```json" in text:
        start = text.find("```json") + 7
    else:
        start = text.find("```") + 3

    end = text.find("```", start)
    if end == -1:
        return text[start:].strip()
    return text[start:end].strip()


def extract_json(text: str, repair: bool = True) -> dict[str, Any]:
    """
    Extract a JSON object from model output.

    Handles markdown fences and leading/trailing prose; falls back to
    json_repair for truncated or slightly malformed output.

    Args:
        text: Text containing a JSON object
        repair: Attempt to repair invalid JSON

    Returns:
        Parsed JSON dictionary

    Raises:
        JSONParseError: If no object can be recovered
    """
    working = _strip_fences(text.strip())

    start = working.find("{")
    end = working.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise JSONParseError("No JSON object found in text")

    json_str = working[start : end + 1]

    try:
        result = msgspec.json.decode(json_str.encode("utf-8"))
    except msgspec.DecodeError as e:
        if not repair:
            raise JSONParseError(f"Invalid JSON: {e}", e)
        try:
            result = json.loads(repair_json(json_str))
        except Exception as repair_error:
            raise JSONParseError(f"JSON repair failed: {repair_error}", repair_error)

    if not isinstance(result, dict):
        raise JSONParseError(f"Expected object, got {type(result).__name__}")
    return result


def dumps(obj: Any) -> str:
    """Encode to a compact JSON string (orjson)."""
    return orjson.dumps(obj).decode("utf-8")


def loads(data: str | bytes) -> Any:
    """
    Decode JSON text.

    Raises:
        JSONParseError: If the input is not valid JSON
    """
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise JSONParseError(f"Invalid JSON: {e}", e)


def validate_json_depth(obj: Any, max_depth: int = 20, current_depth: int = 0) -> None:
    """
    Validate JSON nesting depth to prevent runaway recursion.

    Raises:
        JSONParseError: If depth exceeds limit
    """
    if current_depth > max_depth:
        raise JSONParseError(f"JSON nesting depth {current_depth} exceeds maximum {max_depth}")

    if isinstance(obj, dict):
        for value in obj.values():
            validate_json_depth(value, max_depth, current_depth + 1)
    elif isinstance(obj, list):
        for item in obj:
            validate_json_depth(item, max_depth, current_depth + 1)

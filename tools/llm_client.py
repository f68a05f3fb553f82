"""Parsing boundary for structured (JSON) generation responses.

Every structured response from the generation service passes through
``parse_json_response``; nothing else in the codebase inspects raw model
output for JSON.
"""

import json
import re
from typing import Any

_JSON_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Lenient decoder that allows control characters (raw newlines, tabs) inside
# JSON strings; models frequently emit these instead of proper \n escapes.
_LENIENT_DECODER = json.JSONDecoder(strict=False)


def _try_loads(text: str) -> Any:
    """Try parsing JSON, first strictly then leniently."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    return _LENIENT_DECODER.decode(text)


def _last_embedded_value(text: str) -> Any:
    """Return the last well-formed top-level ``{...}`` or ``[...]`` in text.

    Scans left to right; each successful decode skips past the decoded value,
    so nested objects are never reported on their own.
    """
    found = None
    pos = 0
    while pos < len(text):
        if text[pos] not in "{[":
            pos += 1
            continue
        try:
            value, end = _LENIENT_DECODER.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos += 1
            continue
        found = (value,)
        pos = end
    if found is None:
        raise json.JSONDecodeError("No JSON value found", text, 0)
    return found[0]


def parse_json_response(text: str) -> dict | list:
    """Extract and parse JSON from a model response.

    Tried in order: the whole text, the first fenced code block, and the last
    well-formed object or array embedded in surrounding prose.

    Raises:
        ValueError: If none of the strategies yields an object or array.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Failed to parse JSON from LLM response: empty response")

    try:
        result = _try_loads(text)
        if isinstance(result, (dict, list)):
            return result
    except json.JSONDecodeError:
        pass

    match = _JSON_FENCE_RE.search(text)
    if match:
        try:
            result = _try_loads(match.group(1).strip())
            if isinstance(result, (dict, list)):
                return result
        except json.JSONDecodeError:
            pass

    try:
        return _last_embedded_value(text)
    except json.JSONDecodeError:
        pass

    raise ValueError(f"Failed to parse JSON from LLM response: {text[:200]}...")


def ensure_dict(result: dict | list, list_key: str = "items") -> dict:
    """Normalize a parsed response to a dict.

    A bare list is wrapped under ``list_key`` so callers expecting
    ``{"milestones": [...]}`` also accept ``[...]``.
    """
    if isinstance(result, dict):
        return result
    return {list_key: result}

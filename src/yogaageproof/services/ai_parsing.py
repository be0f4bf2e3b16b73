"""Helpers for decoding JSON out of model responses."""

import json
import re

from yogaageproof.domain.errors import AIResponseParseError

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json(text: str) -> object:
    """Decode the JSON payload of a response, stripping markdown fences."""
    candidate = text.strip()
    match = _FENCED_BLOCK.search(candidate)
    if match:
        candidate = match.group(1).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise AIResponseParseError(
            "Failed to parse AI response. Please try again.",
            snippet=candidate[:200],
        ) from exc


def extract_object(text: str) -> dict[str, object]:
    """Decode a response that must be a single JSON object."""
    payload = extract_json(text)
    if not isinstance(payload, dict):
        raise AIResponseParseError("Unexpected response format")
    return payload

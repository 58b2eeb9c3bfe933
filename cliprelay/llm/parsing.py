"""
Lenient JSON extraction from model output.
"""
from typing import Any
import json
import re

_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    t = (text or "").strip()
    match = _FENCE_RE.match(t)
    return match.group(1).strip() if match else t


def parse_json_response(text: str) -> dict[str, Any]:
    """
    Parse a model answer that should be one JSON object.

    Tries, in order: the whole text (fences stripped), then the span from
    the first ``{`` to the last ``}``. A top-level array is wrapped as
    ``{"items": [...]}``. When nothing parses the raw text is returned
    under ``raw_text`` with ``parse_error`` set.
    """
    cleaned = strip_code_fences(text)

    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        candidates.append(cleaned[start:end + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
        if isinstance(value, list):
            return {"items": value}

    return {"raw_text": text, "parse_error": True}

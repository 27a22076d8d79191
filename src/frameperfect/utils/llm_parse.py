"""Model output parsing utilities.

Shared helpers for pulling JSON out of free-text model responses.
"""

import json
import re

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from model output."""
    return _FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str:
    """Extract the outermost JSON object from model output."""
    text = strip_code_fences(text)
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1]
    return text


def extract_json_array(text: str) -> str:
    """Extract the outermost JSON array from model output."""
    text = strip_code_fences(text)
    start = text.find("[")
    end = text.rfind("]")
    if start >= 0 and end > start:
        return text[start : end + 1]
    return text


def parse_string_list(text: str, *, limit: int = 8) -> list[str]:
    """Parse a list of short labels from model output.

    Tries a JSON array first; otherwise falls back to one label per line,
    stripping bullets and quotes.
    """
    try:
        parsed = json.loads(extract_json_array(text))
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, list):
        items = [str(item) for item in parsed if isinstance(item, (str, int, float))]
    else:
        items = [
            _BULLET_RE.sub("", line).replace('"', "").replace("[", "").replace("]", "")
            for line in strip_code_fences(text).splitlines()
        ]

    labels: list[str] = []
    for item in items:
        label = item.strip().strip(",").strip()
        if label and label not in labels:
            labels.append(label)
    return labels[:limit]

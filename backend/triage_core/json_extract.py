from __future__ import annotations

import json
from typing import Any


def first_balanced_object_span(raw_text: str) -> str | None:
    text = raw_text or ""
    start_idx = text.find("{")
    if start_idx < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for end_idx in range(start_idx, len(text)):
        char = text[end_idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start_idx : end_idx + 1]
    return None


def extract_first_json_object(raw_text: str) -> dict[str, Any] | None:
    candidate = first_balanced_object_span(raw_text)
    if candidate is None:
        return None
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None

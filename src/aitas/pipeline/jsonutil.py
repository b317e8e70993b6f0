# src/aitas/pipeline/jsonutil.py

from __future__ import annotations

import json
from typing import Any


def extract_json_object(raw: str) -> str:
    """Cut the outermost {...} out of a model answer (code fences, chatter around it)."""
    raw = (raw or "").strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def loads_object(raw: str) -> dict[str, Any] | None:
    """Parse a JSON object from a model answer; None if there is none."""
    try:
        data = json.loads(extract_json_object(raw))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None

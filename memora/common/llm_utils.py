"""Shared utilities for parsing and cleaning LLM responses."""

from __future__ import annotations

import json
import re
from typing import Optional

_NEWLINES_RE = re.compile(r"[\r\n]+")


def parse_llm_json(raw: str) -> Optional[dict]:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return None

    Valid JSON that is not an object (a list, a bare string) also yields None.
    """
    if not raw:
        return None

    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            parsed = json.loads(raw[start:end])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    return None


def flatten_answer(text: str, limit: int = 600) -> str:
    """Collapse newlines into single spaces and cap the length."""
    return _NEWLINES_RE.sub(" ", text or "").strip()[:limit]

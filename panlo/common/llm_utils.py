"""Shared helpers for reading structured data out of completion responses."""

from __future__ import annotations

import json
import re

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from a completion, tolerating fences and preamble.

    Fenced blocks are unwrapped first. If the text still does not parse, the
    span between the first '{' and the last '}' is tried. Anything that does
    not yield a JSON object returns an empty dict.
    """
    if not raw:
        return {}

    text = _FENCE_RE.sub("", raw.strip())
    for candidate in (text, raw[raw.find("{"): raw.rfind("}") + 1]):
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return {}

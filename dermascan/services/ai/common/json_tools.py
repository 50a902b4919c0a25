"""Robust JSON object extraction from LLM responses.

Vision models are asked for pure JSON but routinely wrap it in prose or
Markdown fences. :func:`extract_json_object` tries a fixed sequence of
strategies and returns the first JSON *object* it can decode.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first JSON object found in *text*, or ``None``.

    Strategy (first hit wins):
    1. ``json.loads`` on the full text (fast path).
    2. Each fenced code block (```` ```json ... ``` ```` or bare fences).
    3. Brace-balanced scan starting at every ``{``.
    4. Slice from the first ``{`` to the last ``}``.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()

    for name, strategy in _STRATEGIES:
        result = strategy(stripped)
        if result is not None:
            logger.debug("JSON extracted via %s strategy", name)
            return result

    return None


def parse_whole(text: str) -> dict[str, Any] | None:
    return _loads_object(text)


def parse_fenced(text: str) -> dict[str, Any] | None:
    for match in _FENCE_RE.finditer(text):
        block = match.group(1).strip()
        result = _loads_object(block)
        if result is not None:
            return result
        # Fenced block with trailing commentary inside the fence
        result = parse_balanced(block)
        if result is not None:
            return result
    return None


def parse_balanced(text: str) -> dict[str, Any] | None:
    for i, ch in enumerate(text):
        if ch == "{":
            result = _extract_balanced(text, i)
            if result is not None:
                return result
    return None


def parse_outer_slice(text: str) -> dict[str, Any] | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return _loads_object(text[start : end + 1])


_STRATEGIES = (
    ("direct", parse_whole),
    ("fenced", parse_fenced),
    ("balanced", parse_balanced),
    ("slice", parse_outer_slice),
)


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _extract_balanced(text: str, start: int) -> dict[str, Any] | None:
    """Extract a brace-balanced substring starting at *start* and parse it."""
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape:
            escape = False
            continue

        if ch == "\\":
            if in_string:
                escape = True
            continue

        if ch == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return _loads_object(text[start : i + 1])

    return None

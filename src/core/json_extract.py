"""Tolerant JSON decoding for model output.

Models emit JSON inside prose or markdown fences. Every call site goes
through ``decode_model_json`` which tries, in order:

1. strict ``json.loads`` of the whole (stripped) text
2. the first fenced code block (```json ... ``` or ``` ... ```)
3. the first balanced ``{...}`` object containing a marker key
4. raw-text fallback (``data`` is None, ``raw`` is fence-stripped text)

The decoder never raises.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_FENCE_MARKER_PATTERN = re.compile(r"```[a-zA-Z]*")


class DecodeStrategy(str, Enum):
    """Which decode step produced the result."""

    STRICT = "strict"
    FENCED = "fenced"
    MARKER = "marker"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of decoding model output.

    Attributes:
        data: Decoded JSON object, or None when only raw text is available
        raw: Markdown-stripped original text
        strategy: Decode step that succeeded
    """

    data: dict[str, Any] | None
    raw: str
    strategy: DecodeStrategy

    @property
    def ok(self) -> bool:
        return self.data is not None

    def get(self, key: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(key, default)


def strip_markdown(text: str) -> str:
    """Remove code fences and surrounding whitespace."""
    return _FENCE_MARKER_PATTERN.sub("", text or "").strip()


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _has_marker(data: dict[str, Any], marker_keys: tuple[str, ...]) -> bool:
    if not marker_keys:
        return True
    return any(key in data for key in marker_keys)


def _balanced_object_end(text: str, start: int) -> int | None:
    """Index one past the brace closing the object opened at ``start``."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
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
                return index + 1
    return None


def _find_marker_object(text: str, marker: str) -> dict[str, Any] | None:
    needle = f'"{marker}"'
    if needle not in text:
        return None
    start = text.find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end is not None:
            candidate = text[start:end]
            if needle in candidate:
                data = _loads_object(candidate)
                if data is not None and marker in data:
                    return data
        start = text.find("{", start + 1)
    return None


def decode_model_json(text: str | None, marker_keys: tuple[str, ...] = ()) -> DecodeResult:
    """Decode a JSON object from model output.

    Args:
        text: Raw model output
        marker_keys: Keys that identify the expected object. When given,
            strict and fenced candidates must contain at least one of them.

    Returns:
        DecodeResult with the decoded object or the raw-text fallback
    """
    text = text or ""
    stripped = text.strip()
    raw = strip_markdown(text)

    data = _loads_object(stripped)
    if data is not None and _has_marker(data, marker_keys):
        return DecodeResult(data=data, raw=raw, strategy=DecodeStrategy.STRICT)

    for match in _FENCE_PATTERN.finditer(text):
        data = _loads_object(match.group(1))
        if data is not None and _has_marker(data, marker_keys):
            return DecodeResult(data=data, raw=raw, strategy=DecodeStrategy.FENCED)

    for marker in marker_keys:
        data = _find_marker_object(text, marker)
        if data is not None:
            return DecodeResult(data=data, raw=raw, strategy=DecodeStrategy.MARKER)

    if stripped:
        logger.debug("No JSON object found in model output (%d chars)", len(stripped))
    return DecodeResult(data=None, raw=raw, strategy=DecodeStrategy.RAW)


def clamp(value: Any, low: float, high: float, default: float) -> float:
    """Coerce ``value`` to a number within [low, high], or ``default``."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))

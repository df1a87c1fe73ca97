"""Input hardening for user-supplied text.

sanitize_input strips markup characters, zero-width and control
characters, and bidi overrides, then NFKC-normalizes and truncates.
detect_prompt_injection flags common instruction-override phrasing.
"""

from __future__ import annotations

import re
import unicodedata


MAX_SANITIZED_CHARS = 2000

_MARKUP_CHARS = re.compile(r"[<>\"'`]")
_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_BIDI_OVERRIDES = re.compile("[\u202a-\u202e]")

INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"ignore\s+(all\s+)?(previous|prior|above)\s+(instructions?|prompts?|commands?)",
        r"system\s+(prompt|message|instruction)",
        r"(api|secret|private)\s*key",
        r"reveal\s+(secrets?|credentials?|keys?)",
        r"(output|show|display|print|return)\s+(your|the)\s+(prompt|instructions?|system)",
        r"you\s+are\s+now",
        r"new\s+instructions?:",
        r"reset\s+context",
    )
)


def sanitize_input(text: str) -> str:
    """Return a cleaned, normalized copy of ``text`` (at most 2000 chars)."""
    cleaned = _MARKUP_CHARS.sub("", text)
    cleaned = _ZERO_WIDTH.sub("", cleaned)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = _BIDI_OVERRIDES.sub("", cleaned)
    cleaned = unicodedata.normalize("NFKC", cleaned)
    return cleaned[:MAX_SANITIZED_CHARS].strip()


def detect_prompt_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in INJECTION_PATTERNS)

"""TTL cache for prompt templates.

The only mutable state shared across requests. Read-mostly; expired entries
are dropped lazily on ``get``. No locking: the service runs on a single
event loop and none of these methods await.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Generic, TypeVar


V = TypeVar("V")

DEFAULT_TTL_SECONDS = 300.0


class PromptCache(Generic[V]):
    """Keyed cache whose entries expire ``ttl_seconds`` after being set.

    Example:
        >>> cache = PromptCache(ttl_seconds=300)
        >>> cache.set("synthesis_stage", template)
        >>> cache.get("synthesis_stage")
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[V, float]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (value, self._clock() + self._ttl)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

"""FastAPI dependencies for the pipeline route.

Shared services live on ``app.state`` (set up in the lifespan) and are
exposed through small getter dependencies so tests can swap them with
``app.dependency_overrides``.

Authentication and rate limiting sit behind protocols:

- TokenVerifier maps a bearer token to a user id
- RateLimitLedger counts requests per user and endpoint in a fixed window
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from fastapi import Depends, Header, Request

from src.api.error_handlers import AuthenticationError
from src.clients.model_client import ModelClientProtocol
from src.core.config import Settings, get_settings
from src.prompts.service import PromptService
from src.research.stream import EventSink
from src.tools.registry import ToolRegistry


ANONYMOUS_USER = "anonymous"


# =============================================================================
# Authentication
# =============================================================================

@runtime_checkable
class TokenVerifier(Protocol):
    """Resolves a bearer token to a user id, or None when invalid."""

    async def verify(self, token: str) -> str | None:
        ...


class StaticTokenVerifier:
    """Token verifier backed by a fixed token -> user id mapping."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    async def verify(self, token: str) -> str | None:
        return self._tokens.get(token)


# =============================================================================
# Rate limiting
# =============================================================================

@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int = 0
    retry_after: int = 0


@runtime_checkable
class RateLimitLedger(Protocol):
    async def check_and_increment(
        self,
        user_id: str,
        endpoint: str,
        max_requests: int,
        window_seconds: int,
    ) -> RateLimitDecision:
        ...


class InMemoryRateLimitLedger:
    """Fixed-window request counter held in process memory.

    Example:
        >>> ledger = InMemoryRateLimitLedger()
        >>> decision = await ledger.check_and_increment("u1", "pipeline", 5, 3600)
        >>> decision.allowed
        True
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[tuple[str, str], tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    async def check_and_increment(
        self,
        user_id: str,
        endpoint: str,
        max_requests: int,
        window_seconds: int,
    ) -> RateLimitDecision:
        key = (user_id, endpoint)
        async with self._lock:
            now = self._clock()
            started, count = self._windows.get(key, (now, 0))
            if now - started >= window_seconds:
                started, count = now, 0

            if count >= max_requests:
                retry_after = max(1, math.ceil(started + window_seconds - now))
                return RateLimitDecision(allowed=False, retry_after=retry_after)

            self._windows[key] = (started, count + 1)
            return RateLimitDecision(allowed=True, remaining=max_requests - count - 1)

    def reset(self) -> None:
        self._windows.clear()


# =============================================================================
# Service getters
# =============================================================================

def get_app_settings() -> Settings:
    return get_settings()


def get_model_client(request: Request) -> ModelClientProtocol:
    return request.app.state.model_client


def get_tool_registry(request: Request) -> ToolRegistry:
    return request.app.state.tool_registry


def get_prompt_service(request: Request) -> PromptService:
    return request.app.state.prompt_service


def get_event_sink(request: Request) -> EventSink | None:
    return getattr(request.app.state, "event_sink", None)


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_rate_limit_ledger(request: Request) -> RateLimitLedger:
    return request.app.state.rate_limit_ledger


async def verify_user(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> str:
    """Resolve the calling user from the Authorization header.

    Raises:
        AuthenticationError: Missing, malformed, or unknown bearer token
    """
    if not settings.require_auth:
        return ANONYMOUS_USER

    if not authorization:
        raise AuthenticationError("Authorization required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization header")

    user_id = await verifier.verify(token.strip())
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")
    return user_id


__all__ = [
    "ANONYMOUS_USER",
    "InMemoryRateLimitLedger",
    "RateLimitDecision",
    "RateLimitLedger",
    "StaticTokenVerifier",
    "TokenVerifier",
    "get_app_settings",
    "get_event_sink",
    "get_model_client",
    "get_prompt_service",
    "get_rate_limit_ledger",
    "get_token_verifier",
    "get_tool_registry",
    "verify_user",
]

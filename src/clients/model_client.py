"""Model Invocation Client.

Uniform interface for calling a named model across providers:
    - OpenRouter is the primary backend for hosted frontier models
    - Groq is the always-available fallback backend

Every call normalizes the provider response into ModelResponse, computes
token cost from the model registry, and carries a bounded httpx timeout.

Fallback rules:
    1. Unknown model id -> FALLBACK_MODEL
    2. OpenRouter model without an OpenRouter key -> Groq FALLBACK_MODEL
    3. OpenRouter failure (HTTP error, timeout, malformed body) -> Groq FALLBACK_MODEL
    4. Neither key configured -> ConfigurationError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field, ValidationError

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    ConfigurationError,
    ModelInvocationError,
    ModelRateLimitError,
    ModelTimeoutError,
)
from src.core.http import HTTPClientFactory, ServiceName


logger = logging.getLogger(__name__)


# =============================================================================
# Model Registry
# =============================================================================

class Backend(str, Enum):
    """Provider backend that serves a model."""

    OPENROUTER = "openrouter"
    GROQ = "groq"


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Registry entry for a callable model.

    Costs are USD per 1M tokens.
    """

    provider: str
    model: str
    backend: Backend
    cost_per_1m_input: float
    cost_per_1m_output: float
    context_window: int
    speed: str = "medium"
    strengths: tuple[str, ...] = field(default_factory=tuple)

    @property
    def wire_name(self) -> str:
        """Model name as sent to the backend."""
        if self.backend is Backend.OPENROUTER:
            return f"{self.provider}/{self.model}"
        return self.model


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "gpt-5.2": ModelSpec(
        "openai", "gpt-5.2", Backend.OPENROUTER, 1.75, 14.0, 400_000,
        "medium", ("reasoning", "long-form writing"),
    ),
    "gpt-5.2-codex": ModelSpec(
        "openai", "gpt-5.2-codex", Backend.OPENROUTER, 2.0, 15.0, 400_000,
        "medium", ("code review", "technical accuracy"),
    ),
    "claude-opus-4.5": ModelSpec(
        "anthropic", "claude-opus-4.5", Backend.OPENROUTER, 15.0, 75.0, 200_000,
        "slow", ("deep reasoning", "design critique"),
    ),
    "claude-sonnet-4.5": ModelSpec(
        "anthropic", "claude-sonnet-4.5", Backend.OPENROUTER, 3.0, 15.0, 200_000,
        "medium", ("synthesis", "research"),
    ),
    "gemini-3-flash": ModelSpec(
        "google", "gemini-3-flash-preview", Backend.OPENROUTER, 0.5, 3.0, 1_000_000,
        "fast", ("market analysis", "breadth"),
    ),
    "deepseek-v3": ModelSpec(
        "deepseek", "deepseek-chat", Backend.OPENROUTER, 0.3, 1.2, 128_000,
        "fast", ("general reasoning",),
    ),
    "deepseek-v3.2": ModelSpec(
        "deepseek", "deepseek-v3.2", Backend.OPENROUTER, 0.27, 0.41, 128_000,
        "fast", ("general reasoning",),
    ),
    "kimi-k2-thinking": ModelSpec(
        "moonshotai", "kimi-k2-thinking", Backend.OPENROUTER, 0.45, 2.35, 256_000,
        "slow", ("agentic reasoning",),
    ),
    "groq-llama-3.3-70b": ModelSpec(
        "groq", "llama-3.3-70b-versatile", Backend.GROQ, 0.0, 0.0, 128_000,
        "fast", ("synthesis", "voting"),
    ),
    "groq-llama-3.1-8b": ModelSpec(
        "groq", "llama-3.1-8b-instant", Backend.GROQ, 0.0, 0.0, 128_000,
        "fast", ("fallback",),
    ),
}

FALLBACK_MODEL = "groq-llama-3.1-8b"


def calculate_cost(model_id: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Compute USD cost of a call; unknown models cost nothing."""
    spec = MODEL_REGISTRY.get(model_id)
    if spec is None:
        return 0.0
    return (
        prompt_tokens / 1_000_000 * spec.cost_per_1m_input
        + completion_tokens / 1_000_000 * spec.cost_per_1m_output
    )


# =============================================================================
# Request/Response Models
# =============================================================================

class ChatMessage(BaseModel):
    """Chat message in OpenAI-compatible format."""

    role: str = Field(..., description="Message role: system, user, or assistant")
    content: str | None = Field(default=None, description="Message content")


class ChatCompletionRequest(BaseModel):
    """Chat completion request body."""

    model: str
    messages: list[ChatMessage]
    temperature: float = 0.7
    max_tokens: int = 2000
    response_format: dict[str, str] | None = None


class ChatCompletionChoice(BaseModel):
    """Single completion choice."""

    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """Provider response body (OpenAI-compatible)."""

    id: str | None = None
    model: str | None = None
    choices: list[ChatCompletionChoice] = Field(default_factory=list)
    usage: Usage | None = None


class ModelResponse(BaseModel):
    """Normalized result of a model call.

    Attributes:
        content: Generated text
        model: Registry id of the model that actually answered
        usage: Token usage
        cost: USD cost computed from the registry
        fallback_used: True when the requested model was substituted
    """

    content: str
    model: str
    usage: Usage = Field(default_factory=Usage)
    cost: float = 0.0
    fallback_used: bool = False


# =============================================================================
# Client Protocol
# =============================================================================

@runtime_checkable
class ModelClientProtocol(Protocol):
    """Interface every stage uses to call models."""

    async def call(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False,
    ) -> ModelResponse:
        ...


# =============================================================================
# Model Client
# =============================================================================

class ModelClient:
    """HTTP client for OpenRouter and Groq chat completions.

    Example:
        >>> client = ModelClient()
        >>> response = await client.call(
        ...     "gpt-5.2",
        ...     [{"role": "user", "content": "Hello"}],
        ... )
        >>> response.content, response.cost
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_factory: HTTPClientFactory | None = None,
        clients: dict[Backend, httpx.AsyncClient] | None = None,
    ) -> None:
        """Initialize model client.

        Args:
            settings: Application settings (defaults to get_settings())
            http_factory: Factory providing shared backend clients
            clients: Explicit per-backend clients (tests use httpx.MockTransport)
        """
        self._settings = settings or get_settings()
        self._http_factory = http_factory
        self._clients: dict[Backend, httpx.AsyncClient] = dict(clients or {})

    def _get_client(self, backend: Backend) -> httpx.AsyncClient:
        client = self._clients.get(backend)
        if client is None or client.is_closed:
            service = ServiceName.OPENROUTER if backend is Backend.OPENROUTER else ServiceName.GROQ
            if self._http_factory is not None:
                client = self._http_factory.shared_client(service)
            else:
                client = HTTPClientFactory(self._settings).create_client(service)
            self._clients[backend] = client
        return client

    async def close(self) -> None:
        """Close clients this instance created."""
        if self._http_factory is not None:
            return
        for client in self._clients.values():
            if not client.is_closed:
                await client.aclose()
        self._clients.clear()

    def _api_key(self, backend: Backend) -> str | None:
        secret = (
            self._settings.openrouter_api_key
            if backend is Backend.OPENROUTER
            else self._settings.groq_api_key
        )
        return secret.get_secret_value() if secret else None

    async def call(
        self,
        model: str,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False,
    ) -> ModelResponse:
        """Call a model by registry id, falling back to Groq when needed.

        Args:
            model: Registry model id (e.g. "gpt-5.2")
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_mode: Request a JSON object response (OpenRouter only)

        Returns:
            Normalized ModelResponse

        Raises:
            ConfigurationError: No provider key configured
            ModelInvocationError: Provider call failed and no fallback was possible
        """
        if not self._settings.has_model_provider:
            raise ConfigurationError(
                "Neither OPENROUTER_API_KEY nor GROQ_API_KEY is configured",
                setting="openrouter_api_key",
            )

        spec = MODEL_REGISTRY.get(model)
        fallback_used = False
        if spec is None:
            logger.warning("Unknown model %s, using fallback %s", model, FALLBACK_MODEL)
            model, spec, fallback_used = FALLBACK_MODEL, MODEL_REGISTRY[FALLBACK_MODEL], True

        groq_available = self._api_key(Backend.GROQ) is not None

        if spec.backend is Backend.OPENROUTER:
            if self._api_key(Backend.OPENROUTER) is not None:
                try:
                    return await self._complete(
                        model, spec, messages, temperature, max_tokens, json_mode, fallback_used
                    )
                except ModelInvocationError as e:
                    if not groq_available:
                        raise
                    logger.warning(
                        "OpenRouter call for %s failed (%s), falling back to %s",
                        model,
                        e,
                        FALLBACK_MODEL,
                    )
            else:
                logger.info("OpenRouter key missing, routing %s to %s", model, FALLBACK_MODEL)
            model, spec, fallback_used = FALLBACK_MODEL, MODEL_REGISTRY[FALLBACK_MODEL], True

        if not groq_available:
            raise ConfigurationError("GROQ_API_KEY is not configured", setting="groq_api_key")

        return await self._complete(
            model, spec, messages, temperature, max_tokens, False, fallback_used
        )

    async def _complete(
        self,
        model_id: str,
        spec: ModelSpec,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        fallback_used: bool,
    ) -> ModelResponse:
        request = ChatCompletionRequest(
            model=spec.wire_name,
            messages=[
                ChatMessage(role=m.get("role", "user"), content=m.get("content", ""))
                for m in messages
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"} if json_mode else None,
        )

        logger.info(
            "Calling %s: model=%s, messages=%d",
            spec.backend.value,
            spec.wire_name,
            len(messages),
        )

        client = self._get_client(spec.backend)
        try:
            response = await client.post(
                "/chat/completions",
                json=request.model_dump(exclude_none=True),
                headers={"Authorization": f"Bearer {self._api_key(spec.backend)}"},
            )
        except httpx.TimeoutException as e:
            raise ModelTimeoutError(model_id, self._settings.model_timeout_seconds) from e
        except httpx.HTTPError as e:
            raise ModelInvocationError(
                f"API request failed: {type(e).__name__}", model_id
            ) from e

        if response.status_code == 429:
            raise ModelRateLimitError(model_id)
        if response.is_error:
            logger.error(
                "Provider error: backend=%s status=%d body=%s",
                spec.backend.value,
                response.status_code,
                response.text[:500],
            )
            raise ModelInvocationError("API request failed", model_id, response.status_code)

        try:
            completion = ChatCompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ModelInvocationError("Invalid response from API", model_id) from e

        if not completion.choices:
            raise ModelInvocationError("Invalid response from API", model_id)

        usage = completion.usage or Usage()
        cost = calculate_cost(model_id, usage.prompt_tokens, usage.completion_tokens)

        logger.info(
            "Model call complete: model=%s tokens=%d cost=%.5f",
            model_id,
            usage.total_tokens,
            cost,
        )

        return ModelResponse(
            content=completion.choices[0].message.content or "",
            model=model_id,
            usage=usage,
            cost=cost,
            fallback_used=fallback_used,
        )


def messages_for(system_prompt: str, user_prompt: str) -> list[dict[str, Any]]:
    """Build the common two-message conversation."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]

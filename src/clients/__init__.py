"""Clients for external model providers.

Exports:
    - ModelClient: OpenRouter/Groq chat completions with fallback
    - ModelClientProtocol: Interface used by every stage
    - MODEL_REGISTRY, FALLBACK_MODEL, calculate_cost: Pricing registry
"""

from src.clients.model_client import (
    FALLBACK_MODEL,
    MODEL_REGISTRY,
    Backend,
    ModelClient,
    ModelClientProtocol,
    ModelResponse,
    ModelSpec,
    Usage,
    calculate_cost,
    messages_for,
)


__all__ = [
    "FALLBACK_MODEL",
    "MODEL_REGISTRY",
    "Backend",
    "ModelClient",
    "ModelClientProtocol",
    "ModelResponse",
    "ModelSpec",
    "Usage",
    "calculate_cost",
    "messages_for",
]

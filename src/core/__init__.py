"""Core module - Configuration, logging, HTTP clients, and shared utilities.

Exports:
    - Settings, get_settings: Pydantic Settings configuration
    - configure_logging, get_logger: Structured logging (structlog)
    - HTTPClientFactory, ServiceName, get_http_client_factory: HTTP clients
    - RetryConfig, retry_with_backoff: Exponential backoff policy
    - decode_model_json: Tolerant JSON decoding for model output
    - Exception classes: AgentError, ConfigurationError, etc.
"""

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    AgentError,
    AgentNotFoundError,
    AgentValidationError,
    ChallengerNotFoundError,
    ConfigurationError,
    ModelInvocationError,
    ModelRateLimitError,
    ModelTimeoutError,
    PromptNotFoundError,
    ToolExecutionError,
)
from src.core.http import (
    HTTPClientFactory,
    ServiceName,
    get_http_client_factory,
)
from src.core.json_extract import DecodeResult, DecodeStrategy, decode_model_json, strip_markdown
from src.core.logging import configure_logging, get_logger
from src.core.retry import RetryConfig, retry_with_backoff


__all__ = [
    # Exceptions
    "AgentError",
    "AgentNotFoundError",
    "AgentValidationError",
    "ChallengerNotFoundError",
    "ConfigurationError",
    # JSON decoding
    "DecodeResult",
    "DecodeStrategy",
    # HTTP Clients
    "HTTPClientFactory",
    "ModelInvocationError",
    "ModelRateLimitError",
    "ModelTimeoutError",
    "PromptNotFoundError",
    # Retry
    "RetryConfig",
    "ServiceName",
    # Configuration
    "Settings",
    "ToolExecutionError",
    # Logging
    "configure_logging",
    "decode_model_json",
    "get_http_client_factory",
    "get_logger",
    "get_settings",
    "retry_with_backoff",
    "strip_markdown",
]

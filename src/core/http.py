"""HTTP client factory for model providers and research tool backends.

All outbound calls use httpx with an explicit, bounded timeout so a hung
provider surfaces as a recoverable error instead of stalling a stage.

Pattern: Factory Pattern with lazily created shared clients
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncGenerator

import httpx

from src.core.config import Settings, get_settings
from src.core.logging import get_logger


logger = get_logger(__name__)


class ServiceName(str, Enum):
    """External backends the orchestrator talks to."""

    OPENROUTER = "openrouter"
    GROQ = "groq"
    EXA = "exa"
    GITHUB = "github"
    NPM = "npm"
    STACKEXCHANGE = "stackexchange"


class HTTPClientFactory:
    """Factory for HTTP clients to external backends.

    Provides centralized client creation with:
    - Base URL lookup via Settings
    - Timeouts per backend family (model vs tool)
    - Shared clients reused across requests and closed on shutdown

    Example:
        ```python
        factory = HTTPClientFactory()
        client = factory.shared_client(ServiceName.OPENROUTER)
        response = await client.post("/chat/completions", json=payload)
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the HTTP client factory.

        Args:
            settings: Application settings. Uses get_settings() if not provided.
        """
        self._settings = settings or get_settings()
        self._service_urls = self._build_service_url_map()
        self._shared: dict[ServiceName, httpx.AsyncClient] = {}

    def _build_service_url_map(self) -> dict[ServiceName, str]:
        return {
            ServiceName.OPENROUTER: self._settings.openrouter_url,
            ServiceName.GROQ: self._settings.groq_url,
            ServiceName.EXA: self._settings.exa_url,
            ServiceName.GITHUB: self._settings.github_url,
            ServiceName.NPM: self._settings.npm_url,
            ServiceName.STACKEXCHANGE: self._settings.stackexchange_url,
        }

    def get_base_url(self, service: ServiceName) -> str:
        """Get the base URL for a backend.

        Raises:
            ValueError: If the backend has no URL configured.
        """
        url = self._service_urls.get(service)
        if not url:
            raise ValueError(f"No URL configured for service: {service}")
        return url

    def default_timeout(self, service: ServiceName) -> float:
        """Model backends and tool backends carry separate timeouts."""
        if service in (ServiceName.OPENROUTER, ServiceName.GROQ):
            return self._settings.model_timeout_seconds
        return self._settings.tool_timeout_seconds

    @asynccontextmanager
    async def get_client(
        self,
        service: ServiceName,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Get a short-lived HTTP client for a backend.

        Args:
            service: Target backend.
            timeout: Request timeout in seconds. Uses settings default if not specified.
            **kwargs: Additional arguments passed to httpx.AsyncClient.

        Yields:
            Configured httpx.AsyncClient instance.
        """
        async with self.create_client(service, timeout, **kwargs) as client:
            yield client

    def create_client(
        self,
        service: ServiceName,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create a standalone HTTP client (caller manages lifecycle).

        Warning:
            Caller is responsible for calling `await client.aclose()`.
        """
        base_url = self.get_base_url(service)
        request_timeout = timeout or self.default_timeout(service)

        logger.debug(
            "Creating HTTP client",
            service=service.value,
            base_url=base_url,
            timeout=request_timeout,
        )

        return httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(request_timeout),
            **kwargs,
        )

    def shared_client(self, service: ServiceName) -> httpx.AsyncClient:
        """Return the process-wide client for a backend, creating it on first use."""
        client = self._shared.get(service)
        if client is None or client.is_closed:
            client = self.create_client(service)
            self._shared[service] = client
        return client

    async def aclose(self) -> None:
        """Close every shared client."""
        for client in self._shared.values():
            await client.aclose()
        self._shared.clear()


# Module-level factory instance (lazy initialization)
_factory: HTTPClientFactory | None = None


def get_http_client_factory() -> HTTPClientFactory:
    """Get the shared HTTP client factory instance."""
    global _factory
    if _factory is None:
        _factory = HTTPClientFactory()
    return _factory

"""Tool Registry.

Holds the research tools available to agents and executes them by name.
``execute`` never raises: unknown tools, invalid parameters and tool
exceptions all come back as a failed ToolResult the agent can read.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from src.core.config import Settings, get_settings
from src.core.exceptions import ToolExecutionError
from src.core.http import HTTPClientFactory, ServiceName
from src.tools.base import BaseTool, ToolMetadata, ToolResult
from src.tools.exa_search import ExaSearchTool
from src.tools.github_search import GitHubSearchTool
from src.tools.npm_search import NpmSearchTool
from src.tools.stackoverflow_search import StackOverflowSearchTool
from src.tools.web_search import WebSearchTool


logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-keyed collection of research tools.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register(WebSearchTool(client, api_key))
        >>> result = await registry.execute("web_search", {"query": "..."})
    """

    def __init__(self, tools: list[BaseTool] | None = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning("Replacing registered tool %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def list(self) -> list[BaseTool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def subset(self, names: list[str] | tuple[str, ...]) -> ToolRegistry:
        """A registry restricted to ``names`` (unknown names are ignored)."""
        return ToolRegistry([tool for name, tool in self._tools.items() if name in names])

    def get_prompt_description(self) -> str:
        if not self._tools:
            return "(no tools available)"
        return "\n\n".join(tool.to_prompt_string() for tool in self._tools.values())

    async def execute(self, name: str, params: dict[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name.

        Args:
            name: Registered tool name
            params: Tool parameters; copied before defaults are applied

        Returns:
            ToolResult; failures are reported, never raised
        """
        tool = self._tools.get(name)
        if tool is None:
            available = ", ".join(self._tools) or "none"
            return ToolResult.failure(f"Tool not found: {name}. Available tools: {available}")

        params = dict(params or {})
        error = tool.validate(params)
        if error:
            return ToolResult.failure(f"Invalid parameters for {name}: {error}")

        start = time.perf_counter()
        try:
            result = await tool.execute(params)
        except ToolExecutionError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolResult.failure(str(e), duration=(time.perf_counter() - start) * 1000)
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolResult.failure(
                f"Tool execution failed: {e}", duration=(time.perf_counter() - start) * 1000
            )

        if not result.metadata.duration:
            result.metadata = ToolMetadata(
                duration=(time.perf_counter() - start) * 1000,
                cost=result.metadata.cost,
                source=result.metadata.source,
            )
        return result


def create_default_registry(
    settings: Settings | None = None,
    http_factory: HTTPClientFactory | None = None,
) -> ToolRegistry:
    """Register every tool whose credentials are configured.

    Exa-backed tools need ``exa_api_key``. ``github_search``, ``npm_search``
    and ``stackoverflow_search`` are always registered; ``github_search``
    uses ``github_token`` when present.
    """
    settings = settings or get_settings()
    factory = http_factory or HTTPClientFactory(settings)
    registry = ToolRegistry()

    if settings.exa_api_key:
        exa_client = factory.shared_client(ServiceName.EXA)
        exa_key = settings.exa_api_key.get_secret_value()
        registry.register(WebSearchTool(exa_client, exa_key))
        registry.register(ExaSearchTool(exa_client, exa_key))
    else:
        logger.info("Exa API key not configured; web_search and exa_search disabled")

    github_token = settings.github_token.get_secret_value() if settings.github_token else None
    registry.register(GitHubSearchTool(factory.shared_client(ServiceName.GITHUB), github_token))
    registry.register(NpmSearchTool(factory.shared_client(ServiceName.NPM)))
    registry.register(StackOverflowSearchTool(factory.shared_client(ServiceName.STACKEXCHANGE)))

    logger.info("Tool registry ready: %s", ", ".join(registry.names()))
    return registry

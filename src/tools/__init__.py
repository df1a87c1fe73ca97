"""Research tools available to agents.

Agents call tools by emitting ``{"tool": name, "params": {...}}``; the
registry executes them and returns a ToolResult.
"""

from src.tools.base import BaseTool, ToolMetadata, ToolParameter, ToolResult
from src.tools.exa_search import ExaSearchTool
from src.tools.github_search import GitHubSearchTool
from src.tools.npm_search import NpmSearchTool
from src.tools.stackoverflow_search import StackOverflowSearchTool
from src.tools.registry import ToolRegistry, create_default_registry
from src.tools.web_search import WebSearchTool


__all__ = [
    "BaseTool",
    "ExaSearchTool",
    "GitHubSearchTool",
    "NpmSearchTool",
    "StackOverflowSearchTool",
    "ToolMetadata",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "WebSearchTool",
    "create_default_registry",
]

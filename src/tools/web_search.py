"""Web Search Tool.

General web search backed by Exa's ``/search`` endpoint with Bearer auth.
Agents use it to verify that technology recommendations are current.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.tools.base import BaseTool, ToolMetadata, ToolParameter, ToolResult


logger = logging.getLogger(__name__)

_SOURCE = "exa"
_MAX_RESULTS = 20
_DEFAULT_RESULTS = 8
_COST_PER_SEARCH = 0.01


class WebSearchTool(BaseTool):
    """Search the web for recent information.

    Example:
        >>> tool = WebSearchTool(client, api_key="...")
        >>> result = await tool.execute({"query": "vector database benchmarks"})
        >>> result.data["results"][0]["url"]
    """

    name = "web_search"
    description = (
        "Search the web for the latest information. Always use this to verify "
        "technology recommendations are current."
    )
    parameters = [
        ToolParameter(
            name="query",
            type="string",
            description="Search query - be specific about what you need to find",
            required=True,
        ),
        ToolParameter(
            name="numResults",
            type="number",
            description="Number of results to return (1-20)",
            default=_DEFAULT_RESULTS,
        ),
    ]

    def __init__(self, client: httpx.AsyncClient, api_key: str) -> None:
        """Initialize the web search tool.

        Args:
            client: httpx client whose base URL points at the Exa API
            api_key: Exa API key
        """
        self._client = client
        self._api_key = api_key

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        error = self.validate(params)
        if error:
            return ToolResult.failure(error, _SOURCE)

        query = params["query"]
        num_results = max(1, min(int(params["numResults"]), _MAX_RESULTS))
        start = time.perf_counter()

        try:
            response = await self._client.post(
                "/search",
                json={
                    "query": query,
                    "type": "neural",
                    "useAutoprompt": True,
                    "numResults": num_results,
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Web search failed: status=%d", e.response.status_code)
            return ToolResult.failure(
                f"Exa API error: {e.response.status_code}", _SOURCE, _elapsed_ms(start)
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Web search failed: %s", e)
            return ToolResult.failure(f"Search failed: {e}", _SOURCE, _elapsed_ms(start))

        payload = self.require_object(payload)

        results = [
            {
                "title": item.get("title"),
                "url": item.get("url"),
                "snippet": item.get("text") or item.get("snippet"),
                "publishedDate": item.get("publishedDate"),
            }
            for item in payload.get("results") or []
        ]

        return ToolResult(
            success=True,
            data={"results": results, "query": query, "totalResults": len(results)},
            metadata=ToolMetadata(
                duration=_elapsed_ms(start), cost=_COST_PER_SEARCH, source=_SOURCE
            ),
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000

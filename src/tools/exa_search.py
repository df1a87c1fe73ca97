"""Exa Neural Search Tool.

Semantic search tuned for technical queries and research papers. Unlike
``web_search`` it exposes Exa's search type, category and date filters and
returns page text (truncated) for the agent to read.
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
_TEXT_PREVIEW_CHARS = 1000
_SEARCH_TYPES = ("neural", "keyword", "auto")


class ExaSearchTool(BaseTool):
    """Advanced neural search via the Exa API (``x-api-key`` auth)."""

    name = "exa_search"
    description = (
        "Advanced AI-powered web search using Exa neural search. Better than "
        "traditional search for technical queries, research, and emerging technology."
    )
    parameters = [
        ToolParameter(
            name="query",
            type="string",
            description="Search query (will be enhanced by AI)",
            required=True,
        ),
        ToolParameter(
            name="numResults",
            type="number",
            description="Number of results (max 20)",
            default=8,
        ),
        ToolParameter(
            name="searchType",
            type="string",
            description='"neural" (semantic), "keyword" (exact), or "auto"',
            default="auto",
        ),
        ToolParameter(
            name="category",
            type="string",
            description='"company", "research paper", "news", "github", or empty for all',
        ),
        ToolParameter(
            name="includeText",
            type="boolean",
            description="Include page text in results",
            default=True,
        ),
        ToolParameter(
            name="startPublishedDate",
            type="string",
            description="Only content published after this date (YYYY-MM-DD)",
        ),
    ]

    def __init__(self, client: httpx.AsyncClient, api_key: str) -> None:
        self._client = client
        self._api_key = api_key

    def _build_body(self, params: dict[str, Any]) -> dict[str, Any]:
        search_type = params["searchType"] if params["searchType"] in _SEARCH_TYPES else "auto"
        body: dict[str, Any] = {
            "query": params["query"],
            "numResults": max(1, min(int(params["numResults"]), _MAX_RESULTS)),
            "type": search_type,
            "useAutoprompt": True,
            "contents": {"text": bool(params["includeText"])},
        }
        if params.get("category"):
            body["category"] = params["category"]
        if params.get("startPublishedDate"):
            body["startPublishedDate"] = params["startPublishedDate"]
        return body

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        error = self.validate(params)
        if error:
            return ToolResult.failure(error, _SOURCE)

        body = self._build_body(params)
        start = time.perf_counter()
        logger.debug("Exa search: %r (%s)", body["query"], body["type"])

        try:
            response = await self._client.post(
                "/search",
                json=body,
                headers={"x-api-key": self._api_key},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            return ToolResult.failure(
                f"Exa API error ({e.response.status_code}): {e.response.text[:200]}",
                _SOURCE,
                (time.perf_counter() - start) * 1000,
            )
        except (httpx.HTTPError, ValueError) as e:
            return ToolResult.failure(
                f"Exa search failed: {e}", _SOURCE, (time.perf_counter() - start) * 1000
            )

        payload = self.require_object(payload)

        results = []
        for rank, item in enumerate(payload.get("results") or [], start=1):
            text = item.get("text")
            if text and len(text) > _TEXT_PREVIEW_CHARS:
                text = text[:_TEXT_PREVIEW_CHARS] + "..."
            results.append(
                {
                    "rank": rank,
                    "title": item.get("title"),
                    "url": item.get("url"),
                    "publishedDate": item.get("publishedDate"),
                    "author": item.get("author"),
                    "text": text,
                }
            )

        data: dict[str, Any] = {
            "query": body["query"],
            "resultsCount": len(results),
            "results": results,
        }
        if not results:
            data["message"] = "No results found. Try a different query or broader search terms."

        return ToolResult(
            success=True,
            data=data,
            metadata=ToolMetadata(
                duration=(time.perf_counter() - start) * 1000, cost=0.01, source=_SOURCE
            ),
        )

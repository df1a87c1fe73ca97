"""GitHub Repository Search Tool.

Finds open-source projects and libraries relevant to a research question.
Works without a token at the unauthenticated rate limit.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.tools.base import BaseTool, ToolMetadata, ToolParameter, ToolResult


logger = logging.getLogger(__name__)

_SOURCE = "github_api"
_SORT_OPTIONS = ("stars", "updated", "forks")
_MAX_LIMIT = 30


class GitHubSearchTool(BaseTool):
    """Search GitHub repositories; archived repositories are filtered out."""

    name = "github_search"
    description = (
        "Search GitHub for relevant open-source projects, libraries, and frameworks. "
        "Useful for finding implementation examples."
    )
    parameters = [
        ToolParameter(
            name="query",
            type="string",
            description='Search query (e.g. "fastapi auth language:python")',
            required=True,
        ),
        ToolParameter(
            name="sort",
            type="string",
            description="Sort by: stars, updated, forks",
            default="stars",
        ),
        ToolParameter(
            name="limit",
            type="number",
            description="Maximum repositories to return",
            default=10,
        ),
    ]

    def __init__(self, client: httpx.AsyncClient, token: str | None = None) -> None:
        self._client = client
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "spec-agents",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        error = self.validate(params)
        if error:
            return ToolResult.failure(error, _SOURCE)

        sort = params["sort"] if params["sort"] in _SORT_OPTIONS else "stars"
        limit = max(1, min(int(params["limit"]), _MAX_LIMIT))
        start = time.perf_counter()

        try:
            response = await self._client.get(
                "/search/repositories",
                params={"q": params["query"], "sort": sort, "per_page": limit},
                headers=self._headers(),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("GitHub search failed: status=%d", e.response.status_code)
            return ToolResult.failure(
                f"GitHub API error: {e.response.status_code}",
                _SOURCE,
                (time.perf_counter() - start) * 1000,
            )
        except (httpx.HTTPError, ValueError) as e:
            return ToolResult.failure(
                f"GitHub search failed: {e}", _SOURCE, (time.perf_counter() - start) * 1000
            )

        payload = self.require_object(payload)

        repositories = [
            {
                "name": repo.get("full_name"),
                "description": repo.get("description") or "No description",
                "stars": repo.get("stargazers_count", 0),
                "url": repo.get("html_url"),
                "language": repo.get("language"),
                "lastUpdated": repo.get("updated_at"),
                "topics": repo.get("topics") or [],
            }
            for repo in payload.get("items") or []
            if not repo.get("archived")
        ]

        return ToolResult(
            success=True,
            data={
                "repositories": repositories,
                "totalCount": payload.get("total_count", len(repositories)),
                "query": params["query"],
            },
            metadata=ToolMetadata(
                duration=(time.perf_counter() - start) * 1000, cost=0.0, source=_SOURCE
            ),
        )

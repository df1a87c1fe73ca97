"""npm Registry Search Tool.

Looks up JavaScript packages and their current versions. The public
registry search endpoint needs no credentials.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.tools.base import BaseTool, ToolMetadata, ToolParameter, ToolResult


logger = logging.getLogger(__name__)

_SOURCE = "npm_registry"
_MAX_SIZE = 20


class NpmSearchTool(BaseTool):
    """Search the npm registry; packages come back best score first."""

    name = "npm_search"
    description = (
        "Search the npm registry for packages. "
        "Use this to find the latest versions of libraries and frameworks."
    )
    parameters = [
        ToolParameter(
            name="query",
            type="string",
            description='Package name or search query (e.g. "react", "authentication library")',
            required=True,
        ),
        ToolParameter(
            name="size",
            type="number",
            description="Number of results to return (1-20)",
            default=10,
        ),
    ]

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        error = self.validate(params)
        if error:
            return ToolResult.failure(error, _SOURCE)

        size = max(1, min(int(params["size"]), _MAX_SIZE))
        start = time.perf_counter()

        try:
            response = await self._client.get(
                "/-/v1/search",
                params={"text": params["query"], "size": size},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("npm search failed: status=%d", e.response.status_code)
            return ToolResult.failure(
                f"npm API error: {e.response.status_code}",
                _SOURCE,
                (time.perf_counter() - start) * 1000,
            )
        except (httpx.HTTPError, ValueError) as e:
            return ToolResult.failure(
                f"npm search failed: {e}", _SOURCE, (time.perf_counter() - start) * 1000
            )

        payload = self.require_object(payload)

        packages = [_package(item) for item in payload.get("objects") or [] if item.get("package")]
        packages.sort(key=lambda p: p["score"], reverse=True)

        return ToolResult(
            success=True,
            data={
                "packages": packages,
                "totalCount": payload.get("total", len(packages)),
                "query": params["query"],
            },
            metadata=ToolMetadata(
                duration=(time.perf_counter() - start) * 1000, cost=0.0, source=_SOURCE
            ),
        )


def _package(item: dict[str, Any]) -> dict[str, Any]:
    pkg = item["package"]
    score = item.get("score") or {}
    detail = score.get("detail") or {}
    author = (pkg.get("author") or {}).get("name") or (pkg.get("publisher") or {}).get("username")
    return {
        "name": pkg.get("name"),
        "description": pkg.get("description") or "No description",
        "version": pkg.get("version"),
        "author": author or "Unknown",
        "keywords": pkg.get("keywords") or [],
        "npmUrl": f"https://www.npmjs.com/package/{pkg.get('name')}",
        "repository": (pkg.get("links") or {}).get("repository"),
        "popularity": detail.get("popularity", 0),
        "quality": detail.get("quality", 0),
        "maintenance": detail.get("maintenance", 0),
        "score": score.get("final", 0),
    }

"""StackOverflow Search Tool.

Finds technical solutions, error explanations and best practices through
the StackExchange API. Basic searches need no key.
"""

from __future__ import annotations

import html
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from src.tools.base import BaseTool, ToolMetadata, ToolParameter, ToolResult


logger = logging.getLogger(__name__)

_SOURCE = "stackexchange_api"
_SORT_OPTIONS = ("relevance", "votes", "activity", "creation")
_PAGE_SIZE = 10
_MAX_RESULTS = 5
_EXCERPT_CHARS = 300
_HIGH_SCORE = 10

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def clean_html(text: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    return _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub("", text))).strip()


def recommendations_for(results: list[dict[str, Any]]) -> list[str]:
    """Reading hints derived from answer state and vote counts."""
    accepted = sum(1 for r in results if r["accepted"])
    high_score = sum(1 for r in results if r["score"] > _HIGH_SCORE)
    answered = sum(1 for r in results if r["isAnswered"])

    hints: list[str] = []
    if accepted:
        hints.append(f"Found {accepted} question(s) with accepted answers - check these first")
    if high_score:
        hints.append(f"{high_score} highly-voted solutions (score > {_HIGH_SCORE})")
    if not answered:
        hints.append("No answered questions found - this may be a very specific or new issue")

    average = sum(r["score"] for r in results) / len(results)
    if average > 20:
        hints.append("High average score - well-known problem with established solutions")
    elif average < 5:
        hints.append("Low engagement - consider alternative search terms or approaches")

    hints.append("Read multiple answers to understand different approaches")
    return hints


class StackOverflowSearchTool(BaseTool):
    """Search StackOverflow questions, highest voted first by default."""

    name = "stackoverflow_search"
    description = (
        "Search StackOverflow for technical solutions, error messages, "
        "code examples, and best practices."
    )
    parameters = [
        ToolParameter(
            name="query",
            type="string",
            description="Error message, technical question, or technology",
            required=True,
        ),
        ToolParameter(
            name="tags",
            type="string",
            description='Filter by tags separated by semicolons (e.g. "python;fastapi")',
        ),
        ToolParameter(
            name="sort",
            type="string",
            description="Sort by: relevance, votes, activity, creation",
            default="votes",
        ),
    ]

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        error = self.validate(params)
        if error:
            return ToolResult.failure(error, _SOURCE)

        query = params["query"]
        sort = params["sort"] if params["sort"] in _SORT_OPTIONS else "votes"
        request_params: dict[str, Any] = {
            "order": "desc",
            "sort": sort,
            "q": query,
            "site": "stackoverflow",
            "pagesize": _PAGE_SIZE,
            "filter": "withbody",
        }
        if params.get("tags"):
            request_params["tagged"] = params["tags"]
        start = time.perf_counter()

        try:
            response = await self._client.get(
                "/search/advanced",
                params=request_params,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("StackOverflow search failed: status=%d", e.response.status_code)
            return ToolResult.failure(
                f"StackOverflow API error: {e.response.status_code}",
                _SOURCE,
                (time.perf_counter() - start) * 1000,
            )
        except (httpx.HTTPError, ValueError) as e:
            return ToolResult.failure(
                f"StackOverflow search failed: {e}",
                _SOURCE,
                (time.perf_counter() - start) * 1000,
            )

        payload = self.require_object(payload)
        metadata = ToolMetadata(
            duration=(time.perf_counter() - start) * 1000, cost=0.0, source=_SOURCE
        )

        items = payload.get("items") or []
        if not items:
            return ToolResult(
                success=True,
                data={
                    "query": query,
                    "resultsCount": 0,
                    "message": "No results found. Try different keywords or broader search terms.",
                    "results": [],
                },
                metadata=metadata,
            )

        results = [_question(item) for item in items[:_MAX_RESULTS]]
        return ToolResult(
            success=True,
            data={
                "query": query,
                "resultsCount": len(results),
                "results": results,
                "recommendations": recommendations_for(results),
                "topAnswer": next(
                    (r for r in results if r["accepted"] and r["score"] > _HIGH_SCORE), None
                ),
                "searchUrl": str(
                    httpx.URL("https://stackoverflow.com/search", params={"q": query})
                ),
            },
            metadata=metadata,
        )


def _question(item: dict[str, Any]) -> dict[str, Any]:
    created = item.get("creation_date")
    return {
        "title": html.unescape(item.get("title") or ""),
        "link": item.get("link"),
        "score": item.get("score", 0),
        "answerCount": item.get("answer_count", 0),
        "isAnswered": bool(item.get("is_answered")),
        "viewCount": item.get("view_count", 0),
        "creationDate": (
            datetime.fromtimestamp(created, tz=timezone.utc).date().isoformat()
            if isinstance(created, (int, float)) else None
        ),
        "tags": item.get("tags") or [],
        "excerpt": clean_html(item.get("body") or "")[:_EXCERPT_CHARS] + "...",
        "accepted": bool(item.get("accepted_answer_id")),
    }

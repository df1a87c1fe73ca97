"""Prompt service: cached template lookup, rendering, and usage tracking.

Templates use jinja2 ``{{ var }}`` placeholders. Missing variables render as
empty strings and are reported with a warning rather than failing the stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from jinja2 import Environment, TemplateSyntaxError, meta

from src.core.exceptions import PromptNotFoundError
from src.prompts.cache import PromptCache
from src.prompts.store import PromptTemplate, TemplateSource


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TemplateUsage:
    """Aggregated usage metrics for one template."""

    uses: int = 0
    total_cost_cents: float = 0.0
    total_latency_ms: float = 0.0
    last_model: str | None = None


class PromptService:
    """Read-through cached access to prompt templates.

    The mutation surface is ``get`` (fills the cache), ``invalidate`` and
    ``clear``. The cache and the source are both swappable.

    Example:
        >>> service = PromptService(YamlTemplateSource(path))
        >>> text = service.render("voting_stage", {"syntheses_summary": "..."})
    """

    def __init__(
        self,
        source: TemplateSource,
        cache: PromptCache[PromptTemplate] | None = None,
    ) -> None:
        self._source = source
        self._cache: PromptCache[PromptTemplate] = cache if cache is not None else PromptCache()
        self._env = Environment(autoescape=False, keep_trailing_newline=False)
        self._usage: dict[str, TemplateUsage] = {}

    @property
    def cache(self) -> PromptCache[PromptTemplate]:
        return self._cache

    def get(self, name: str) -> PromptTemplate:
        """Return a template, loading it from the source on cache miss.

        Raises:
            PromptNotFoundError: The source has no template with this name
        """
        template = self._cache.get(name)
        if template is not None:
            return template

        template = self._source.load(name)
        if template is None:
            raise PromptNotFoundError(name)

        self._cache.set(name, template)
        return template

    def render(self, name: str, variables: dict[str, Any] | None = None) -> str:
        """Render a template with ``variables``.

        Raises:
            PromptNotFoundError: The template does not exist
            jinja2.TemplateSyntaxError: The template body is malformed
        """
        variables = variables or {}
        template = self.get(name)

        try:
            parsed = self._env.parse(template.content)
        except TemplateSyntaxError:
            logger.error("Prompt template %s has a syntax error", name)
            raise

        unresolved = sorted(meta.find_undeclared_variables(parsed) - set(variables))
        if unresolved:
            logger.warning("Unresolved placeholders in %s: %s", name, ", ".join(unresolved))

        return self._env.from_string(template.content).render(**variables).strip()

    def invalidate(self, name: str) -> None:
        self._cache.invalidate(name)

    def clear(self) -> None:
        self._cache.clear()

    def track_usage(self, name: str, metrics: dict[str, Any]) -> None:
        """Record usage metrics for a template. Never raises."""
        try:
            usage = self._usage.setdefault(name, TemplateUsage())
            usage.uses += 1
            usage.total_cost_cents += float(metrics.get("cost_cents", 0) or 0)
            usage.total_latency_ms += float(metrics.get("latency_ms", 0) or 0)
            usage.last_model = metrics.get("model_used", usage.last_model)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to track usage for %s: %s", name, e)

    def usage(self, name: str) -> TemplateUsage | None:
        return self._usage.get(name)

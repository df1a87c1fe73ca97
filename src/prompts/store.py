"""Prompt template sources.

A source loads a named template. Two implementations:
    - YamlTemplateSource: templates packaged in a YAML file
    - InMemoryTemplateSource: dict-backed, for tests and overrides
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class PromptTemplate(BaseModel):
    """A named prompt template.

    Attributes:
        name: Template key (e.g. "synthesis_stage")
        content: Template body using {{ var }} placeholders
        category: Grouping (question, agent, challenge, debate, spec, review)
        metadata: Free-form settings (recommended model, temperature)
    """

    name: str = Field(..., description="Template key")
    content: str = Field(..., description="Template body")
    category: str = Field(default="general", description="Template category")
    version: int = Field(default=1, ge=1, description="Template version")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Template metadata")


@runtime_checkable
class TemplateSource(Protocol):
    """Anything that can load a template by name."""

    def load(self, name: str) -> PromptTemplate | None:
        ...


class InMemoryTemplateSource:
    """Dict-backed template source."""

    def __init__(self, templates: dict[str, str | PromptTemplate] | None = None) -> None:
        self._templates: dict[str, PromptTemplate] = {}
        for name, value in (templates or {}).items():
            self.add(name, value)
        self.load_count = 0

    def add(self, name: str, value: str | PromptTemplate) -> None:
        if isinstance(value, str):
            value = PromptTemplate(name=name, content=value)
        self._templates[name] = value

    def load(self, name: str) -> PromptTemplate | None:
        self.load_count += 1
        return self._templates.get(name)


class YamlTemplateSource:
    """Template source reading a YAML mapping of ``name -> {content, category, metadata}``.

    The file is read once on first load; call ``reload()`` to pick up edits.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._templates: dict[str, PromptTemplate] | None = None

    def _read(self) -> dict[str, PromptTemplate]:
        if not self._path.exists():
            logger.warning("Prompt template file not found at %s", self._path)
            return {}

        with open(self._path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        templates: dict[str, PromptTemplate] = {}
        for name, entry in raw.get("templates", {}).items():
            if isinstance(entry, str):
                entry = {"content": entry}
            templates[name] = PromptTemplate(name=name, **entry)

        logger.info("Loaded %d prompt templates from %s", len(templates), self._path)
        return templates

    def reload(self) -> None:
        self._templates = None

    def load(self, name: str) -> PromptTemplate | None:
        if self._templates is None:
            self._templates = self._read()
        return self._templates.get(name)

"""Prompt templates: YAML-backed store, TTL cache, and rendering service.

Exports:
    - PromptService: Cached lookup, jinja2 rendering, usage tracking
    - PromptCache: TTL cache used by the service
    - PromptTemplate, TemplateSource: Template model and source protocol
    - YamlTemplateSource, InMemoryTemplateSource: Source implementations
"""

from src.prompts.cache import DEFAULT_TTL_SECONDS, PromptCache
from src.prompts.service import PromptService, TemplateUsage
from src.prompts.store import (
    InMemoryTemplateSource,
    PromptTemplate,
    TemplateSource,
    YamlTemplateSource,
)


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "InMemoryTemplateSource",
    "PromptCache",
    "PromptService",
    "PromptTemplate",
    "TemplateSource",
    "TemplateUsage",
    "YamlTemplateSource",
]

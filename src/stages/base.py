"""Stage request, dependencies, and handler contract.

Every stage is an async function:

    async def handle(request: StageRequest, deps: StageDependencies) -> dict

Handlers read the caller-held ``roundData``, run their model and tool
calls, and return a camelCase JSON-ready dict the caller folds back in.
Missing inputs raise AgentValidationError (HTTP 400).
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import Field

from src.clients.model_client import ModelClientProtocol
from src.core.config import Settings
from src.core.exceptions import AgentValidationError
from src.core.retry import RetryConfig
from src.prompts.service import PromptService
from src.research.depth import ResearchDepth
from src.research.models import AgentConfig, RoundData, WireModel
from src.research.stream import StreamEmitter
from src.tools.registry import ToolRegistry


class StageName(str, Enum):
    QUESTIONS = "questions"
    RESEARCH = "research"
    CHALLENGE = "challenge"
    SYNTHESIS = "synthesis"
    REVIEW = "review"
    VOTING = "voting"
    SPEC = "spec"
    CHAT = "chat"


class StageRequest(WireModel):
    """Body of ``POST /v1/pipeline/run``."""

    stage: StageName
    user_input: str | None = Field(default=None, max_length=5000)
    user_comment: str | None = Field(default=None, max_length=1000)
    agent_configs: list[AgentConfig] | None = None
    round_data: RoundData = Field(default_factory=RoundData)
    target_agent: str | None = None
    depth: ResearchDepth | None = None
    session_id: str | None = Field(default=None, max_length=200)
    escalate: bool = False


@dataclass(slots=True)
class StageDependencies:
    """Collaborators shared by all stage handlers."""

    client: ModelClientProtocol
    tools: ToolRegistry
    prompts: PromptService
    settings: Settings
    rng: random.Random = field(default_factory=random.Random)
    emitter: StreamEmitter = field(default_factory=StreamEmitter)

    def retry(self, max_attempts: int | None = None) -> RetryConfig:
        """Retry policy from settings, optionally with a stage-specific attempt count."""
        return RetryConfig(
            max_attempts=max_attempts or self.settings.retry_max_attempts,
            base_delay=self.settings.retry_base_delay_seconds,
            max_delay=self.settings.retry_max_delay_seconds,
        )


StageHandler = Callable[[StageRequest, StageDependencies], Awaitable[dict[str, Any]]]


def require(value: Any, message: str, field_name: str) -> Any:
    """Return ``value`` or raise AgentValidationError when it is empty."""
    if not value:
        raise AgentValidationError(message, field=field_name)
    return value


def enabled_configs(request: StageRequest) -> list[AgentConfig]:
    configs = require(
        request.agent_configs, "Agent configurations required", "agentConfigs"
    )
    return [c for c in configs if c.enabled]

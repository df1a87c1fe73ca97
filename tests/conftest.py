"""Test configuration and shared fixtures.

Pattern: Pytest fixtures, conftest.py
"""

import random
from collections.abc import Callable

import pytest

from src.clients.model_client import ModelClientProtocol
from src.core.config import DEFAULT_TEMPLATES_PATH, Settings
from src.core.retry import RetryConfig
from src.prompts import PromptCache, PromptService, YamlTemplateSource
from src.research.models import (
    AgentConfig,
    AgentResearchResult,
    Domain,
    ExpertSynthesis,
    ResearchQuality,
    ResearchQuestion,
    ToolUsage,
)
from src.research.stream import StreamEmitter
from src.stages.base import StageDependencies
from src.tools.registry import ToolRegistry
from tests.fakes.fake_clients import FakeTool


_TEST_TOKEN = "test-token"
_TEST_USER = "user-1"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with a provider key and zero retry delays."""
    return Settings(
        _env_file=None,
        openrouter_api_key="test-openrouter-key",
        groq_api_key=None,
        exa_api_key=None,
        retry_max_attempts=2,
        retry_base_delay_seconds=0.0,
        retry_max_delay_seconds=0.0,
        require_auth=True,
        auth_tokens={_TEST_TOKEN: _TEST_USER},
        log_level="DEBUG",
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {_TEST_TOKEN}"}


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=2, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def prompt_service() -> PromptService:
    """Prompt service backed by the packaged templates."""
    return PromptService(YamlTemplateSource(DEFAULT_TEMPLATES_PATH), PromptCache())


@pytest.fixture
def tool_registry() -> ToolRegistry:
    return ToolRegistry([
        FakeTool("web_search", data={"results": [{"url": "https://example.com"}]}),
        FakeTool("github_search", data={"repositories": []}),
    ])


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def agent_configs() -> list[AgentConfig]:
    """The full seven-expert panel, all enabled."""
    names = {
        "elon": "Elon",
        "steve": "Steve",
        "oprah": "Oprah",
        "zaha": "Zaha",
        "jony": "Jony",
        "bartlett": "Bartlett",
        "amal": "Amal",
    }
    return [
        AgentConfig(
            id=expert_id,
            agent=name,
            system_prompt=f"You are {name}, a thoughtful domain expert.",
            temperature=0.7,
            enabled=True,
        )
        for expert_id, name in names.items()
    ]


@pytest.fixture
def sample_questions() -> list[ResearchQuestion]:
    return [
        ResearchQuestion(
            id="q1",
            question="What architecture fits a habit tracker?",
            domain=Domain.TECHNICAL,
            priority=9,
            required_expertise=["elon"],
        ),
        ResearchQuestion(
            id="q2",
            question="What onboarding flow keeps users engaged?",
            domain=Domain.DESIGN,
            priority=6,
            required_expertise=["steve"],
        ),
        ResearchQuestion(
            id="q3",
            question="How should the app be priced?",
            domain=Domain.MARKET,
            priority=5,
        ),
    ]


@pytest.fixture
def research_results() -> list[AgentResearchResult]:
    return [
        AgentResearchResult(
            expert_id="elon",
            expert_name="Elon",
            findings="Use Postgres and a Python API. Source: https://example.com/arch",
            confidence=80,
            tools_used=[
                ToolUsage(tool="web_search", success=True, duration=12.0),
                ToolUsage(tool="github_search", success=True, duration=8.0),
            ],
            duration=1500.0,
            model="gpt-5.2-codex",
            cost=0.02,
            tokens_used=1200,
            iterations_used=3,
        ),
        AgentResearchResult(
            expert_id="steve",
            expert_name="Steve",
            findings="Keep onboarding to three screens.",
            confidence=70,
            tools_used=[],
            duration=900.0,
            model="claude-opus-4.5",
            cost=0.03,
            tokens_used=900,
            iterations_used=2,
        ),
    ]


@pytest.fixture
def syntheses() -> list[ExpertSynthesis]:
    return [
        ExpertSynthesis(
            expert_id="elon",
            expert_name="Elon",
            synthesis="Build on Postgres [1]. See https://example.com/arch",
            research_quality=ResearchQuality(tools_used=2, battle_tested=True),
        ),
        ExpertSynthesis(
            expert_id="steve",
            expert_name="Steve",
            synthesis="Simplicity wins. Ship a three-screen onboarding.",
            research_quality=ResearchQuality(tools_used=0),
        ),
    ]


@pytest.fixture
def make_deps(
    test_settings: Settings,
    prompt_service: PromptService,
    tool_registry: ToolRegistry,
) -> Callable[..., StageDependencies]:
    """Build StageDependencies around a given (fake) model client."""

    def _make(
        client: ModelClientProtocol,
        *,
        tools: ToolRegistry | None = None,
        emitter: StreamEmitter | None = None,
    ) -> StageDependencies:
        return StageDependencies(
            client=client,
            tools=tools if tools is not None else tool_registry,
            prompts=prompt_service,
            settings=test_settings,
            rng=random.Random(7),
            emitter=emitter or StreamEmitter(),
        )

    return _make

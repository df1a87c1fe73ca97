"""Unit tests for sub-agent spawning."""

import json

import pytest

from src.core.retry import RetryConfig
from src.prompts import PromptService
from src.research.sub_agents import SubAgentRequest, SubAgentResult, SubAgentSpawner
from src.tools.registry import ToolRegistry
from tests.fakes.fake_clients import FakeModelClient


def _request(**overrides: object) -> SubAgentRequest:
    values: dict[str, object] = {
        "parent_agent_id": "elon",
        "parent_agent_name": "Elon",
        "specialization": "Pricing",
        "research_goal": "Compare subscription tiers",
    }
    values.update(overrides)
    return SubAgentRequest(**values)  # type: ignore[arg-type]


class TestSpawn:
    """Tests for a single sub-agent run."""

    @pytest.mark.asyncio
    async def test_structured_completion(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(responses=[
            json.dumps({"complete": True, "findings": "Tiered pricing.", "confidence": 82})
        ])
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request())

        assert result.findings == "Tiered pricing."
        assert result.confidence == 82
        assert result.iterations == 1
        assert result.sub_agent_id.startswith("sub-elon-")
        assert client.call_history[0]["model"] == "claude-sonnet-4.5"

    @pytest.mark.asyncio
    async def test_raw_completion_confidence(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(responses=['Done: "complete": true, go freemium'])
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request())

        assert result.confidence == 70
        assert result.findings == "Done: go freemium"

    @pytest.mark.asyncio
    async def test_max_iterations(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(default="Thinking.")
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request(max_iterations=2))

        assert result.confidence == 50
        assert result.iterations == 2
        assert result.findings.startswith("Research incomplete after 2 iterations")

    @pytest.mark.asyncio
    async def test_iterations_capped_at_five(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(default="Thinking.")
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request(max_iterations=12))

        assert len(client.call_history) == 5
        assert result.iterations == 5

    @pytest.mark.asyncio
    async def test_failure_never_raises(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(default="x", error_on={"claude-sonnet-4.5": RuntimeError("down")})
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request())

        assert result.confidence == 0
        assert result.findings == "Sub-agent research failed: down"

    @pytest.mark.asyncio
    async def test_tools_restricted_to_needed(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(responses=[
            json.dumps({"tool": "github_search", "params": {"query": "billing"}}),
            json.dumps({"complete": True, "findings": "ok"}),
        ])
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        result = await spawner.spawn(_request(tools_needed=["web_search"]))

        system_prompt = client.call_history[0]["messages"][0]["content"]
        assert "github_search" not in system_prompt
        assert result.tools_used[0].tool == "github_search"
        assert not result.tools_used[0].success
        assert result.confidence == 75


class TestSpawnMany:
    """Tests for concurrent spawning and folding."""

    @pytest.mark.asyncio
    async def test_one_result_per_request(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
        fast_retry: RetryConfig,
    ) -> None:
        client = FakeModelClient(default=json.dumps({"complete": True, "findings": "ok"}))
        spawner = SubAgentSpawner(client, tool_registry, prompt_service, retry=fast_retry)

        results = await spawner.spawn_many([
            _request(specialization="Pricing"),
            _request(specialization="Retention"),
        ])

        assert [r.specialization for r in results] == ["Pricing", "Retention"]

    @pytest.mark.asyncio
    async def test_empty(
        self,
        tool_registry: ToolRegistry,
        prompt_service: PromptService,
    ) -> None:
        spawner = SubAgentSpawner(FakeModelClient(), tool_registry, prompt_service)

        assert await spawner.spawn_many([]) == []


def test_fold_sub_agent_results() -> None:
    from src.research.models import ToolUsage
    from src.research.sub_agents import fold_sub_agent_results

    fold = fold_sub_agent_results([
        SubAgentResult(
            sub_agent_id="a",
            specialization="Pricing",
            findings="Freemium.",
            confidence=80,
            tools_used=[ToolUsage(tool="web_search", success=True)],
            cost=0.01,
            tokens_used=100,
        ),
        SubAgentResult(
            sub_agent_id="b",
            specialization="Retention",
            findings="Streaks.",
            confidence=70,
            cost=0.02,
            tokens_used=50,
        ),
    ])

    assert fold.count == 2
    assert fold.cost == pytest.approx(0.03)
    assert fold.tokens == 150
    assert len(fold.tool_usages) == 1
    assert fold.findings_text == (
        "[Sub-Agent Findings: Pricing]\nFreemium.\n\n[Sub-Agent Findings: Retention]\nStreaks."
    )

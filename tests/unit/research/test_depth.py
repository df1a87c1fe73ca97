"""Unit tests for research depth presets."""

import pytest

from src.research.models import AgentConfig
from src.tools.registry import ToolRegistry
from tests.fakes.fake_clients import FakeTool


class TestDepthConfig:
    """Tests for preset values."""

    @pytest.mark.parametrize(
        ("depth", "iterations", "agents", "sub_agents", "questions"),
        [
            ("quick", 3, 3, False, 4),
            ("standard", 6, 5, False, 7),
            ("deep", 10, 7, True, 10),
            ("exhaustive", 15, 7, True, 12),
        ],
    )
    def test_presets(
        self, depth: str, iterations: int, agents: int, sub_agents: bool, questions: int
    ) -> None:
        from src.research.depth import get_depth_config

        config = get_depth_config(depth)

        assert config.max_iterations == iterations
        assert config.max_agents == agents
        assert config.enable_sub_agents is sub_agents
        assert config.question_count == questions

    def test_unknown_depth_rejected(self) -> None:
        from src.research.depth import get_depth_config

        with pytest.raises(ValueError):
            get_depth_config("bottomless")


class TestRecommendDepth:
    """Tests for input-driven depth suggestion."""

    def test_short_input_is_quick(self) -> None:
        from src.research.depth import ResearchDepth, recommend_depth

        assert recommend_depth("A habit tracker") is ResearchDepth.QUICK

    def test_complexity_keyword_is_deep(self) -> None:
        from src.research.depth import ResearchDepth, recommend_depth

        assert recommend_depth("An enterprise habit tracker") is ResearchDepth.DEEP

    def test_medium_input_is_standard(self) -> None:
        from src.research.depth import ResearchDepth, recommend_depth

        assert recommend_depth("a habit tracker " * 10) is ResearchDepth.STANDARD

    def test_long_complex_input_is_exhaustive(self) -> None:
        from src.research.depth import ResearchDepth, recommend_depth

        text = "A distributed system with compliance needs. " + "More detail. " * 50

        assert recommend_depth(text) is ResearchDepth.EXHAUSTIVE


class TestDepthFilters:
    """Tests for agent and tool filtering."""

    def test_quick_keeps_top_three_agents(self, agent_configs: list[AgentConfig]) -> None:
        from src.research.depth import filter_agents_for_depth

        kept = filter_agents_for_depth(agent_configs, "quick")

        assert [c.resolved_id for c in kept] == ["elon", "steve", "bartlett"]

    def test_disabled_agents_dropped(self, agent_configs: list[AgentConfig]) -> None:
        from src.research.depth import filter_agents_for_depth

        configs = [c.model_copy(update={"enabled": c.resolved_id != "elon"}) for c in agent_configs]

        kept = filter_agents_for_depth(configs, "quick")

        assert [c.resolved_id for c in kept] == ["steve", "bartlett", "jony"]

    def test_unknown_agents_rank_last(self, agent_configs: list[AgentConfig]) -> None:
        from src.research.depth import filter_agents_for_depth

        guest = AgentConfig(agent="Guest", system_prompt="p")

        kept = filter_agents_for_depth([guest, *agent_configs[:3]], "deep")

        assert kept[-1].resolved_id == "guest"

    def test_quick_restricts_tools(self) -> None:
        from src.research.depth import tools_for_depth

        registry = ToolRegistry([FakeTool("web_search"), FakeTool("github_search")])

        assert tools_for_depth(registry, "quick").names() == ["web_search"]
        assert tools_for_depth(registry, "standard") is registry

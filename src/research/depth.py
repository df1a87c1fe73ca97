"""Research depth presets.

Depth trades cost and latency for thoroughness: it caps agent iterations,
the number of experts, sub-agent spawning, the tool set, and how many
research questions are generated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.research.models import AgentConfig
from src.tools.registry import ToolRegistry


class ResearchDepth(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    DEEP = "deep"
    EXHAUSTIVE = "exhaustive"


class ToolPriority(str, Enum):
    ESSENTIAL = "essential"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class DepthConfig:
    max_iterations: int
    max_agents: int
    enable_sub_agents: bool
    question_count: int
    tool_priority: ToolPriority
    description: str


DEPTH_CONFIGS: dict[ResearchDepth, DepthConfig] = {
    ResearchDepth.QUICK: DepthConfig(
        3, 3, False, 4, ToolPriority.ESSENTIAL,
        "Fast overview with essential research. Good for early-stage ideas.",
    ),
    ResearchDepth.STANDARD: DepthConfig(
        6, 5, False, 7, ToolPriority.ALL,
        "Balanced depth and cost. Recommended for most projects.",
    ),
    ResearchDepth.DEEP: DepthConfig(
        10, 7, True, 10, ToolPriority.ALL,
        "Thorough research with sub-agents for complex projects.",
    ),
    ResearchDepth.EXHAUSTIVE: DepthConfig(
        15, 7, True, 12, ToolPriority.ALL,
        "Maximum iterations and sub-agents for critical production decisions.",
    ),
}

ESSENTIAL_TOOLS = ("web_search", "exa_search")

AGENT_PRIORITY = ("elon", "steve", "bartlett", "jony", "oprah", "zaha", "amal")

COMPLEXITY_KEYWORDS = (
    "enterprise",
    "scalable",
    "compliance",
    "security",
    "distributed",
    "real-time",
    "microservices",
    "regulatory",
)

_SHORT_INPUT_CHARS = 100
_LONG_INPUT_CHARS = 500


def get_depth_config(depth: ResearchDepth | str) -> DepthConfig:
    return DEPTH_CONFIGS[ResearchDepth(depth)]


def recommend_depth(user_input: str) -> ResearchDepth:
    """Suggest a depth from input length and complexity keywords."""
    text = user_input.lower()
    complex_terms = any(keyword in text for keyword in COMPLEXITY_KEYWORDS)
    long_input = len(user_input) > _LONG_INPUT_CHARS

    if complex_terms and long_input:
        return ResearchDepth.EXHAUSTIVE
    if complex_terms or long_input:
        return ResearchDepth.DEEP
    if len(user_input) < _SHORT_INPUT_CHARS:
        return ResearchDepth.QUICK
    return ResearchDepth.STANDARD


def filter_agents_for_depth(
    configs: list[AgentConfig],
    depth: ResearchDepth | str,
) -> list[AgentConfig]:
    """Keep at most ``max_agents`` enabled experts, in priority order."""
    config = get_depth_config(depth)
    enabled = [c for c in configs if c.enabled]

    def rank(agent: AgentConfig) -> int:
        try:
            return AGENT_PRIORITY.index(agent.resolved_id)
        except ValueError:
            return len(AGENT_PRIORITY)

    return sorted(enabled, key=rank)[: config.max_agents]


def tools_for_depth(registry: ToolRegistry, depth: ResearchDepth | str) -> ToolRegistry:
    """Restrict the registry to the tools a depth allows."""
    if get_depth_config(depth).tool_priority is ToolPriority.ESSENTIAL:
        return registry.subset(ESSENTIAL_TOOLS)
    return registry

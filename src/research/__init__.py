"""Research pipeline: questions, expert assignment, and parallel agent loops.

Exports:
    - Entity models (ResearchQuestion, AgentResearchResult, RoundData, ...)
    - generate_questions: Product idea -> research questions
    - assign_questions_to_experts, balance_workload: Question routing
    - ResearchExecutor: Concurrent bounded agent loops
    - SubAgentSpawner: One-level delegation for focused research
    - StreamEmitter: Progress events
    - Depth presets
"""

from src.research.assignment import (
    DEFAULT_EXPERT_MODEL,
    DOMAIN_EXPERTISE,
    EXPERT_MODEL_MAP,
    assign_questions_to_experts,
    balance_workload,
)
from src.research.depth import (
    DEPTH_CONFIGS,
    DepthConfig,
    ResearchDepth,
    filter_agents_for_depth,
    get_depth_config,
    recommend_depth,
    tools_for_depth,
)
from src.research.executor import ResearchContext, ResearchExecutor
from src.research.models import (
    AgentConfig,
    AgentResearchResult,
    ChallengeQuestion,
    ChallengeResponse,
    DebateResolution,
    EscalationResult,
    ExpertAssignment,
    ExpertSynthesis,
    ExpertVote,
    ResearchQuestion,
    ReviewIssue,
    ReviewResult,
    RoundData,
    ToolUsage,
)
from src.research.questions import fallback_questions, generate_questions
from src.research.stream import InMemoryEventSink, StreamEmitter
from src.research.sub_agents import (
    SubAgentRequest,
    SubAgentResult,
    SubAgentSpawner,
    fold_sub_agent_results,
)


__all__ = [
    "DEFAULT_EXPERT_MODEL",
    "DEPTH_CONFIGS",
    "DOMAIN_EXPERTISE",
    "EXPERT_MODEL_MAP",
    "AgentConfig",
    "AgentResearchResult",
    "ChallengeQuestion",
    "ChallengeResponse",
    "DebateResolution",
    "DepthConfig",
    "EscalationResult",
    "ExpertAssignment",
    "ExpertSynthesis",
    "ExpertVote",
    "InMemoryEventSink",
    "ResearchContext",
    "ResearchDepth",
    "ResearchExecutor",
    "ResearchQuestion",
    "ReviewIssue",
    "ReviewResult",
    "RoundData",
    "StreamEmitter",
    "SubAgentRequest",
    "SubAgentResult",
    "SubAgentSpawner",
    "ToolUsage",
    "assign_questions_to_experts",
    "balance_workload",
    "fallback_questions",
    "filter_agents_for_depth",
    "fold_sub_agent_results",
    "generate_questions",
    "get_depth_config",
    "recommend_depth",
    "tools_for_depth",
]

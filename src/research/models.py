"""Research pipeline entities.

Python attributes are snake_case; the wire format is camelCase. Every model
accepts either spelling on input and is dumped with ``by_alias=True``.

Entities are created fresh per request and never cached.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ExpertId = str

KNOWN_EXPERTS: tuple[ExpertId, ...] = ("elon", "steve", "oprah", "zaha", "jony", "bartlett", "amal")

_WHITESPACE = re.compile(r"\s+")


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


class WireModel(BaseModel):
    """Base for models exchanged with the caller."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# =============================================================================
# Enums
# =============================================================================

class Domain(str, Enum):
    TECHNICAL = "technical"
    DESIGN = "design"
    MARKET = "market"
    LEGAL = "legal"
    GROWTH = "growth"
    SECURITY = "security"


class ChallengeType(str, Enum):
    FEASIBILITY = "feasibility"
    RISK = "risk"
    ALTERNATIVE = "alternative"
    ASSUMPTION = "assumption"
    VISION = "vision"
    COST = "cost"


Severity = Literal["critical", "major", "minor"]
IssueCategory = Literal["accuracy", "completeness", "citation", "feasibility", "consistency"]


# =============================================================================
# Questions and assignment
# =============================================================================

class ResearchQuestion(WireModel):
    """A research question routed to one or two experts."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    domain: Domain = Domain.TECHNICAL
    priority: int = Field(default=5, ge=1, le=10)
    required_expertise: list[ExpertId] = Field(default_factory=list)


class ExpertAssignment(WireModel):
    """Questions assigned to one expert and the model that answers them."""

    expert_id: ExpertId
    expert_name: str
    questions: list[ResearchQuestion] = Field(default_factory=list)
    model: str


class AgentConfig(WireModel):
    """Caller-supplied expert persona."""

    id: str | None = None
    agent: str = Field(..., min_length=1, max_length=50)
    system_prompt: str = Field(..., min_length=1, max_length=2000)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    enabled: bool = True

    @property
    def resolved_id(self) -> ExpertId:
        """Explicit id, else the lowercased agent name with whitespace runs as ``_``."""
        if self.id:
            return self.id
        return _WHITESPACE.sub("_", self.agent.strip().lower())


# =============================================================================
# Research results
# =============================================================================

class ToolUsage(WireModel):
    """One tool call made during research; duration in milliseconds."""

    tool: str
    success: bool
    duration: float = 0.0


class AgentResearchResult(WireModel):
    """Outcome of one expert's research loop."""

    expert_id: ExpertId
    expert_name: str
    questions: list[ResearchQuestion] = Field(default_factory=list)
    findings: str
    confidence: float | None = Field(default=None, ge=0, le=100)
    tools_used: list[ToolUsage] = Field(default_factory=list)
    duration: float = 0.0
    model: str = ""
    cost: float = Field(default=0.0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    iterations_used: int = Field(default=0, ge=0)
    sub_agents_spawned: int | None = None


# =============================================================================
# Challenge and debate
# =============================================================================

class ChallengeQuestion(WireModel):
    """A contrarian question aimed at one expert's findings (or "general")."""

    id: str
    type: ChallengeType = ChallengeType.ASSUMPTION
    question: str
    target_findings: ExpertId
    challenger: ExpertId
    priority: int = Field(default=5, ge=1, le=10)


class ChallengeResponse(WireModel):
    """A challenger's argument against a finding."""

    challenge_id: str
    challenger: ExpertId
    target_findings: ExpertId
    challenge: str
    evidence_against: list[str] = Field(default_factory=list)
    alternative_approach: str | None = None
    risk_score: float = Field(default=5, ge=0, le=10)
    model: str = ""
    cost: float = 0.0


class DebateResolution(WireModel):
    """The battle-tested position for one expert's findings."""

    expert_id: ExpertId
    original_position: str
    challenges: list[str] = Field(default_factory=list)
    resolution: str
    confidence_change: float = Field(default=0, ge=-100, le=100)
    adopted_alternatives: list[str] = Field(default_factory=list)


# =============================================================================
# Synthesis, review, voting
# =============================================================================

class ResearchQuality(WireModel):
    tools_used: int = 0
    cost: float = 0.0
    duration: float = 0.0
    battle_tested: bool = False
    confidence_boost: float = 0.0


class ExpertSynthesis(WireModel):
    expert_id: ExpertId
    expert_name: str
    synthesis: str
    timestamp: str = Field(default_factory=utc_timestamp)
    research_quality: ResearchQuality = Field(default_factory=ResearchQuality)


class ReviewIssue(WireModel):
    severity: Severity = "major"
    category: IssueCategory = "accuracy"
    description: str
    affected_expert: ExpertId | None = None
    remediation: str = ""


class ExpertCitationCoverage(WireModel):
    citations: int = 0
    verified: bool = False


class CitationAnalysis(WireModel):
    total_citations: int = 0
    verified_citations: int = 0
    missing_citations: int = 0
    expert_coverage: dict[ExpertId, ExpertCitationCoverage] = Field(default_factory=dict)


class ReviewResult(WireModel):
    """Quality gate verdict. ``passed`` is always derived, never trusted from the model."""

    overall_score: float = Field(default=0, ge=0, le=100)
    passed: bool = False
    issues: list[ReviewIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    citation_analysis: CitationAnalysis = Field(default_factory=CitationAnalysis)
    timestamp: str = Field(default_factory=utc_timestamp)
    model: str = ""

    @property
    def critical_issues(self) -> list[ReviewIssue]:
        return [issue for issue in self.issues if issue.severity == "critical"]


class EscalationResult(WireModel):
    """Advisory second opinion on a review with critical issues."""

    needed: bool
    resolution: Literal["retry", "proceed", "manual"] | None = None
    confirmed_issues: list[str] = Field(default_factory=list)
    dismissed_issues: list[str] = Field(default_factory=list)
    mitigations: list[str] = Field(default_factory=list)
    previous_score: float = 0
    fallback_model: str | None = None
    message: str | None = None


class ExpertVote(WireModel):
    agent: str
    approved: bool
    confidence: float = Field(default=75, ge=0, le=100)
    reasoning: str = ""
    key_requirements: list[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_timestamp)


# =============================================================================
# Caller-held accumulator
# =============================================================================

class RoundData(WireModel):
    """State the caller folds stage outputs into and sends back.

    Unknown keys are ignored so the caller may carry extra bookkeeping.
    """

    questions: list[ResearchQuestion] | None = None
    research_results: list[AgentResearchResult] | None = None
    assignments: list[ExpertAssignment] | None = None
    research_metadata: dict[str, Any] | None = None
    challenges: list[ChallengeQuestion] | None = None
    challenge_responses: list[ChallengeResponse] | None = None
    debate_resolutions: list[DebateResolution] | None = None
    challenge_metadata: dict[str, Any] | None = None
    syntheses: list[ExpertSynthesis] | None = None
    synthesis_metadata: dict[str, Any] | None = None
    review: ReviewResult | None = None
    votes: list[ExpertVote] | None = None
    round_number: int | None = None


def dump_all(models: list[WireModel]) -> list[dict[str, Any]]:
    """Wire form of a list of models."""
    return [model.to_wire() for model in models]

"""Review stage: quality gate between synthesis and voting.

A heavy reasoning model scores the syntheses and lists issues. The
verdict is then normalized locally:

- unknown severities become ``major`` and unknown categories ``accuracy``
- any synthesis with no citation markers gets a ``citation`` issue
- ``passed`` is recomputed as score >= threshold with no critical issues

An unparseable review scores 60 and fails. A review that cannot be
obtained at all scores 0 with a single critical issue; the stage still
returns 200 so the caller can decide how to proceed.

``escalate_review`` asks a fallback model for an advisory second opinion
on critical issues. It never re-runs the review by itself.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, get_args

from src.clients.model_client import messages_for
from src.core.json_extract import DecodeResult, clamp, decode_model_json
from src.core.retry import retry_with_backoff
from src.research.models import (
    AgentResearchResult,
    CitationAnalysis,
    EscalationResult,
    ExpertSynthesis,
    IssueCategory,
    ReviewIssue,
    ReviewResult,
    RoundData,
    Severity,
)
from src.stages.base import StageDependencies, StageRequest, require


logger = logging.getLogger(__name__)

REVIEW_MODEL = "gpt-5.2-codex"
ESCALATION_MODEL = "claude-opus-4.5"
REVIEW_ATTEMPTS = 2
DEFAULT_REVIEW_SCORE = 50
PARSE_FAILURE_SCORE = 60

_SEVERITIES = frozenset(get_args(Severity))
_CATEGORIES = frozenset(get_args(IssueCategory))
_RESOLUTIONS = ("retry", "proceed", "manual")
_FINDINGS_CHARS = 1500
_ESCALATION_SYNTHESIS_CHARS = 500

CITATION_PATTERN = re.compile(
    r"https?://\S+|\[\d+\]|\bsource:|\baccording to\b", re.IGNORECASE
)


def has_citations(text: str) -> bool:
    return bool(CITATION_PATTERN.search(text or ""))


# =============================================================================
# Prompt context
# =============================================================================

def synthesis_context(
    syntheses: list[ExpertSynthesis], results: list[AgentResearchResult]
) -> str:
    by_expert = {r.expert_id: r for r in results}
    sections = []
    for s in syntheses:
        quality = s.research_quality
        section = (
            f"## Expert: {s.expert_name} ({s.expert_id})\n"
            f"### Synthesis:\n{s.synthesis}\n"
            f"### Research Quality:\n"
            f"- Tools used: {quality.tools_used}\n"
            f"- Battle-tested: {'Yes' if quality.battle_tested else 'No'}\n"
            f"- Confidence boost: {quality.confidence_boost:g}%"
        )
        research = by_expert.get(s.expert_id)
        if research is not None:
            section += f"\n### Original Findings:\n{research.findings[:_FINDINGS_CHARS]}"
        sections.append(section)
    return "\n\n---\n\n".join(sections)


# =============================================================================
# Normalization
# =============================================================================

def normalize_issue(raw: Any) -> ReviewIssue | None:
    if not isinstance(raw, dict):
        return None
    description = str(raw.get("description") or "").strip()
    if not description:
        return None
    severity = raw.get("severity")
    category = raw.get("category")
    affected = raw.get("affectedExpert")
    return ReviewIssue(
        severity=severity if severity in _SEVERITIES else "major",
        category=category if category in _CATEGORIES else "accuracy",
        description=description,
        affected_expert=str(affected) if affected else None,
        remediation=str(raw.get("remediation") or ""),
    )


def add_citation_issues(
    issues: list[ReviewIssue], syntheses: list[ExpertSynthesis]
) -> list[ReviewIssue]:
    """Flag uncited syntheses the model did not already flag."""
    flagged = {
        i.affected_expert for i in issues if i.category == "citation" and i.affected_expert
    }
    added = [
        ReviewIssue(
            severity="major",
            category="citation",
            description=f"{s.expert_name}'s synthesis contains no citations or source references",
            affected_expert=s.expert_id,
            remediation="Add source URLs or references for the major claims.",
        )
        for s in syntheses
        if not has_citations(s.synthesis) and s.expert_id not in flagged
    ]
    return issues + added


def build_review(
    decoded: DecodeResult,
    syntheses: list[ExpertSynthesis],
    model: str,
    pass_threshold: int,
) -> ReviewResult:
    if decoded.ok:
        score = clamp(decoded.get("overallScore"), 0, 100, DEFAULT_REVIEW_SCORE)
        raw_issues = decoded.get("issues")
        issues = [
            issue
            for issue in map(normalize_issue, raw_issues if isinstance(raw_issues, list) else [])
            if issue is not None
        ]
        recommendations = decoded.get("recommendations")
        recommendations = (
            [str(r) for r in recommendations] if isinstance(recommendations, list) else []
        )
        try:
            citations = CitationAnalysis.model_validate(decoded.get("citationAnalysis") or {})
        except ValueError:
            citations = CitationAnalysis()
    else:
        logger.warning("Review output could not be parsed")
        score = PARSE_FAILURE_SCORE
        issues = [ReviewIssue(
            severity="major",
            category="accuracy",
            description="Review parsing failed - manual verification recommended",
            remediation="Re-run the review stage or verify the syntheses manually.",
        )]
        recommendations = ["Manual review recommended due to parsing failure"]
        citations = CitationAnalysis()

    issues = add_citation_issues(issues, syntheses)
    passed = score >= pass_threshold and not any(i.severity == "critical" for i in issues)
    return ReviewResult(
        overall_score=score,
        passed=passed,
        issues=issues,
        recommendations=recommendations,
        citation_analysis=citations,
        model=model,
    )


def failed_review(error: Exception) -> ReviewResult:
    return ReviewResult(
        overall_score=0,
        passed=False,
        issues=[ReviewIssue(
            severity="critical",
            category="accuracy",
            description=f"Review stage encountered an error: {type(error).__name__}",
            remediation="Retry the review stage.",
        )],
        recommendations=["Retry the review stage"],
        model="error",
    )


# =============================================================================
# Escalation
# =============================================================================

async def escalate_review(
    review: ReviewResult, round_data: RoundData, deps: StageDependencies
) -> EscalationResult:
    """Advisory second opinion on critical issues from a fallback model."""
    critical = review.critical_issues
    if not critical:
        return EscalationResult(
            needed=False,
            previous_score=review.overall_score,
            message="No critical issues require escalation",
        )

    issues_text = "\n".join(
        f"{n}. [{i.category}] {i.description}\n   Remediation: {i.remediation}"
        for n, i in enumerate(critical, start=1)
    )
    syntheses_text = "\n".join(
        f"- {s.expert_name}: {s.synthesis[:_ESCALATION_SYNTHESIS_CHARS]}..."
        for s in round_data.syntheses or []
    )
    user_prompt = deps.prompts.render("review_escalation", {
        "critical_issues": issues_text,
        "syntheses": syntheses_text,
    })

    try:
        response = await retry_with_backoff(
            lambda: deps.client.call(
                ESCALATION_MODEL,
                messages_for(
                    "You are resolving a model disagreement in an AI review pipeline.",
                    user_prompt,
                ),
                temperature=0.3,
                max_tokens=1000,
                json_mode=True,
            ),
            deps.retry(max_attempts=REVIEW_ATTEMPTS),
        )
    except Exception as e:
        logger.error("Review escalation failed: %s", e)
        return EscalationResult(
            needed=True,
            resolution="manual",
            previous_score=review.overall_score,
            fallback_model=ESCALATION_MODEL,
            message="Escalation failed; manual review required",
        )

    decoded = decode_model_json(response.content, ("resolution",))
    resolution = decoded.get("resolution")

    def strings(key: str) -> list[str]:
        value = decoded.get(key)
        return [str(v) for v in value] if isinstance(value, list) else []

    return EscalationResult(
        needed=True,
        resolution=resolution if resolution in _RESOLUTIONS else "manual",
        confirmed_issues=strings("confirmedIssues"),
        dismissed_issues=strings("dismissedIssues"),
        mitigations=strings("mitigations"),
        previous_score=review.overall_score,
        fallback_model=response.model,
    )


# =============================================================================
# Handler
# =============================================================================

async def handle_review(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    round_data = request.round_data
    syntheses = require(round_data.syntheses, "No syntheses available to review", "roundData.syntheses")
    threshold = deps.settings.review_pass_threshold

    system_prompt = deps.prompts.render("review_stage")
    user_prompt = deps.prompts.render("review_request", {
        "synthesis_context": synthesis_context(syntheses, round_data.research_results or []),
    })

    started = time.monotonic()
    try:
        response = await retry_with_backoff(
            lambda: deps.client.call(
                REVIEW_MODEL,
                messages_for(system_prompt, user_prompt),
                temperature=0.3,
                max_tokens=2000,
                json_mode=True,
            ),
            deps.retry(max_attempts=REVIEW_ATTEMPTS),
        )
    except Exception as e:
        logger.error("Review stage failed: %s", e)
        return {
            "review": failed_review(e).to_wire(),
            "metadata": {
                "reviewModel": "error",
                "latencyMs": round((time.monotonic() - started) * 1000),
                "synthesesReviewed": 0,
                "passThreshold": threshold,
                "error": True,
            },
        }
    latency_ms = round((time.monotonic() - started) * 1000)

    decoded = decode_model_json(response.content, ("overallScore",))
    review = build_review(decoded, syntheses, response.model, threshold)
    deps.prompts.track_usage("review_stage", {
        "cost_cents": response.cost * 100,
        "latency_ms": latency_ms,
        "model_used": response.model,
    })
    logger.info(
        "Review complete: score=%g passed=%s issues=%d",
        review.overall_score,
        review.passed,
        len(review.issues),
    )

    output: dict[str, Any] = {
        "review": review.to_wire(),
        "metadata": {
            "reviewModel": response.model,
            "latencyMs": latency_ms,
            "synthesesReviewed": len(syntheses),
            "passThreshold": threshold,
        },
    }
    if request.escalate and review.critical_issues:
        escalation = await escalate_review(review, round_data, deps)
        output["escalation"] = escalation.to_wire()
    return output

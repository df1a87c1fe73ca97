"""Synthesis stage: each expert restates a final, debate-tested position."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.clients.model_client import messages_for
from src.core.retry import retry_with_backoff
from src.research.models import (
    AgentResearchResult,
    DebateResolution,
    ExpertSynthesis,
    ResearchQuality,
    dump_all,
)
from src.stages.base import StageDependencies, StageRequest, require


logger = logging.getLogger(__name__)

SYNTHESIS_MODEL = "groq-llama-3.3-70b"


def tools_context(result: AgentResearchResult) -> str:
    if not result.tools_used:
        return ""
    return "\n\nTools used: " + ", ".join(t.tool for t in result.tools_used)


def debate_context(resolution: DebateResolution | None) -> str:
    if resolution is None:
        return ""
    adopted = ", ".join(resolution.adopted_alternatives) or "None"
    return (
        f"\n\n**DEBATE-TESTED POSITION**:\n{resolution.resolution}\n\n"
        f"Challenges addressed: {'; '.join(resolution.challenges)}\n"
        f"Confidence change: {resolution.confidence_change:+g}%\n"
        f"Adopted alternatives: {adopted}"
    )


async def _synthesize_one(
    result: AgentResearchResult,
    resolution: DebateResolution | None,
    user_comment: str | None,
    deps: StageDependencies,
) -> ExpertSynthesis:
    system_prompt = (
        f"You are {result.expert_name}, a world-class expert. Provide your synthesis."
    )
    user_prompt = deps.prompts.render("synthesis_stage", {
        "findings": result.findings,
        "tools_context": tools_context(result),
        "debate_context": debate_context(resolution),
        "user_guidance": f"\nUser guidance: {user_comment}" if user_comment else "",
    })

    response = await retry_with_backoff(
        lambda: deps.client.call(
            SYNTHESIS_MODEL,
            messages_for(system_prompt, user_prompt),
            temperature=0.7,
            max_tokens=800,
        ),
        deps.retry(),
    )

    return ExpertSynthesis(
        expert_id=result.expert_id,
        expert_name=result.expert_name,
        synthesis=response.content,
        research_quality=ResearchQuality(
            tools_used=len(result.tools_used),
            cost=result.cost,
            duration=result.duration,
            battle_tested=resolution is not None,
            confidence_boost=resolution.confidence_change if resolution else 0,
        ),
    )


async def _safe_synthesize(
    result: AgentResearchResult,
    resolution: DebateResolution | None,
    user_comment: str | None,
    deps: StageDependencies,
) -> ExpertSynthesis | None:
    try:
        return await _synthesize_one(result, resolution, user_comment, deps)
    except Exception as e:
        logger.error("Synthesis failed for %s: %s", result.expert_id, e)
        return None


async def handle_synthesis(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    results = require(
        request.round_data.research_results,
        "No research results to synthesize",
        "roundData.researchResults",
    )
    resolutions = {
        r.expert_id: r for r in (request.round_data.debate_resolutions or [])
    }

    outcomes = await asyncio.gather(*(
        _safe_synthesize(r, resolutions.get(r.expert_id), request.user_comment, deps)
        for r in results
    ))
    syntheses = [s for s in outcomes if s is not None]
    failed = len(outcomes) - len(syntheses)
    battle_tested = sum(1 for s in syntheses if s.research_quality.battle_tested)

    if failed:
        logger.warning("%d of %d syntheses failed", failed, len(outcomes))

    return {
        "syntheses": dump_all(syntheses),
        "metadata": {
            "totalSyntheses": len(syntheses),
            "battleTested": battle_tested,
            "productiveConflict": bool(resolutions),
            "failed": failed,
        },
    }

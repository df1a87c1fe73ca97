"""Spec stage: consolidate weighted syntheses and votes into one document."""

from __future__ import annotations

import logging
from typing import Any

from src.clients.model_client import messages_for
from src.core.retry import retry_with_backoff
from src.research.models import AgentResearchResult, ExpertSynthesis
from src.stages.base import StageDependencies, StageRequest, require


logger = logging.getLogger(__name__)

SPEC_MODEL = "gpt-5.2"


def research_weights(
    syntheses: list[ExpertSynthesis], results: list[AgentResearchResult]
) -> dict[str, float]:
    """Weight each expert by tool usage relative to the panel average, capped at 100."""
    avg_tools = (
        sum(len(r.tools_used) for r in results) / len(results) if results else 0
    )
    weights: dict[str, float] = {}
    for s in syntheses:
        if avg_tools == 0:
            weights[s.expert_id] = 100.0
        else:
            weights[s.expert_id] = min(
                s.research_quality.tools_used / avg_tools * 100, 100.0
            )
    return weights


async def handle_spec(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    round_data = request.round_data
    syntheses = require(round_data.syntheses, "No syntheses available", "roundData.syntheses")
    votes = round_data.votes or []

    weights = research_weights(syntheses, round_data.research_results or [])
    weighted_context = "\n\n".join(
        f"{s.expert_name} (research depth: {weights[s.expert_id]:.0f}%):\n{s.synthesis}"
        for s in syntheses
    )
    key_requirements = "\n".join(
        f"- {req}" for v in votes for req in v.key_requirements
    )
    resolutions = round_data.debate_resolutions or []
    debate = ""
    if resolutions:
        debate = "\n\nDEBATE OUTCOMES:\n" + "\n".join(
            f"Decision: {r.resolution}" for r in resolutions
        )

    system_prompt = deps.prompts.render("specification_generation_system")
    user_prompt = deps.prompts.render("specification_generation", {
        "weighted_context": weighted_context,
        "key_requirements": key_requirements or "(none recorded)",
        "debate_context": debate,
    })

    response = await retry_with_backoff(
        lambda: deps.client.call(
            SPEC_MODEL,
            messages_for(system_prompt, user_prompt),
            temperature=0.7,
            max_tokens=8000,
        ),
        deps.retry(),
    )

    approved_by = [v.agent for v in votes if v.approved]
    dissented_by = [v.agent for v in votes if not v.approved]
    consensus = len(approved_by) / len(votes) if votes else 0.0
    logger.info(
        "Spec generated: %d chars, consensus %.2f", len(response.content), consensus
    )

    return {
        "spec": response.content,
        "approvedBy": approved_by,
        "dissentedBy": dissented_by,
        "consensusScore": consensus,
        "metadata": {
            "model": response.model,
            "cost": response.cost,
            "tokensUsed": response.usage.total_tokens,
            "weights": weights,
        },
    }

"""Challenge stage: generate, execute and resolve contrarian challenges."""

from __future__ import annotations

import logging
from typing import Any

from src.debate.challenges import ChallengeEngine
from src.research.models import dump_all
from src.stages.base import StageDependencies, StageRequest, require


logger = logging.getLogger(__name__)


async def handle_challenge(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    results = require(
        request.round_data.research_results,
        "No research results to challenge",
        "roundData.researchResults",
    )
    configs = require(
        request.agent_configs, "Agent configurations required for challenges", "agentConfigs"
    )

    engine = ChallengeEngine(deps.client, deps.prompts, rng=deps.rng, retry=deps.retry())
    challenges = await engine.generate_challenges(results, request.user_input or "")
    responses = await engine.execute_challenges(challenges, results, configs)
    resolutions = await engine.resolve_debates(results, responses)

    avg_risk = (
        sum(r.risk_score for r in responses) / len(responses) if responses else 0.0
    )
    logger.info(
        "Challenge stage complete: %d challenges, avg risk %.1f",
        len(challenges),
        avg_risk,
    )

    return {
        "challenges": dump_all(challenges),
        "challengeResponses": dump_all(responses),
        "debateResolutions": dump_all(resolutions),
        "metadata": {
            "totalChallenges": len(challenges),
            "totalResponses": len(responses),
            "failedChallenges": len(challenges) - len(responses),
            "avgRiskScore": round(avg_risk, 1),
            "challengeCost": sum(r.cost for r in responses),
            "debatesResolved": len(resolutions),
            "productiveConflict": bool(responses),
        },
    }

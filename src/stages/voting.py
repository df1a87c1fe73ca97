"""Voting stage: every enabled expert votes on whether to proceed to the spec."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.clients.model_client import messages_for
from src.core.json_extract import clamp, decode_model_json
from src.core.retry import retry_with_backoff
from src.research.models import AgentConfig, ExpertSynthesis, ExpertVote, dump_all
from src.stages.base import StageDependencies, StageRequest, enabled_configs


logger = logging.getLogger(__name__)

VOTING_MODEL = "groq-llama-3.3-70b"
_SUMMARY_CHARS = 300


def syntheses_summary(syntheses: list[ExpertSynthesis]) -> str:
    return "\n\n".join(
        f"{s.expert_name}: {s.synthesis[:_SUMMARY_CHARS]}..." for s in syntheses
    )


_TRUE_WORDS = ("true", "yes")
_FALSE_WORDS = ("false", "no")


def _as_bool(value: object, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def parse_vote(agent: str, text: str) -> ExpertVote:
    """Decode a vote, falling back to keyword detection for free text."""
    decoded = decode_model_json(text, ("approved",))
    if decoded.ok:
        requirements = decoded.get("keyRequirements")
        return ExpertVote(
            agent=agent,
            approved=_as_bool(decoded.get("approved"), default=True),
            confidence=clamp(decoded.get("confidence"), 0, 100, 75),
            reasoning=str(decoded.get("reasoning") or decoded.raw),
            key_requirements=(
                [str(r) for r in requirements] if isinstance(requirements, list) else []
            ),
        )

    lowered = decoded.raw.lower()
    approved = "yes" in lowered or "approve" in lowered
    return ExpertVote(
        agent=agent,
        approved=approved,
        confidence=70 if approved else 30,
        reasoning=decoded.raw,
    )


async def _cast_vote(
    config: AgentConfig, summary: str, deps: StageDependencies
) -> ExpertVote:
    user_prompt = deps.prompts.render("voting_stage", {"syntheses_summary": summary})
    try:
        response = await retry_with_backoff(
            lambda: deps.client.call(
                VOTING_MODEL,
                messages_for(config.system_prompt, user_prompt),
                temperature=config.temperature,
                max_tokens=300,
            ),
            deps.retry(),
        )
    except Exception as e:
        logger.error("Vote failed for %s: %s", config.agent, e)
        return ExpertVote(
            agent=config.agent,
            approved=False,
            confidence=0,
            reasoning="Error: vote could not be collected",
        )
    return parse_vote(config.agent, response.content)


async def handle_voting(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    configs = enabled_configs(request)
    summary = syntheses_summary(request.round_data.syntheses or [])

    votes = await asyncio.gather(*(_cast_vote(c, summary, deps) for c in configs))
    approved = sum(1 for v in votes if v.approved)
    logger.info("Voting complete: %d/%d approved", approved, len(votes))

    return {"votes": dump_all(list(votes))}

"""Challenge/Debate Engine.

Stress-tests research findings through structured disagreement:

1. generate_challenges: contrarian questions aimed at specific findings
2. execute_challenges: each challenger argues against its target finding
3. resolve_debates: a neutral facilitator merges the challenges into a
   stronger position per expert

Correlation is by id throughout: a challenge targets ``expertId`` (or
"general"), a response copies its challenge's target, and a resolution
collects exactly the responses whose target equals its expert id.
"""

from __future__ import annotations

import asyncio
import logging
import random

from src.clients.model_client import ModelClientProtocol, messages_for
from src.core.exceptions import ChallengerNotFoundError
from src.core.json_extract import clamp, decode_model_json
from src.core.retry import RetryConfig, retry_with_backoff
from src.prompts.service import PromptService
from src.research.models import (
    AgentConfig,
    AgentResearchResult,
    ChallengeQuestion,
    ChallengeResponse,
    ChallengeType,
    DebateResolution,
    ExpertId,
)


logger = logging.getLogger(__name__)

GENERAL_TARGET = "general"

CHALLENGER_POOLS: dict[ChallengeType, tuple[ExpertId, ...]] = {
    ChallengeType.FEASIBILITY: ("elon", "steve"),
    ChallengeType.RISK: ("amal", "bartlett"),
    ChallengeType.ALTERNATIVE: ("steve", "jony"),
    ChallengeType.ASSUMPTION: ("bartlett", "oprah"),
    ChallengeType.VISION: ("steve", "zaha"),
    ChallengeType.COST: ("elon", "bartlett"),
}
DEFAULT_CHALLENGER_POOL: tuple[ExpertId, ...] = ("elon", "steve", "bartlett")

CHALLENGER_MODELS: dict[ExpertId, str] = {
    "elon": "gpt-5.2",
    "steve": "gpt-5.2",
    "amal": "gpt-5.2",
    "jony": "claude-sonnet-4.5",
    "zaha": "claude-sonnet-4.5",
    "bartlett": "gemini-3-flash",
    "oprah": "gemini-3-flash",
}
DEFAULT_CHALLENGER_MODEL = "gpt-5.2"

CHALLENGE_GENERATION_MODEL = "gpt-5.2"
DEBATE_RESOLUTION_MODEL = "claude-sonnet-4.5"

_FINDING_SUMMARY_CHARS = 500


class ChallengeEngine:
    """Generates, executes and resolves contrarian challenges.

    Example:
        >>> engine = ChallengeEngine(client, prompts, rng=random.Random(7))
        >>> challenges = await engine.generate_challenges(results, user_input)
        >>> responses = await engine.execute_challenges(challenges, results, configs)
        >>> resolutions = await engine.resolve_debates(results, responses)
    """

    def __init__(
        self,
        client: ModelClientProtocol,
        prompts: PromptService,
        *,
        rng: random.Random | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._rng = rng or random.Random()
        self._retry = retry

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_challenges(
        self,
        results: list[AgentResearchResult],
        user_input: str,
        *,
        challenges_per_finding: int = 2,
        model: str = CHALLENGE_GENERATION_MODEL,
    ) -> list[ChallengeQuestion]:
        """Ask a model for challenge questions targeting specific findings.

        Raises:
            ModelInvocationError: The generation call failed after retries
        """
        count = len(results) * challenges_per_finding
        summary = "\n\n".join(
            f"[{index}] {r.expert_name}:\n{r.findings[:_FINDING_SUMMARY_CHARS]}"
            for index, r in enumerate(results)
        )
        system_prompt = self._prompts.render("challenge_generation_system", {"count": count})
        user_prompt = self._prompts.render("challenge_generation", {
            "user_input": user_input,
            "findings_summary": summary,
            "count": count,
        })

        response = await retry_with_backoff(
            lambda: self._client.call(
                model,
                messages_for(system_prompt, user_prompt),
                temperature=0.8,
                max_tokens=2000,
                json_mode=True,
            ),
            self._retry,
        )

        raw_challenges = decode_model_json(response.content, ("challenges",)).get("challenges")
        if not isinstance(raw_challenges, list):
            logger.warning("Challenge generation output could not be decoded")
            return []

        challenges: list[ChallengeQuestion] = []
        for index, raw in enumerate(c for c in raw_challenges if isinstance(c, dict)):
            try:
                challenge_type = ChallengeType(raw.get("type"))
            except ValueError:
                challenge_type = ChallengeType.ASSUMPTION

            target_index = raw.get("targetFindingIndex")
            if (
                isinstance(target_index, int)
                and not isinstance(target_index, bool)
                and 0 <= target_index < len(results)
            ):
                target = results[target_index].expert_id
            else:
                target = GENERAL_TARGET

            pool = CHALLENGER_POOLS.get(challenge_type, DEFAULT_CHALLENGER_POOL)
            challenges.append(ChallengeQuestion(
                id=f"challenge_{index}",
                type=challenge_type,
                question=str(raw.get("question") or ""),
                target_findings=target,
                challenger=self._rng.choice(pool),
                priority=int(clamp(raw.get("priority"), 1, 10, 5)),
            ))

        logger.info("Generated %d challenges", len(challenges))
        return challenges

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_challenges(
        self,
        challenges: list[ChallengeQuestion],
        results: list[AgentResearchResult],
        configs: list[AgentConfig],
    ) -> list[ChallengeResponse]:
        """Have each challenger argue against its target finding.

        A challenge whose model call fails after retries is logged and left
        out of the result; the others are unaffected.

        Raises:
            ChallengerNotFoundError: A challenger is not an enabled agent.
                Checked for every challenge before any model call.
        """
        enabled = {c.resolved_id: c for c in configs if c.enabled}
        for challenge in challenges:
            if challenge.challenger not in enabled:
                raise ChallengerNotFoundError(challenge.challenger, challenge.id)

        findings_by_expert = {r.expert_id: r for r in results}

        outcomes = await asyncio.gather(*(
            self._safe_execute(challenge, enabled[challenge.challenger], findings_by_expert)
            for challenge in challenges
        ))
        responses = [r for r in outcomes if r is not None]
        failures = len(outcomes) - len(responses)
        if failures:
            logger.warning("Challenge execution finished with %d failed challenges", failures)
        logger.info("Executed %d challenges", len(responses))
        return responses

    async def _safe_execute(
        self,
        challenge: ChallengeQuestion,
        challenger: AgentConfig,
        findings_by_expert: dict[ExpertId, AgentResearchResult],
    ) -> ChallengeResponse | None:
        """Run one challenge, returning None instead of raising."""
        try:
            return await self._execute_one(challenge, challenger, findings_by_expert)
        except Exception as e:
            logger.warning("Challenge %s by %s failed: %s", challenge.id, challenge.challenger, e)
            return None

    async def _execute_one(
        self,
        challenge: ChallengeQuestion,
        challenger: AgentConfig,
        findings_by_expert: dict[ExpertId, AgentResearchResult],
    ) -> ChallengeResponse:
        target = findings_by_expert.get(challenge.target_findings)
        if target is not None:
            findings, target_name = target.findings, target.expert_name
        else:
            findings = "\n\n".join(
                f"{r.expert_name}: {r.findings[:_FINDING_SUMMARY_CHARS]}"
                for r in findings_by_expert.values()
            )
            target_name = "the expert panel"

        model = CHALLENGER_MODELS.get(challenge.challenger, DEFAULT_CHALLENGER_MODEL)
        system_prompt = self._prompts.render("challenge_execution_system", {
            "challenger_name": challenger.agent,
            "challenger_prompt": challenger.system_prompt,
        })
        user_prompt = self._prompts.render("challenge_execution", {
            "challenge_type": challenge.type.value,
            "question": challenge.question,
            "target_expert": target_name,
            "findings": findings,
        })

        response = await retry_with_backoff(
            lambda: self._client.call(
                model,
                messages_for(system_prompt, user_prompt),
                temperature=0.7,
                max_tokens=800,
            ),
            self._retry,
        )

        decoded = decode_model_json(response.content, ("challenge",))
        evidence = decoded.get("evidenceAgainst")
        alternative = decoded.get("alternativeApproach")
        return ChallengeResponse(
            challenge_id=challenge.id,
            challenger=challenge.challenger,
            target_findings=challenge.target_findings,
            challenge=str(decoded.get("challenge") or decoded.raw),
            evidence_against=[str(e) for e in evidence] if isinstance(evidence, list) else [],
            alternative_approach=str(alternative) if alternative else None,
            risk_score=clamp(decoded.get("riskScore"), 0, 10, 5),
            model=response.model,
            cost=response.cost,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve_debates(
        self,
        results: list[AgentResearchResult],
        responses: list[ChallengeResponse],
        *,
        model: str = DEBATE_RESOLUTION_MODEL,
    ) -> list[DebateResolution]:
        """Produce one resolution per research result, in result order."""
        resolutions = await asyncio.gather(*(
            self._safe_resolve(
                result,
                [r for r in responses if r.target_findings == result.expert_id],
                model,
            )
            for result in results
        ))
        logger.info("Resolved %d debates", len(resolutions))
        return list(resolutions)

    async def _safe_resolve(
        self,
        result: AgentResearchResult,
        relevant: list[ChallengeResponse],
        model: str,
    ) -> DebateResolution:
        """Resolve one debate, keeping the original position if the call fails."""
        try:
            return await self._resolve_one(result, relevant, model)
        except Exception as e:
            logger.warning("Debate resolution for %s failed: %s", result.expert_id, e)
            return _identity_resolution(result, relevant)

    async def _resolve_one(
        self,
        result: AgentResearchResult,
        relevant: list[ChallengeResponse],
        model: str,
    ) -> DebateResolution:
        identity = _identity_resolution(result, relevant)
        if not relevant:
            return identity

        challenges_text = "\n\n".join(
            f"Challenge from {r.challenger} (risk {r.risk_score:g}/10):\n{r.challenge}\n"
            + "\n".join(f"- {e}" for e in r.evidence_against)
            for r in relevant
        )
        system_prompt = self._prompts.render("debate_resolution_system")
        user_prompt = self._prompts.render("debate_resolution", {
            "original_position": result.findings,
            "challenges_text": challenges_text,
        })

        response = await retry_with_backoff(
            lambda: self._client.call(
                model,
                messages_for(system_prompt, user_prompt),
                temperature=0.5,
                max_tokens=1500,
            ),
            self._retry,
        )

        decoded = decode_model_json(response.content, ("resolution",))
        resolution = decoded.get("resolution")
        if not isinstance(resolution, str) or not resolution.strip():
            logger.warning("Debate resolution for %s could not be decoded", result.expert_id)
            return identity

        alternatives = decoded.get("adoptedAlternatives")
        return DebateResolution(
            expert_id=result.expert_id,
            original_position=result.findings,
            challenges=identity.challenges,
            resolution=resolution,
            confidence_change=clamp(decoded.get("confidenceChange"), -100, 100, 0),
            adopted_alternatives=(
                [str(a) for a in alternatives] if isinstance(alternatives, list) else []
            ),
        )


def _identity_resolution(
    result: AgentResearchResult, relevant: list[ChallengeResponse]
) -> DebateResolution:
    return DebateResolution(
        expert_id=result.expert_id,
        original_position=result.findings,
        challenges=[r.challenge for r in relevant],
        resolution=result.findings,
        confidence_change=0,
    )

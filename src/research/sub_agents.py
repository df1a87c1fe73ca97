"""Sub-agent spawning.

A research agent may delegate a narrow deep-dive to up to three sub-agents.
Sub-agents run a short bounded loop (at most five iterations) with their own
tool access but no spawn rights, so delegation is one level deep.

Confidence by outcome:
    completion JSON  -> parsed confidence (default 75)
    raw completion   -> 70
    max iterations   -> 50
    error            -> 0
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from src.clients.model_client import ModelClientProtocol
from src.core.retry import RetryConfig, retry_with_backoff
from src.prompts.service import PromptService
from src.research.models import ToolUsage
from src.research.signals import SignalKind, format_tool_result, parse_signal
from src.tools.registry import ToolRegistry


logger = logging.getLogger(__name__)

SUB_AGENT_MODEL = "claude-sonnet-4.5"
MAX_SUB_AGENT_ITERATIONS = 5
MAX_SUB_AGENTS_PER_SPAWN = 3
PARENT_CONTEXT_CHARS = 2000
_LAST_CONTEXT_CHARS = 1000

SUB_AGENT_RETRY = RetryConfig(max_attempts=2)


@dataclass(slots=True)
class SubAgentRequest:
    parent_agent_id: str
    parent_agent_name: str
    specialization: str
    research_goal: str
    max_iterations: int = MAX_SUB_AGENT_ITERATIONS
    tools_needed: list[str] = field(default_factory=list)
    context: str = ""


@dataclass(slots=True)
class SubAgentResult:
    sub_agent_id: str
    specialization: str
    findings: str
    confidence: float
    tools_used: list[ToolUsage] = field(default_factory=list)
    duration: float = 0.0
    cost: float = 0.0
    tokens_used: int = 0
    iterations: int = 0


@dataclass(slots=True)
class SubAgentFold:
    """Child totals to add to the parent agent's accounting."""

    findings_text: str = ""
    cost: float = 0.0
    tokens: int = 0
    tool_usages: list[ToolUsage] = field(default_factory=list)
    count: int = 0


def fold_sub_agent_results(results: list[SubAgentResult]) -> SubAgentFold:
    """Combine sub-agent results into transcript text and totals."""
    return SubAgentFold(
        findings_text="\n\n".join(
            f"[Sub-Agent Findings: {r.specialization}]\n{r.findings}" for r in results
        ),
        cost=sum(r.cost for r in results),
        tokens=sum(r.tokens_used for r in results),
        tool_usages=[usage for r in results for usage in r.tools_used],
        count=len(results),
    )


class SubAgentSpawner:
    """Runs focused sub-agents on behalf of a research agent."""

    def __init__(
        self,
        client: ModelClientProtocol,
        tools: ToolRegistry,
        prompts: PromptService,
        *,
        model: str = SUB_AGENT_MODEL,
        retry: RetryConfig = SUB_AGENT_RETRY,
        temperature: float = 0.6,
        max_tokens: int = 1500,
    ) -> None:
        self._client = client
        self._tools = tools
        self._prompts = prompts
        self._model = model
        self._retry = retry
        self._temperature = temperature
        self._max_tokens = max_tokens

    def _tools_for(self, request: SubAgentRequest) -> ToolRegistry:
        if not request.tools_needed:
            return self._tools
        subset = self._tools.subset(request.tools_needed)
        return subset if subset.names() else self._tools

    async def spawn(self, request: SubAgentRequest) -> SubAgentResult:
        """Run one sub-agent to completion. Never raises."""
        start = time.perf_counter()
        sub_agent_id = f"sub-{request.parent_agent_id}-{uuid.uuid4().hex[:8]}"
        max_iterations = max(1, min(request.max_iterations, MAX_SUB_AGENT_ITERATIONS))
        tools = self._tools_for(request)

        result = SubAgentResult(
            sub_agent_id=sub_agent_id,
            specialization=request.specialization,
            findings="",
            confidence=0,
        )

        logger.info(
            "Sub-agent %s spawned by %s: %s",
            sub_agent_id,
            request.parent_agent_name,
            request.specialization,
        )

        try:
            system_prompt = self._prompts.render("sub_agent", {
                "specialization": request.specialization,
                "research_goal": request.research_goal,
                "parent_agent_name": request.parent_agent_name,
                "tools_description": tools.get_prompt_description(),
                "max_iterations": max_iterations,
            })
            messages = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": self._prompts.render("sub_agent_kickoff", {
                    "context": request.context or "(none)",
                    "research_goal": request.research_goal,
                })},
            ]
            last_text = ""

            for iteration in range(1, max_iterations + 1):
                result.iterations = iteration
                snapshot = list(messages)
                response = await retry_with_backoff(
                    lambda: self._client.call(
                        self._model,
                        snapshot,
                        temperature=self._temperature,
                        max_tokens=self._max_tokens,
                    ),
                    self._retry,
                )
                result.cost += response.cost
                result.tokens_used += response.usage.total_tokens
                last_text = response.content
                messages.append({"role": "assistant", "content": response.content})

                signal = parse_signal(response.content)
                if signal.kind is SignalKind.COMPLETE:
                    result.findings = signal.findings()
                    result.confidence = signal.confidence(75) if signal.data else 70
                    break

                if signal.kind is SignalKind.TOOL:
                    tool_result = await tools.execute(signal.tool, signal.params)
                    result.tools_used.append(ToolUsage(
                        tool=signal.tool,
                        success=tool_result.success,
                        duration=tool_result.metadata.duration,
                    ))
                    messages.append({
                        "role": "user",
                        "content": format_tool_result(signal.tool, tool_result),
                    })
                    continue

                messages.append({
                    "role": "user",
                    "content": self._prompts.render("research_nudge"),
                })
            else:
                logger.warning("Sub-agent %s hit max iterations (%d)", sub_agent_id, max_iterations)
                result.findings = (
                    f"Research incomplete after {max_iterations} iterations. Last context:\n"
                    f"{last_text[-_LAST_CONTEXT_CHARS:] or '(no output)'}"
                )
                result.confidence = 50

        except Exception as e:
            logger.error("Sub-agent %s failed: %s", sub_agent_id, e)
            result.findings = f"Sub-agent research failed: {e}"
            result.confidence = 0

        result.duration = (time.perf_counter() - start) * 1000
        return result

    async def spawn_many(self, requests: list[SubAgentRequest]) -> list[SubAgentResult]:
        """Run sub-agents concurrently; always one result per request."""
        if not requests:
            return []

        logger.info("Spawning %d sub-agents in parallel", len(requests))
        outcomes = await asyncio.gather(
            *(self.spawn(request) for request in requests),
            return_exceptions=True,
        )

        results: list[SubAgentResult] = []
        for request, outcome in zip(requests, outcomes):
            if isinstance(outcome, SubAgentResult):
                results.append(outcome)
            else:
                results.append(SubAgentResult(
                    sub_agent_id=f"sub-{request.parent_agent_id}-failed",
                    specialization=request.specialization,
                    findings=f"Sub-agent research failed: {outcome}",
                    confidence=0,
                ))

        logger.info(
            "Sub-agents complete: total cost $%.4f",
            sum(r.cost for r in results),
        )
        return results

"""Parallel Research Executor.

Runs one bounded agent loop per expert assignment, concurrently. Each loop
is a small state machine:

    ITERATING -> TOOL_CALL | SUB_AGENT_SPAWN | COMPLETE
              -> MAX_ITERATIONS_EXCEEDED (findings from the last turn, confidence 50)
              -> ERROR (confidence 0, accumulated cost and tools preserved)

Self-reflection prompts are injected at iterations 5 and 10 and a "complete
now" prompt at the final iteration. Every model call is individually
retried; a loop never restarts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from src.clients.model_client import ModelClientProtocol
from src.core.retry import RetryConfig, retry_with_backoff
from src.prompts.service import PromptService
from src.research.models import (
    AgentResearchResult,
    ExpertAssignment,
    ExpertId,
    ToolUsage,
)
from src.research.signals import AgentSignal, SignalKind, format_tool_result, parse_signal
from src.research.stream import StreamEmitter
from src.research.sub_agents import (
    MAX_SUB_AGENTS_PER_SPAWN,
    PARENT_CONTEXT_CHARS,
    SubAgentRequest,
    SubAgentSpawner,
    fold_sub_agent_results,
)
from src.tools.registry import ToolRegistry


logger = logging.getLogger(__name__)

MAX_ITERATIONS = 15
REFLECTION_ITERATIONS = (5, 10)
DEFAULT_CONFIDENCE = 75
INCOMPLETE_CONFIDENCE = 50
_LAST_CONTEXT_CHARS = 1000
_TOOL_PREVIEW_CHARS = 200

RESEARCH_RETRY = RetryConfig(max_attempts=2)


class AgentState(str, Enum):
    ITERATING = "iterating"
    TOOL_CALL = "tool_call"
    SUB_AGENT_SPAWN = "sub_agent_spawn"
    SELF_REFLECT = "self_reflect"
    COMPLETE = "complete"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"
    ERROR = "error"


@dataclass(slots=True)
class ResearchContext:
    """Per-request inputs shared by every agent loop."""

    user_input: str
    personas: dict[ExpertId, str] = field(default_factory=dict)


@dataclass(slots=True)
class _LoopState:
    """Mutable accounting for one agent loop."""

    messages: list[dict[str, str]]
    state: AgentState = AgentState.ITERATING
    cost: float = 0.0
    tokens: int = 0
    iterations: int = 0
    tools_used: list[ToolUsage] = field(default_factory=list)
    sub_agents_spawned: int = 0
    last_text: str = ""

    def transcript_tail(self, chars: int) -> str:
        text = "\n\n".join(m["content"] for m in self.messages if m["role"] != "system")
        return text[-chars:]


class ResearchExecutor:
    """Executes expert research loops in parallel.

    Example:
        >>> executor = ResearchExecutor(client, registry, prompts, max_iterations=6)
        >>> results = await executor.execute_parallel_research(
        ...     assignments, ResearchContext(user_input="A habit tracker"),
        ... )
    """

    def __init__(
        self,
        client: ModelClientProtocol,
        tools: ToolRegistry,
        prompts: PromptService,
        *,
        max_iterations: int = MAX_ITERATIONS,
        enable_sub_agents: bool = True,
        spawner: SubAgentSpawner | None = None,
        emitter: StreamEmitter | None = None,
        retry: RetryConfig = RESEARCH_RETRY,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> None:
        self._client = client
        self._tools = tools
        self._prompts = prompts
        self._max_iterations = max(1, min(max_iterations, MAX_ITERATIONS))
        self._enable_sub_agents = enable_sub_agents
        if enable_sub_agents and spawner is None:
            spawner = SubAgentSpawner(client, tools, prompts)
        self._spawner = spawner
        self._emitter = emitter or StreamEmitter()
        self._retry = retry
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def execute_parallel_research(
        self,
        assignments: list[ExpertAssignment],
        context: ResearchContext,
    ) -> list[AgentResearchResult]:
        """Run every assignment concurrently.

        Returns:
            Exactly one result per assignment, in input order
        """
        logger.info("Starting parallel research with %d experts", len(assignments))
        self._emitter.system_message(f"Starting research with {len(assignments)} experts")

        outcomes = await asyncio.gather(
            *(self._safe_run(assignment, context) for assignment in assignments),
            return_exceptions=True,
        )

        results: list[AgentResearchResult] = []
        for assignment, outcome in zip(assignments, outcomes):
            if isinstance(outcome, AgentResearchResult):
                results.append(outcome)
            else:
                results.append(self._failed_result(assignment, outcome))

        failures = sum(1 for r in results if r.confidence == 0)
        if failures:
            logger.warning("Research finished with %d failed experts", failures)
        logger.info(
            "Research complete: %d experts, total cost $%.4f",
            len(results),
            sum(r.cost for r in results),
        )
        return results

    async def _safe_run(
        self,
        assignment: ExpertAssignment,
        context: ResearchContext,
    ) -> AgentResearchResult | Exception:
        """Run one loop, returning the exception instead of raising."""
        try:
            return await self.run_agent(assignment, context)
        except Exception as e:
            logger.warning("Expert %s failed: %s", assignment.expert_id, e)
            return e

    def _failed_result(
        self, assignment: ExpertAssignment, error: BaseException
    ) -> AgentResearchResult:
        return AgentResearchResult(
            expert_id=assignment.expert_id,
            expert_name=assignment.expert_name,
            questions=assignment.questions,
            findings=f"Research failed: {error}",
            confidence=0,
            model=assignment.model,
        )

    # =========================================================================
    # Agent loop
    # =========================================================================

    def _initial_messages(
        self, assignment: ExpertAssignment, context: ResearchContext
    ) -> list[dict[str, str]]:
        task_description = "\n".join(
            f"{index}. [{q.domain.value}] {q.question}"
            for index, q in enumerate(assignment.questions, start=1)
        )
        system_prompt = self._prompts.render("research_agent", {
            "expert_name": assignment.expert_name,
            "persona": context.personas.get(assignment.expert_id, ""),
            "task_description": task_description,
            "tools_description": self._tools.get_prompt_description(),
            "allow_sub_agents": self._enable_sub_agents,
        })
        kickoff = self._prompts.render("research_kickoff", {
            "user_input": context.user_input,
            "questions": task_description,
        })
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": kickoff},
        ]

    async def run_agent(
        self,
        assignment: ExpertAssignment,
        context: ResearchContext,
    ) -> AgentResearchResult:
        """Run one expert's research loop to a terminal state."""
        start = time.perf_counter()
        expert_id, name = assignment.expert_id, assignment.expert_name
        max_iterations = self._max_iterations
        loop = _LoopState(messages=self._initial_messages(assignment, context))
        findings = ""
        confidence: float = 0

        self._emitter.agent_start(expert_id, name, max_iterations)

        try:
            for iteration in range(1, max_iterations + 1):
                loop.iterations = iteration
                loop.state = AgentState.ITERATING
                self._emitter.agent_iteration(expert_id, name, iteration, max_iterations)
                self._inject_iteration_prompts(loop, expert_id, name, iteration, max_iterations)

                snapshot = list(loop.messages)
                response = await retry_with_backoff(
                    lambda: self._client.call(
                        assignment.model,
                        snapshot,
                        temperature=self._temperature,
                        max_tokens=self._max_tokens,
                    ),
                    self._retry,
                    on_retry=lambda e, n: logger.info("%s retry %d: %s", name, n, e),
                )
                loop.cost += response.cost
                loop.tokens += response.usage.total_tokens
                loop.last_text = response.content
                loop.messages.append({"role": "assistant", "content": response.content})

                signal = parse_signal(response.content)
                if signal.kind is SignalKind.COMPLETE:
                    loop.state = AgentState.COMPLETE
                    findings = signal.findings()
                    confidence = signal.confidence(DEFAULT_CONFIDENCE)
                    logger.info("%s completed research in %d iterations", name, iteration)
                    break
                if signal.kind is SignalKind.SPAWN:
                    await self._handle_spawn(loop, assignment, signal)
                elif signal.kind is SignalKind.TOOL:
                    await self._handle_tool(loop, expert_id, name, signal)
                else:
                    loop.messages.append({
                        "role": "user",
                        "content": self._prompts.render("research_nudge"),
                    })

            if loop.state is not AgentState.COMPLETE:
                loop.state = AgentState.MAX_ITERATIONS_EXCEEDED
                logger.warning("%s reached max iterations (%d)", name, max_iterations)
                findings = (
                    f"Research incomplete after {max_iterations} iterations. Last context:\n"
                    f"{loop.last_text[-_LAST_CONTEXT_CHARS:] or '(no output)'}"
                )
                confidence = INCOMPLETE_CONFIDENCE

        except Exception as e:
            loop.state = AgentState.ERROR
            logger.error("%s research failed: %s", name, e)
            self._emitter.agent_error(expert_id, name, str(e))
            findings = f"Research failed: {e}"
            confidence = 0

        duration = (time.perf_counter() - start) * 1000
        if loop.state is not AgentState.ERROR:
            self._emitter.agent_complete(expert_id, name, confidence, duration, loop.cost)

        return AgentResearchResult(
            expert_id=expert_id,
            expert_name=name,
            questions=assignment.questions,
            findings=findings,
            confidence=confidence,
            tools_used=loop.tools_used,
            duration=duration,
            model=assignment.model,
            cost=loop.cost,
            tokens_used=loop.tokens,
            iterations_used=loop.iterations,
            sub_agents_spawned=loop.sub_agents_spawned if self._enable_sub_agents else None,
        )

    def _inject_iteration_prompts(
        self,
        loop: _LoopState,
        expert_id: str,
        name: str,
        iteration: int,
        max_iterations: int,
    ) -> None:
        if iteration in REFLECTION_ITERATIONS and iteration < max_iterations:
            loop.state = AgentState.SELF_REFLECT
            loop.messages.append({
                "role": "user",
                "content": self._prompts.render("reflection_checkpoint", {
                    "iteration": iteration,
                    "max_iterations": max_iterations,
                    "remaining": max_iterations - iteration,
                }),
            })
            self._emitter.agent_reflection(
                expert_id, name, iteration, f"Self-reflection checkpoint (iteration {iteration})"
            )
        if iteration == max_iterations:
            loop.messages.append({
                "role": "user",
                "content": self._prompts.render(
                    "final_iteration", {"max_iterations": max_iterations}
                ),
            })

    async def _handle_tool(
        self, loop: _LoopState, expert_id: str, name: str, signal: AgentSignal
    ) -> None:
        loop.state = AgentState.TOOL_CALL
        result = await self._tools.execute(signal.tool, signal.params)
        loop.tools_used.append(ToolUsage(
            tool=signal.tool,
            success=result.success,
            duration=result.metadata.duration,
        ))
        block = format_tool_result(signal.tool, result)
        self._emitter.agent_tool_use(expert_id, name, signal.tool, block[:_TOOL_PREVIEW_CHARS])
        loop.messages.append({"role": "user", "content": block})

    async def _handle_spawn(
        self, loop: _LoopState, assignment: ExpertAssignment, signal: AgentSignal
    ) -> None:
        loop.state = AgentState.SUB_AGENT_SPAWN
        if not self._enable_sub_agents or self._spawner is None:
            loop.messages.append({
                "role": "user",
                "content": (
                    "Sub-agents are not available at this research depth. "
                    "Continue with tools or complete your research."
                ),
            })
            return

        context = loop.transcript_tail(PARENT_CONTEXT_CHARS)
        requests = [
            SubAgentRequest(
                parent_agent_id=assignment.expert_id,
                parent_agent_name=assignment.expert_name,
                specialization=str(spec.get("specialization") or "General research"),
                research_goal=str(spec.get("goal") or spec.get("researchGoal") or ""),
                tools_needed=[t for t in spec.get("toolsNeeded") or [] if isinstance(t, str)],
                context=context,
            )
            for spec in signal.spawn_specs[:MAX_SUB_AGENTS_PER_SPAWN]
        ]
        if not requests:
            loop.messages.append({
                "role": "user",
                "content": self._prompts.render("research_nudge"),
            })
            return

        results = await self._spawner.spawn_many(requests)
        fold = fold_sub_agent_results(results)
        loop.cost += fold.cost
        loop.tokens += fold.tokens
        loop.tools_used.extend(fold.tool_usages)
        loop.sub_agents_spawned += fold.count
        loop.messages.append({"role": "user", "content": fold.findings_text})

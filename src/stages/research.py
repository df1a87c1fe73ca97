"""Research stage: assign questions to experts and run their loops in parallel."""

from __future__ import annotations

import logging
from typing import Any

from src.research.assignment import assign_questions_to_experts, balance_workload
from src.research.depth import filter_agents_for_depth, get_depth_config, tools_for_depth
from src.research.executor import MAX_ITERATIONS, ResearchContext, ResearchExecutor
from src.research.models import dump_all
from src.research.sub_agents import SubAgentSpawner
from src.stages.base import StageDependencies, StageRequest, enabled_configs, require


logger = logging.getLogger(__name__)


async def handle_research(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    configs = enabled_configs(request)
    questions = require(
        request.round_data.questions, "No questions provided for research", "roundData.questions"
    )

    tools = deps.tools
    max_iterations = min(deps.settings.max_research_iterations, MAX_ITERATIONS)
    enable_sub_agents = True
    if request.depth:
        preset = get_depth_config(request.depth)
        configs = filter_agents_for_depth(configs, request.depth)
        tools = tools_for_depth(tools, request.depth)
        max_iterations = min(preset.max_iterations, max_iterations)
        enable_sub_agents = preset.enable_sub_agents

    assignments = balance_workload(assign_questions_to_experts(questions, configs))

    spawner = None
    if enable_sub_agents:
        spawner = SubAgentSpawner(
            deps.client, tools, deps.prompts, retry=deps.retry(max_attempts=2)
        )
    executor = ResearchExecutor(
        deps.client,
        tools,
        deps.prompts,
        max_iterations=max_iterations,
        enable_sub_agents=enable_sub_agents,
        spawner=spawner,
        emitter=deps.emitter,
        retry=deps.retry(max_attempts=2),
    )
    context = ResearchContext(
        user_input=request.user_input or "",
        personas={c.resolved_id: c.system_prompt for c in configs},
    )
    results = await executor.execute_parallel_research(assignments, context)

    total_cost = sum(r.cost for r in results)
    total_tokens = sum(r.tokens_used for r in results)
    total_tools = sum(len(r.tools_used) for r in results)
    logger.info(
        "Research stage complete: cost=$%.4f tokens=%d tools=%d",
        total_cost,
        total_tokens,
        total_tools,
    )

    return {
        "researchResults": dump_all(results),
        "assignments": dump_all(assignments),
        "metadata": {
            "totalCost": total_cost,
            "totalTokens": total_tokens,
            "totalToolsUsed": total_tools,
            "duration": max((r.duration for r in results), default=0),
        },
    }

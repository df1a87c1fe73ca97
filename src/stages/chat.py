"""Chat stage: one-on-one conversation with a single expert persona."""

from __future__ import annotations

from typing import Any

from src.clients.model_client import messages_for
from src.core.exceptions import AgentNotFoundError
from src.core.retry import retry_with_backoff
from src.research.models import AgentConfig, RoundData, utc_timestamp
from src.stages.base import StageDependencies, StageRequest, require


CHAT_MODEL = "gpt-5.2"


def find_agent(configs: list[AgentConfig], target: str) -> AgentConfig:
    for config in configs:
        if config.agent.lower() == target.lower() or config.resolved_id == target:
            return config
    raise AgentNotFoundError(target)


def expert_context(config: AgentConfig, round_data: RoundData) -> str:
    parts = []
    for result in round_data.research_results or []:
        if result.expert_id == config.resolved_id:
            parts.append(f"Research findings:\n{result.findings}")
    for synthesis in round_data.syntheses or []:
        if synthesis.expert_id == config.resolved_id:
            parts.append(f"Final synthesis:\n{synthesis.synthesis}")
    return "\n\n".join(parts)


async def handle_chat(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    target = require(request.target_agent, "Target agent required", "targetAgent")
    message = require(request.user_input, "Message required", "userInput")
    config = find_agent(request.agent_configs or [], target)

    system_prompt = deps.prompts.render("chat_stage", {
        "agent_name": config.agent,
        "system_prompt": config.system_prompt,
        "context": expert_context(config, request.round_data),
    })
    response = await retry_with_backoff(
        lambda: deps.client.call(
            CHAT_MODEL,
            messages_for(system_prompt, message),
            temperature=config.temperature,
            max_tokens=500,
        ),
        deps.retry(),
    )

    return {
        "response": response.content,
        "agent": config.agent,
        "timestamp": utc_timestamp(),
    }

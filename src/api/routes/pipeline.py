"""Pipeline API route.

Service Endpoints:
- POST /v1/pipeline/run - Run one stage of the research/debate pipeline

Checks run in a fixed order before any stage logic:

1. Authentication (verify_user dependency, 401)
2. Model provider configuration (503)
3. Per-user rate limit (429 with retryAfter; ledger failures fail open)
4. Input sanitization and prompt-injection screening (400)
"""

from __future__ import annotations

import random
import time
from typing import Any

from fastapi import APIRouter, Depends

from src.api.dependencies import (
    RateLimitLedger,
    get_app_settings,
    get_event_sink,
    get_model_client,
    get_prompt_service,
    get_rate_limit_ledger,
    get_tool_registry,
    verify_user,
)
from src.api.error_handlers import (
    InputValidationError,
    PromptInjectionError,
    RateLimitExceededError,
)
from src.api.security import detect_prompt_injection, sanitize_input
from src.clients.model_client import ModelClientProtocol
from src.core.config import Settings
from src.core.exceptions import ConfigurationError
from src.core.logging import bind_request_context, get_logger
from src.prompts.service import PromptService
from src.research.stream import EventSink, InMemoryEventSink, StreamEmitter
from src.stages import StageDependencies, get_stage_handler
from src.stages.base import StageRequest as PipelineRequest
from src.tools.registry import ToolRegistry


logger = get_logger(__name__)

RATE_LIMIT_ENDPOINT = "pipeline-run"


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/v1/pipeline",
    tags=["Pipeline"],
)


# =============================================================================
# Request checks
# =============================================================================

async def enforce_rate_limit(
    ledger: RateLimitLedger, user_id: str, settings: Settings
) -> None:
    """Raise RateLimitExceededError when the user's window is exhausted."""
    try:
        decision = await ledger.check_and_increment(
            user_id,
            RATE_LIMIT_ENDPOINT,
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
        )
    except Exception as e:
        logger.warning("rate_limit_check_failed", user_id=user_id, error=str(e))
        return
    if not decision.allowed:
        logger.info("rate_limit_exceeded", user_id=user_id, retry_after=decision.retry_after)
        raise RateLimitExceededError(decision.retry_after)


def screen_request(body: PipelineRequest) -> PipelineRequest:
    """Sanitize free text and reject prompt-injection attempts."""
    updates: dict[str, Any] = {}
    for field_name in ("user_input", "user_comment"):
        value = getattr(body, field_name)
        if value is None:
            continue
        cleaned = sanitize_input(value)
        if detect_prompt_injection(cleaned):
            raise PromptInjectionError()
        updates[field_name] = cleaned

    for config in body.agent_configs or []:
        if detect_prompt_injection(config.system_prompt):
            raise PromptInjectionError()

    if body.user_input is not None and not updates.get("user_input"):
        raise InputValidationError("User input is empty after sanitization")
    return body.model_copy(update=updates)


# =============================================================================
# Endpoint
# =============================================================================

@router.post("/run")
async def run_pipeline(
    body: PipelineRequest,
    user_id: str = Depends(verify_user),
    settings: Settings = Depends(get_app_settings),
    ledger: RateLimitLedger = Depends(get_rate_limit_ledger),
    client: ModelClientProtocol = Depends(get_model_client),
    tools: ToolRegistry = Depends(get_tool_registry),
    prompts: PromptService = Depends(get_prompt_service),
    sink: EventSink | None = Depends(get_event_sink),
) -> dict[str, Any]:
    """Run a single pipeline stage and return its output.

    Raises:
        ConfigurationError: No model provider key configured (503)
        RateLimitExceededError: Request window exhausted (429)
        InputValidationError: Input rejected by screening (400)
    """
    if not settings.has_model_provider:
        raise ConfigurationError("Model provider API key not configured", "openrouter_api_key")

    await enforce_rate_limit(ledger, user_id, settings)
    request = screen_request(body)

    deps = StageDependencies(
        client=client,
        tools=tools,
        prompts=prompts,
        settings=settings,
        rng=random.Random(),
        emitter=StreamEmitter(request.session_id, sink),
    )
    handler = get_stage_handler(request.stage)

    started = time.perf_counter()
    bind_request_context(stage=request.stage.value, user_id=user_id, session_id=request.session_id)
    logger.info("stage_started")
    result = await handler(request, deps)
    logger.info("stage_completed", duration_ms=round((time.perf_counter() - started) * 1000))
    if request.session_id and isinstance(sink, InMemoryEventSink):
        events = sink.drain(request.session_id)
        if events:
            result.setdefault("metadata", {})["events"] = events
    return result


__all__ = ["PipelineRequest", "router"]

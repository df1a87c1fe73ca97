"""Questions stage: product idea -> research questions."""

from __future__ import annotations

from typing import Any

from src.research.depth import get_depth_config
from src.research.models import dump_all
from src.research.questions import DEFAULT_QUESTION_COUNT, generate_questions
from src.stages.base import StageDependencies, StageRequest, require


async def handle_questions(request: StageRequest, deps: StageDependencies) -> dict[str, Any]:
    user_input = require(request.user_input, "User input required", "userInput")
    count = (
        get_depth_config(request.depth).question_count
        if request.depth
        else DEFAULT_QUESTION_COUNT
    )

    questions = await generate_questions(
        user_input,
        deps.client,
        deps.prompts,
        count=count,
        retry=deps.retry(),
    )
    return {"questions": dump_all(questions)}

"""Stage dispatch table."""

from src.stages.base import StageHandler, StageName
from src.stages.challenge import handle_challenge
from src.stages.chat import handle_chat
from src.stages.questions import handle_questions
from src.stages.research import handle_research
from src.stages.review import handle_review
from src.stages.spec import handle_spec
from src.stages.synthesis import handle_synthesis
from src.stages.voting import handle_voting


STAGE_HANDLERS: dict[str, StageHandler] = {
    StageName.QUESTIONS.value: handle_questions,
    StageName.RESEARCH.value: handle_research,
    StageName.CHALLENGE.value: handle_challenge,
    StageName.SYNTHESIS.value: handle_synthesis,
    StageName.REVIEW.value: handle_review,
    StageName.VOTING.value: handle_voting,
    StageName.SPEC.value: handle_spec,
    StageName.CHAT.value: handle_chat,
}


def get_stage_handler(stage: StageName | str) -> StageHandler:
    """Look up a handler; raises KeyError for unknown stages."""
    key = stage.value if isinstance(stage, StageName) else stage
    return STAGE_HANDLERS[key]

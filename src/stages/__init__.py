"""Pipeline stages.

Each stage is an async handler taking a StageRequest and the shared
StageDependencies and returning a camelCase dict. STAGE_HANDLERS maps
stage names to handlers.
"""

from src.stages.base import (
    StageDependencies,
    StageHandler,
    StageName,
    StageRequest,
)
from src.stages.registry import STAGE_HANDLERS, get_stage_handler
from src.stages.review import escalate_review


__all__ = [
    "STAGE_HANDLERS",
    "StageDependencies",
    "StageHandler",
    "StageName",
    "StageRequest",
    "escalate_review",
    "get_stage_handler",
]

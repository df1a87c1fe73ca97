"""Challenge/debate engine: contrarian challenges and debate resolution."""

from src.debate.challenges import (
    CHALLENGER_MODELS,
    CHALLENGER_POOLS,
    GENERAL_TARGET,
    ChallengeEngine,
)


__all__ = [
    "CHALLENGER_MODELS",
    "CHALLENGER_POOLS",
    "GENERAL_TARGET",
    "ChallengeEngine",
]

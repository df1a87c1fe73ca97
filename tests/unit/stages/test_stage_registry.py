"""Tests for the stage dispatch table."""

import pytest

from src.stages import STAGE_HANDLERS, StageName, get_stage_handler


def test_every_stage_has_a_handler() -> None:
    assert set(STAGE_HANDLERS) == {stage.value for stage in StageName}


def test_lookup_by_enum_or_name() -> None:
    from src.stages.chat import handle_chat

    assert get_stage_handler(StageName.CHAT) is handle_chat
    assert get_stage_handler("chat") is handle_chat


def test_unknown_stage() -> None:
    with pytest.raises(KeyError):
        get_stage_handler("deploy")

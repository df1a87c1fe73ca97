"""Unit tests for the tolerant model-output JSON decoder."""

import pytest


class TestDecodeModelJson:
    """Tests for decode_model_json strategies."""

    def test_strict_json(self) -> None:
        from src.core.json_extract import DecodeStrategy, decode_model_json

        result = decode_model_json('{"approved": true, "confidence": 80}')

        assert result.ok
        assert result.strategy is DecodeStrategy.STRICT
        assert result.get("confidence") == 80

    def test_fenced_json(self) -> None:
        from src.core.json_extract import DecodeStrategy, decode_model_json

        text = 'Here you go:\n```json\n{"questions": [{"id": "q1"}]}\n```\nThanks'
        result = decode_model_json(text, ("questions",))

        assert result.strategy is DecodeStrategy.FENCED
        assert result.get("questions") == [{"id": "q1"}]

    def test_marker_object_embedded_in_prose(self) -> None:
        from src.core.json_extract import DecodeStrategy, decode_model_json

        text = 'I will search now. {"tool": "web_search", "params": {"query": "x"}} done'
        result = decode_model_json(text, ("tool",))

        assert result.strategy is DecodeStrategy.MARKER
        assert result.get("params") == {"query": "x"}

    def test_marker_object_with_braces_inside_strings(self) -> None:
        from src.core.json_extract import decode_model_json

        text = 'prefix {"complete": true, "findings": "use {curly} braces"} suffix'
        result = decode_model_json(text, ("complete",))

        assert result.get("findings") == "use {curly} braces"

    def test_strict_object_without_marker_is_skipped(self) -> None:
        from src.core.json_extract import DecodeStrategy, decode_model_json

        result = decode_model_json('{"other": 1}', ("questions",))

        assert not result.ok
        assert result.strategy is DecodeStrategy.RAW

    def test_plain_text_falls_back_to_raw(self) -> None:
        from src.core.json_extract import decode_model_json

        result = decode_model_json("```\nYes, I approve.\n```")

        assert result.data is None
        assert result.raw == "Yes, I approve."
        assert result.get("approved", "default") == "default"

    def test_none_input(self) -> None:
        from src.core.json_extract import decode_model_json

        result = decode_model_json(None)

        assert not result.ok
        assert result.raw == ""

    def test_json_array_is_not_an_object(self) -> None:
        from src.core.json_extract import decode_model_json

        assert not decode_model_json("[1, 2, 3]").ok


class TestClamp:
    """Tests for numeric coercion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (50, 50.0),
            ("75", 75.0),
            (150, 100.0),
            (-5, 0.0),
            (None, 42.0),
            ("high", 42.0),
            (True, 42.0),
            (float("nan"), 42.0),
        ],
    )
    def test_clamp(self, value: object, expected: float) -> None:
        from src.core.json_extract import clamp

        assert clamp(value, 0, 100, 42) == expected


def test_strip_markdown_removes_fences() -> None:
    from src.core.json_extract import strip_markdown

    assert strip_markdown("```python\nprint(1)\n```") == "print(1)"

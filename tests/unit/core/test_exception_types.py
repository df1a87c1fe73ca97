"""Unit tests for src/core/exceptions module."""

import pytest

from src.core.exceptions import (
    AgentError,
    AgentNotFoundError,
    AgentValidationError,
    ChallengerNotFoundError,
    ConfigurationError,
    ModelInvocationError,
    ModelRateLimitError,
    ModelTimeoutError,
    PromptNotFoundError,
    ToolExecutionError,
)


class TestAgentValidationError:
    """Tests for AgentValidationError."""

    def test_stores_field(self) -> None:
        error = AgentValidationError("No syntheses available", field="roundData.syntheses")

        assert str(error) == "No syntheses available"
        assert error.field == "roundData.syntheses"
        assert error.value is None

    def test_for_multiple_fields(self) -> None:
        errors = [{"field": "userInput", "msg": "required"}, {"field": "targetAgent", "msg": "required"}]

        error = AgentValidationError("Invalid chat request", field="multiple", errors=errors)

        assert error.errors == errors


class TestModelErrors:
    """Tests for model provider errors."""

    def test_rate_limit_message_is_mappable(self) -> None:
        error = ModelRateLimitError("gpt-5.2")

        assert "RATE_LIMIT" in str(error)
        assert error.status_code == 429
        assert error.model == "gpt-5.2"

    def test_timeout_records_budget(self) -> None:
        error = ModelTimeoutError("groq-llama-3.3-70b", 25.0)

        assert error.timeout_seconds == 25.0
        assert str(error) == "API request timed out after 25.0s"

    def test_model_errors_share_base(self) -> None:
        assert issubclass(ModelRateLimitError, ModelInvocationError)
        assert issubclass(ModelTimeoutError, ModelInvocationError)


class TestLookupErrors:
    """Tests for not-found errors."""

    def test_agent_not_found(self) -> None:
        error = AgentNotFoundError("Ada")

        assert str(error) == "Agent Ada not found"
        assert error.agent == "Ada"

    def test_challenger_not_found(self) -> None:
        error = ChallengerNotFoundError("amal", "challenge_2")

        assert error.challenger == "amal"
        assert error.challenge_id == "challenge_2"

    def test_prompt_not_found(self) -> None:
        assert PromptNotFoundError("chat_stage").template_name == "chat_stage"


class TestExceptionHierarchy:
    """Tests for the overall exception hierarchy."""

    @pytest.mark.parametrize("exc", [
        AgentValidationError("test", field="test"),
        ToolExecutionError("test", tool_name="web_search"),
        ChallengerNotFoundError("elon"),
        PromptNotFoundError("x"),
        ConfigurationError("test"),
        ModelInvocationError("test"),
        AgentNotFoundError("x"),
    ])
    def test_catching_agent_error_catches_all_custom(self, exc: AgentError) -> None:
        with pytest.raises(AgentError):
            raise exc

    def test_exceptions_do_not_shadow_builtins(self) -> None:
        assert ModelTimeoutError is not TimeoutError
        assert AgentError is not Exception

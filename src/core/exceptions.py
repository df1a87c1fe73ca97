"""Custom exceptions for the spec-agents service.

All exceptions are namespaced to avoid shadowing Python builtins
(``ModelTimeoutError`` rather than ``TimeoutError``).

Taxonomy:
    - Input errors: AgentValidationError (rejected before any model call)
    - Transient upstream errors: ModelRateLimitError, ModelTimeoutError,
      ModelInvocationError (retried, then provider fallback)
    - Fatal configuration errors: ConfigurationError
    - Orchestration errors: ChallengerNotFoundError, AgentNotFoundError,
      ToolExecutionError, PromptNotFoundError
"""

from typing import Any


class AgentError(Exception):
    """Base exception for all agent-related errors.

    All agent exceptions inherit from this class to enable
    catching any agent error with a single except clause.
    """

    def __init__(self, message: str, agent_name: str | None = None) -> None:
        """Initialize agent error.

        Args:
            message: Error description
            agent_name: Name of the agent that raised the error
        """
        self.agent_name = agent_name
        super().__init__(message)


class AgentValidationError(AgentError):
    """Raised when input validation fails.

    Distinct from Python's built-in ValueError to provide
    structured error information for API responses.
    """

    def __init__(
        self,
        message: str,
        field: str,
        value: Any | None = None,
        errors: list[dict[str, str]] | None = None,
        agent_name: str | None = None,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error description
            field: The field that failed validation
            value: The invalid value
            errors: List of validation errors for multiple fields
            agent_name: Name of the agent if applicable
        """
        self.field = field
        self.value = value
        self.errors = errors
        super().__init__(message, agent_name)


class ToolExecutionError(AgentError):
    """Raised when a research tool fails.

    Tools normally report failure through ToolResult; this is raised
    only by tool internals and converted by the registry.
    """

    def __init__(
        self,
        message: str,
        tool_name: str,
        agent_name: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        super().__init__(message, agent_name)


class ChallengerNotFoundError(AgentError):
    """Raised when a challenge names a challenger that is not an enabled agent."""

    def __init__(self, challenger: str, challenge_id: str | None = None) -> None:
        """Initialize challenger lookup error.

        Args:
            challenger: Expert id assigned as challenger
            challenge_id: Challenge that referenced the challenger
        """
        self.challenger = challenger
        self.challenge_id = challenge_id
        super().__init__(f"Challenger {challenger} not found", challenger)


class PromptNotFoundError(AgentError):
    """Raised when a prompt template is missing from the store."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(f"Prompt template '{template_name}' not found")


class ConfigurationError(AgentError):
    """Raised when required configuration (credentials, URLs) is missing.

    The message contains "not configured" so the API layer maps it to a
    configuration user message.
    """

    def __init__(self, message: str, setting: str | None = None) -> None:
        self.setting = setting
        super().__init__(message)


class ModelInvocationError(AgentError):
    """Raised when a model provider call fails.

    Attributes:
        model: Model id that was requested
        status_code: HTTP status code if applicable
    """

    def __init__(
        self,
        message: str,
        model: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.model = model
        self.status_code = status_code
        super().__init__(message)


class ModelRateLimitError(ModelInvocationError):
    """Raised when a provider answers 429."""

    def __init__(self, model: str | None = None) -> None:
        super().__init__("RATE_LIMIT: Rate limit exceeded", model, 429)


class ModelTimeoutError(ModelInvocationError):
    """Raised when a provider call exceeds its timeout."""

    def __init__(self, model: str | None = None, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"API request timed out after {timeout_seconds}s", model)


class AgentNotFoundError(AgentError):
    """Raised when a request targets an agent that is not configured."""

    def __init__(self, agent: str) -> None:
        self.agent = agent
        super().__init__(f"Agent {agent} not found", agent)

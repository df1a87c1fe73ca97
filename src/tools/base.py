"""Research Tool Base Class.

Defines the abstract base class for tools that research agents call by
emitting ``{"tool": name, "params": {...}}``.

Pattern: Abstract Base Class (ABC) with Protocol duck typing
Tools report backend failures through ToolResult. A malformed backend
response raises ToolExecutionError, which the registry converts into a
failed result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from src.core.exceptions import ToolExecutionError


ParameterType = Literal["string", "number", "boolean", "object"]


# ============================================================================
# Models
# ============================================================================

class ToolParameter(BaseModel):
    """Declared tool parameter."""

    name: str
    type: ParameterType = "string"
    description: str = ""
    required: bool = False
    default: Any = None


class ToolMetadata(BaseModel):
    """Execution metadata attached to a tool result.

    Attributes:
        duration: Wall time in milliseconds
        cost: USD cost of the backend call
        source: Backend that served the call (exa, github_api)
    """

    duration: float = 0.0
    cost: float = 0.0
    source: str = ""


class ToolResult(BaseModel):
    """Outcome of a tool execution."""

    success: bool
    data: Any = None
    error: str | None = None
    metadata: ToolMetadata = Field(default_factory=ToolMetadata)

    @classmethod
    def failure(cls, error: str, source: str = "", duration: float = 0.0) -> ToolResult:
        return cls(
            success=False,
            error=error,
            metadata=ToolMetadata(duration=duration, source=source),
        )


# ============================================================================
# Abstract Base Class
# ============================================================================

def _matches_type(value: Any, expected: ParameterType) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, (dict, list))


class BaseTool(ABC):
    """Abstract base class for research tools.

    Subclasses declare ``name``, ``description`` and ``parameters`` as class
    attributes and implement ``execute``.

    Example:
        ```python
        class EchoTool(BaseTool):
            name = "echo"
            description = "Echo the input"
            parameters = [ToolParameter(name="text", required=True)]

            async def execute(self, params):
                return ToolResult(success=True, data=params["text"])
        ```
    """

    name: ClassVar[str]
    description: ClassVar[str]
    parameters: ClassVar[list[ToolParameter]] = []

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> ToolResult:
        """Run the tool. Must not raise for backend failures."""
        ...

    def validate(self, params: dict[str, Any]) -> str | None:
        """Check required parameters and types, then fill defaults in place.

        Returns:
            None when valid, otherwise a comma-joined error message
        """
        errors: list[str] = []
        for param in self.parameters:
            if param.name not in params:
                if param.required:
                    errors.append(f"Missing required parameter: {param.name}")
                continue
            if not _matches_type(params[param.name], param.type):
                errors.append(
                    f"Parameter {param.name} must be {param.type}, "
                    f"got {type(params[param.name]).__name__}"
                )

        if errors:
            return ", ".join(errors)

        for param in self.parameters:
            if param.name not in params and param.default is not None:
                params[param.name] = param.default
        return None

    def to_prompt_string(self) -> str:
        """Format the tool for inclusion in an agent system prompt."""
        lines = []
        for param in self.parameters:
            required = "(required)" if param.required else "(optional)"
            default = f" [default: {param.default}]" if param.default is not None else ""
            lines.append(f"  - {param.name} ({param.type}) {required}: {param.description}{default}")
        return f"{self.name}: {self.description}\nParameters:\n" + "\n".join(lines)

    def require_object(self, payload: Any) -> dict[str, Any]:
        """Return a decoded backend response, or raise when it is not a JSON object."""
        if not isinstance(payload, dict):
            raise ToolExecutionError(
                f"Unexpected response from {self.name}: {type(payload).__name__}", self.name
            )
        return payload

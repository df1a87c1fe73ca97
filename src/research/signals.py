"""Structured signals in research agent output.

Each model turn is inspected for one of three signals, checked in order:
completion, sub-agent spawn, tool call. Anything else is plain text and
earns a nudge back toward the protocol.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.core.json_extract import clamp, decode_model_json, strip_markdown
from src.tools.base import ToolResult


SIGNAL_MARKERS = ("complete", "spawn_sub_agents", "tool")

_RAW_COMPLETE = re.compile(r'"complete"\s*:\s*true,?\s*')


class SignalKind(str, Enum):
    COMPLETE = "complete"
    SPAWN = "spawn"
    TOOL = "tool"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class AgentSignal:
    """Decoded signal from one assistant turn.

    ``data`` is None for plain text and for completions that mention
    ``"complete": true`` but are not valid JSON.
    """

    kind: SignalKind
    raw: str
    data: dict[str, Any] | None = None

    @property
    def tool(self) -> str:
        return str(self.get("tool", ""))

    @property
    def params(self) -> dict[str, Any]:
        params = self.get("params")
        return params if isinstance(params, dict) else {}

    @property
    def spawn_specs(self) -> list[dict[str, Any]]:
        specs = self.get("spawn_sub_agents")
        return [s for s in specs if isinstance(s, dict)] if isinstance(specs, list) else []

    def get(self, key: str, default: Any = None) -> Any:
        return default if self.data is None else self.data.get(key, default)

    def findings(self) -> str:
        """Completion findings as text, falling back to the raw output."""
        value = self.get("findings")
        if isinstance(value, str) and value.strip():
            return value
        if value is not None and not isinstance(value, str):
            return json.dumps(value, indent=2)
        return _RAW_COMPLETE.sub("", self.raw).strip()

    def confidence(self, default: float) -> float:
        return clamp(self.get("confidence"), 0, 100, default)


def parse_signal(text: str | None) -> AgentSignal:
    """Classify one assistant turn."""
    decoded = decode_model_json(text, SIGNAL_MARKERS)
    data = decoded.data

    if data is not None:
        if data.get("complete") is True:
            return AgentSignal(SignalKind.COMPLETE, decoded.raw, data)
        if isinstance(data.get("spawn_sub_agents"), list):
            return AgentSignal(SignalKind.SPAWN, decoded.raw, data)
        if isinstance(data.get("tool"), str) and data["tool"]:
            return AgentSignal(SignalKind.TOOL, decoded.raw, data)

    if _RAW_COMPLETE.search(text or ""):
        return AgentSignal(SignalKind.COMPLETE, strip_markdown(text or ""))

    return AgentSignal(SignalKind.NONE, decoded.raw, data)


def format_tool_result(tool_name: str, result: ToolResult) -> str:
    """Transcript block reporting a tool outcome back to the agent."""
    if result.success:
        return f"[Tool Result: {tool_name}]\n{json.dumps(result.data, indent=2, default=str)}"
    return f"[Tool Error: {tool_name}]\n{result.error}"

"""Research progress events.

The emitter is enabled only when both a session id and a sink are given;
otherwise every method is a no-op. Sink failures are logged and swallowed
so progress reporting can never break a research loop.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from src.research.models import utc_timestamp


logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "agent_start",
    "agent_iteration",
    "agent_tool_use",
    "agent_reflection",
    "agent_complete",
    "agent_error",
    "system_message",
)


@runtime_checkable
class EventSink(Protocol):
    def publish(self, session_id: str, event: dict[str, Any]) -> None:
        ...


class InMemoryEventSink:
    """Collects events per session."""

    def __init__(self) -> None:
        self._events: dict[str, list[dict[str, Any]]] = {}

    def publish(self, session_id: str, event: dict[str, Any]) -> None:
        self._events.setdefault(session_id, []).append(event)

    def events(self, session_id: str) -> list[dict[str, Any]]:
        return list(self._events.get(session_id, []))

    def drain(self, session_id: str) -> list[dict[str, Any]]:
        return self._events.pop(session_id, [])


class StreamEmitter:
    """Emits agent progress events for one session.

    Example:
        >>> sink = InMemoryEventSink()
        >>> emitter = StreamEmitter("session-1", sink)
        >>> emitter.agent_start("elon", "Elon", max_iterations=15)
        >>> sink.events("session-1")[0]["type"]
        'agent_start'
    """

    def __init__(self, session_id: str | None = None, sink: EventSink | None = None) -> None:
        self._session_id = session_id
        self._sink = sink

    @property
    def enabled(self) -> bool:
        return bool(self._session_id) and self._sink is not None

    def emit(self, event_type: str, agent_id: str, agent_name: str, data: dict[str, Any]) -> None:
        if not self.enabled:
            return
        event = {
            "type": event_type,
            "agentId": agent_id,
            "agentName": agent_name,
            "timestamp": utc_timestamp(),
            "data": data,
        }
        try:
            self._sink.publish(self._session_id, event)
        except Exception as e:
            logger.warning("Failed to emit %s event: %s", event_type, e)

    def agent_start(self, agent_id: str, agent_name: str, max_iterations: int) -> None:
        self.emit("agent_start", agent_id, agent_name, {
            "status": "started",
            "maxIterations": max_iterations,
            "message": f"{agent_name} started research",
        })

    def agent_iteration(
        self, agent_id: str, agent_name: str, iteration: int, max_iterations: int
    ) -> None:
        self.emit("agent_iteration", agent_id, agent_name, {
            "iteration": iteration,
            "maxIterations": max_iterations,
            "progress": round(iteration / max_iterations * 100) if max_iterations else 0,
            "message": f"Iteration {iteration}/{max_iterations}",
        })

    def agent_tool_use(
        self, agent_id: str, agent_name: str, tool: str, result_preview: str
    ) -> None:
        self.emit("agent_tool_use", agent_id, agent_name, {
            "tool": tool,
            "resultPreview": result_preview,
            "message": f"Using tool: {tool}",
        })

    def agent_reflection(
        self, agent_id: str, agent_name: str, iteration: int, message: str
    ) -> None:
        self.emit("agent_reflection", agent_id, agent_name, {
            "iteration": iteration,
            "message": message,
        })

    def agent_complete(
        self,
        agent_id: str,
        agent_name: str,
        confidence: float | None,
        duration: float,
        cost: float,
    ) -> None:
        self.emit("agent_complete", agent_id, agent_name, {
            "status": "complete",
            "confidence": confidence,
            "duration": duration,
            "cost": cost,
            "message": f"Research complete (${cost:.4f})",
        })

    def agent_error(self, agent_id: str, agent_name: str, message: str) -> None:
        self.emit("agent_error", agent_id, agent_name, {
            "status": "error",
            "error": message,
            "message": f"Error: {message}",
        })

    def system_message(self, message: str) -> None:
        self.emit("system_message", "system", "System", {"message": message})

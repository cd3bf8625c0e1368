"""
Session module.

Automation-driver interface and its Playwright implementation, the
per-agent placement executor, and the orchestrator that fans chunks out
to concurrent agents.
"""

from canvas_placer.session.driver import (
    ActuationError,
    CanvasSession,
    NavigationError,
    SessionClosedError,
    SessionError,
    SessionOpenError,
)
from canvas_placer.session.executor import (
    CursorState,
    ExecutorProgress,
    ExecutorState,
    PlacementExecutor,
)
from canvas_placer.session.orchestrator import AgentOrchestrator, AgentResult

__all__ = [
    "ActuationError",
    "AgentOrchestrator",
    "AgentResult",
    "CanvasSession",
    "CursorState",
    "ExecutorProgress",
    "ExecutorState",
    "NavigationError",
    "PlacementExecutor",
    "SessionClosedError",
    "SessionError",
    "SessionOpenError",
]

"""Automation-driver interface.

A *session* is one browser tab bound to one identity.  The executor and
orchestrator only talk to this interface; ``PlaywrightSession`` is the
production implementation and tests use in-memory fakes.

Error taxonomy:
    - ``SessionOpenError`` / ``NavigationError``: the agent cannot start;
      its chunk is abandoned.
    - ``ActuationError``: one key press or click failed; recoverable, the
      executor retries the current pixel.
    - ``SessionClosedError``: the session is gone; the agent stops.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from canvas_placer.configs.loader import BrowserConfig
from canvas_placer.identities.pool import Identity


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SessionError(Exception):
    """Base exception for automation-driver errors."""

    pass


class SessionOpenError(SessionError):
    """The browser / context / page could not be created."""

    pass


class NavigationError(SessionError):
    """Loading the canvas page failed or timed out."""

    pass


class ActuationError(SessionError):
    """A single primitive (key press, click) failed.  Retryable."""

    pass


class SessionClosedError(SessionError):
    """The session was closed or crashed; no further primitives possible."""

    pass


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class CanvasSession(ABC):
    """One automation session against the canvas page."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Load *url*; raise ``NavigationError`` on failure."""

    @abstractmethod
    def press_key(self, key: str) -> None:
        """Press and release *key*; raise ``ActuationError`` on failure."""

    @abstractmethod
    def click(self, x: float, y: float) -> None:
        """Click at viewport coordinate ``(x, y)``."""

    @abstractmethod
    def focus_canvas(self) -> bool:
        """Give keyboard focus to the canvas; ``False`` if it was not found."""

    @abstractmethod
    def wait_ready(self, timeout_s: float) -> bool:
        """``True`` once the page body is available within *timeout_s*."""

    @abstractmethod
    def close(self) -> None:
        """Release the session.  Safe to call more than once."""

    def evaluate(self, script: str) -> Any:
        """Run *script* in the page.

        Optional; sessions without script support leave this raising
        ``NotImplementedError`` and the page script is skipped.
        """
        raise NotImplementedError

    def read_page_text(self) -> str:
        """Visible page text, for diagnostics; optional."""
        return ""

    def __enter__(self) -> CanvasSession:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


SessionFactory = Callable[[Identity, BrowserConfig, int], CanvasSession]
"""``(identity, browser_config, agent_index) -> open session``.

Raises ``SessionOpenError`` when the session cannot be created.
"""

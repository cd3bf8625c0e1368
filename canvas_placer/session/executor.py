"""Placement executor -- the per-agent state machine.

Walks one chunk of targets against one session::

    IDLE -> MOVING -> SELECTING_COLOR -> COMMITTING -> IDLE (next target)
                                                   ... -> DONE

For each target the executor presses one arrow key per unit of
horizontal delta, then one per unit of vertical delta, then the palette
symbol, then the commit key.  The cursor is advanced after every move key
that was actually sent, so it always matches what the page has received.

Failure handling:
    - ``ActuationError``: logged, the retry delay elapses, and the
      *current* target is retried from the move step using the current
      cursor.  Moves already sent are not rolled back.
    - Retries are unbounded unless ``RetryConfig.max_attempts`` is set;
      once exhausted the executor stops in ``FAILED``.
    - ``SessionClosedError``: stop immediately in ``FAILED``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Sequence

from canvas_placer.configs.loader import RetryConfig, TimingConfig
from canvas_placer.job_ir.operations import (
    Commit,
    MoveCursor,
    PlacementTarget,
    Primitive,
    SelectColor,
    plan_target,
)
from canvas_placer.keys.generator import KeyGenerator
from canvas_placer.session.driver import (
    ActuationError,
    CanvasSession,
    SessionClosedError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class ExecutorState(Enum):
    """Current executor state."""

    IDLE = auto()
    MOVING = auto()
    SELECTING_COLOR = auto()
    COMMITTING = auto()
    DONE = auto()
    FAILED = auto()


@dataclass
class CursorState:
    """Last known cursor position (absolute canvas cell)."""

    x: int
    y: int

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


@dataclass
class ExecutorProgress:
    """Execution progress snapshot."""

    state: ExecutorState
    total: int = 0
    placed: int = 0
    moves: int = 0
    failures: int = 0
    message: str = ""


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class PlacementExecutor:
    """Drives one session through a chunk of placement targets.

    Parameters
    ----------
    session : CanvasSession
        Open session, already focused on the canvas.
    targets : Sequence[PlacementTarget]
        Targets in chunk order.
    start : tuple[int, int]
        Cursor position when the page was loaded.
    timing : TimingConfig
        Key and action delays.
    retry : RetryConfig
        Per-target retry policy.
    keys : KeyGenerator, optional
        Primitive-to-key mapping; defaults to arrow keys + Enter.
    label : str
        Prefix for log lines (e.g. ``"Browser 2"``).
    sleep : callable
        Delay function; injectable for tests.
    """

    def __init__(
        self,
        session: CanvasSession,
        targets: Sequence[PlacementTarget],
        start: tuple[int, int],
        timing: TimingConfig,
        retry: RetryConfig | None = None,
        keys: KeyGenerator | None = None,
        label: str = "Agent",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._targets = tuple(targets)
        self._timing = timing
        self._retry = retry or RetryConfig()
        self._keys = keys or KeyGenerator()
        self._label = label
        self._sleep = sleep

        self.cursor = CursorState(*start)
        self._state = ExecutorState.IDLE
        self._progress_cb: Callable[[ExecutorProgress], None] | None = None
        self._progress = ExecutorProgress(
            state=ExecutorState.IDLE, total=len(self._targets),
        )

    # ------------------------------------------------------------------
    # Common
    # ------------------------------------------------------------------

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def progress(self) -> ExecutorProgress:
        return self._progress

    def set_progress_callback(
        self, fn: Callable[[ExecutorProgress], None],
    ) -> None:
        """Register a callback invoked after every placed target."""
        self._progress_cb = fn

    def _notify(self, **kwargs: object) -> None:
        for k, v in kwargs.items():
            if hasattr(self._progress, k):
                setattr(self._progress, k, v)
        self._progress.state = self._state
        if self._progress_cb is not None:
            try:
                self._progress_cb(self._progress)
            except Exception as exc:  # noqa: BLE001
                logger.error("Progress callback error: %s", exc)

    # ------------------------------------------------------------------
    # Primitive emission
    # ------------------------------------------------------------------

    def _emit(self, prim: Primitive) -> None:
        """Send one primitive, update cursor/state, then wait its delay."""
        if isinstance(prim, MoveCursor):
            self._state = ExecutorState.MOVING
        elif isinstance(prim, SelectColor):
            self._state = ExecutorState.SELECTING_COLOR
        elif isinstance(prim, Commit):
            self._state = ExecutorState.COMMITTING

        self._session.press_key(self._keys.key_for(prim))

        if isinstance(prim, MoveCursor):
            self.cursor.x += prim.direction.dx
            self.cursor.y += prim.direction.dy
            self._progress.moves += 1
            self._sleep(self._timing.key_delay_s)
        elif isinstance(prim, SelectColor):
            self._sleep(self._timing.key_delay_s)
        else:
            self._sleep(self._timing.action_delay_s)

    def place(self, target: PlacementTarget) -> None:
        """Emit the full primitive sequence for *target* from the cursor.

        Raises
        ------
        ActuationError
            If any primitive fails; the cursor reflects every move sent
            before the failure.
        """
        prims = plan_target(self.cursor.x, self.cursor.y, target)
        n_moves = len(prims) - 2
        if n_moves:
            logger.debug(
                "%s: moving %d steps to (%d, %d)",
                self._label, n_moves, target.x, target.y,
            )
        for prim in prims:
            self._emit(prim)
        self._state = ExecutorState.IDLE

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def run(self) -> ExecutorProgress:
        """Place every target in order.

        Returns
        -------
        ExecutorProgress
            Final snapshot; ``state`` is ``DONE`` or ``FAILED``.
        """
        total = len(self._targets)
        logger.info(
            "%s: Starting pixel placement with %d pixels", self._label, total,
        )
        self._state = ExecutorState.IDLE
        self._notify(placed=0, message="Started")

        index = 0
        attempts = 0
        while index < total:
            target = self._targets[index]
            logger.info(
                "%s: Placing pixel %d/%d at (%d, %d) with color %s",
                self._label, index + 1, total, target.x, target.y, target.symbol,
            )
            try:
                self.place(target)
            except ActuationError as exc:
                attempts += 1
                self._progress.failures += 1
                logger.warning(
                    "%s: Error placing pixel (attempt %d) - %s",
                    self._label, attempts, exc,
                )
                if self._retry.exhausted(attempts):
                    self._state = ExecutorState.FAILED
                    self._notify(
                        placed=index,
                        message=f"Gave up on pixel {index + 1} after {attempts} attempts",
                    )
                    logger.error(
                        "%s: Giving up on pixel %d/%d after %d attempts",
                        self._label, index + 1, total, attempts,
                    )
                    return self._progress
                self._state = ExecutorState.IDLE
                self._sleep(
                    self._retry.delay_for(attempts, self._timing.action_delay_s)
                )
                continue
            except SessionClosedError as exc:
                self._state = ExecutorState.FAILED
                self._notify(placed=index, message=f"Session closed: {exc}")
                logger.error("%s: Session closed - %s", self._label, exc)
                return self._progress

            logger.info(
                "%s: Placed pixel at (%d, %d)", self._label, target.x, target.y,
            )
            index += 1
            attempts = 0
            self._notify(placed=index, message=f"Pixel {index}/{total}")

        self._state = ExecutorState.DONE
        self._notify(placed=total, message="Complete")
        logger.info("%s: Completed all pixel placements!", self._label)
        return self._progress

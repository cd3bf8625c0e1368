"""Job IR -- the vocabulary between compiled images and key presses.

A compiled image is a *path*: an ordered tuple of ``PlacementTarget``
values in absolute canvas coordinates.  Executing one target expands into
*primitives*: unit cursor moves, one color selection and one commit.

Every value here is an immutable, slotted dataclass.  Order inside a path
is semantically meaningful (it is the traversal the agent follows).

Movement convention:
    Canvas coordinates grow right (+x) and down (+y).  All horizontal
    moves for a target are issued before any vertical move.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlacementTarget:
    """One pixel to place.

    Parameters
    ----------
    x, y : int
        Absolute canvas coordinates (raster coordinate + origin).
    symbol : str
        Palette symbol selecting the color.
    """

    x: int
    y: int
    symbol: str


Path = tuple[PlacementTarget, ...]
"""Ordered placement targets for one run."""


@dataclass(frozen=True, slots=True)
class Chunk:
    """Contiguous share of a path owned by one agent.

    Parameters
    ----------
    index : int
        Zero-based agent slot.
    start : int
        Offset of the first target within the full path.
    targets : tuple[PlacementTarget, ...]
        The targets, in path order.
    """

    index: int
    start: int
    targets: Path

    def __len__(self) -> int:
        return len(self.targets)

    @property
    def end(self) -> int:
        """Offset of the last target within the full path (inclusive)."""
        return self.start + len(self.targets) - 1


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


class Direction(Enum):
    """Unit cursor move; value is the ``(dx, dy)`` delta."""

    LEFT = (-1, 0)
    RIGHT = (1, 0)
    UP = (0, -1)
    DOWN = (0, 1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]


@dataclass(frozen=True, slots=True)
class Primitive(ABC):
    """Base class for atomic actuation units."""

    pass


@dataclass(frozen=True, slots=True)
class MoveCursor(Primitive):
    """Move the canvas cursor one cell."""

    direction: Direction


@dataclass(frozen=True, slots=True)
class SelectColor(Primitive):
    """Select the palette color bound to *symbol*."""

    symbol: str

    def __post_init__(self) -> None:
        if len(self.symbol) != 1:
            raise ValueError(
                f"symbol must be a single character, got {self.symbol!r}"
            )


@dataclass(frozen=True, slots=True)
class Commit(Primitive):
    """Place the selected color at the current cursor position."""

    pass


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def plan_moves(cx: int, cy: int, tx: int, ty: int) -> list[Direction]:
    """Unit moves from ``(cx, cy)`` to ``(tx, ty)``, horizontal first."""
    dx = tx - cx
    dy = ty - cy
    moves = [Direction.RIGHT if dx > 0 else Direction.LEFT] * abs(dx)
    moves += [Direction.DOWN if dy > 0 else Direction.UP] * abs(dy)
    return moves


def plan_target(cx: int, cy: int, target: PlacementTarget) -> list[Primitive]:
    """Full primitive sequence placing *target* from cursor ``(cx, cy)``."""
    prims: list[Primitive] = [
        MoveCursor(d) for d in plan_moves(cx, cy, target.x, target.y)
    ]
    prims.append(SelectColor(target.symbol))
    prims.append(Commit())
    return prims


def path_travel(targets: Sequence[PlacementTarget], start: tuple[int, int]) -> int:
    """Total unit moves needed to visit *targets* in order from *start*."""
    cx, cy = start
    total = 0
    for t in targets:
        total += abs(t.x - cx) + abs(t.y - cy)
        cx, cy = t.x, t.y
    return total

"""Key generator -- primitives to key names understood by the driver.

The canvas is keyboard-driven: arrow keys move the cursor, the palette
symbol selects a color and a commit key places it.  Key names follow the
browser ``KeyboardEvent.key`` convention (``"ArrowLeft"``, ``"Enter"``),
which is what the automation driver's ``press_key`` expects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from canvas_placer.job_ir.operations import (
    Commit,
    Direction,
    MoveCursor,
    Primitive,
    SelectColor,
)


class KeyMappingError(Exception):
    """Raised when a primitive has no key binding."""

    pass


@dataclass(frozen=True)
class KeyBindings:
    """Key names for cursor moves and commit."""

    left: str = "ArrowLeft"
    right: str = "ArrowRight"
    up: str = "ArrowUp"
    down: str = "ArrowDown"
    commit: str = "Enter"

    def for_direction(self, direction: Direction) -> str:
        return {
            Direction.LEFT: self.left,
            Direction.RIGHT: self.right,
            Direction.UP: self.up,
            Direction.DOWN: self.down,
        }[direction]


class KeyGenerator:
    """Converts primitives into key presses.

    Parameters
    ----------
    bindings : KeyBindings
        Key names for moves and commit.  Color selection always presses
        the palette symbol itself.
    """

    def __init__(self, bindings: KeyBindings | None = None) -> None:
        self.bindings = bindings or KeyBindings()

    def key_for(self, prim: Primitive) -> str:
        if isinstance(prim, MoveCursor):
            return self.bindings.for_direction(prim.direction)
        if isinstance(prim, SelectColor):
            return prim.symbol
        if isinstance(prim, Commit):
            return self.bindings.commit
        raise KeyMappingError(f"No key binding for {type(prim).__name__}")

    def generate(self, prims: Iterable[Primitive]) -> list[str]:
        """Key names for *prims*, in order."""
        return [self.key_for(p) for p in prims]

"""
Job Intermediate Representation module.

Placement targets, chunks and the primitive vocabulary (move, select
color, commit) shared by the compiler and the executor.

All coordinates are absolute canvas cells.
"""

from canvas_placer.job_ir.operations import (
    Chunk,
    Commit,
    Direction,
    MoveCursor,
    Path,
    PlacementTarget,
    Primitive,
    SelectColor,
    path_travel,
    plan_moves,
    plan_target,
)

__all__ = [
    "Chunk",
    "Commit",
    "Direction",
    "MoveCursor",
    "Path",
    "PlacementTarget",
    "Primitive",
    "SelectColor",
    "path_travel",
    "plan_moves",
    "plan_target",
]

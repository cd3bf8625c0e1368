"""Work partitioner -- split a path into per-agent chunks."""

from __future__ import annotations

import math
from typing import Sequence

from canvas_placer.job_ir.operations import Chunk, PlacementTarget


def partition_path(path: Sequence[PlacementTarget], agents: int) -> list[Chunk]:
    """Split *path* into contiguous chunks of ``ceil(len / agents)`` targets.

    Chunks keep path order and never overlap; concatenating their targets
    reproduces *path*.  Trailing empty chunks (when the path is shorter
    than ``agents``) are dropped, so fewer than *agents* chunks may come
    back.

    Raises
    ------
    ValueError
        If *agents* < 1.

    Examples
    --------
    >>> [len(c) for c in partition_path(list(range(7)), 3)]
    [3, 3, 1]
    """
    if agents < 1:
        raise ValueError(f"agents must be >= 1, got {agents}")

    size = math.ceil(len(path) / agents)
    chunks: list[Chunk] = []
    for i in range(agents):
        start = i * size
        targets = tuple(path[start:start + size])
        if targets:
            chunks.append(Chunk(index=i, start=start, targets=targets))
    return chunks

"""Image-to-path compiler.

Turns a decoded RGBA raster into an ordered placement path:

1. Row-major scan: every pixel is classified against the palette;
   transparent pixels are skipped, the rest become ``PlacementTarget``
   values at ``(x + ox, y + oy)`` indexed by absolute coordinate.
2. Emission order is re-derived with a boustrophedon ("snake") scan over
   the full ``width x height`` grid, looking each coordinate up in the
   index and skipping holes.

Strategies
----------
``top-to-bottom``
    Rows top→bottom; even rows left→right, odd rows right→left.
``bottom-to-top``
    Rows bottom→top; row index counted from the bottom picks direction.
``left-to-right``
    Columns left→right; even columns top→bottom, odd bottom→top.
``right-to-left``
    Columns right→left; column index counted from the right picks direction.

Any other name keeps the raw row-major order from step 1.

Snake order avoids a carriage-return jump at the end of every row or
column, which is what dominates cursor travel with plain row-major order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path as FsPath
from typing import Iterator

import numpy as np

from canvas_placer.job_ir.operations import Path, PlacementTarget
from canvas_placer.palette.classifier import SKIP, Palette
from canvas_placer.utils.fs import load_rgba_image

logger = logging.getLogger(__name__)

STRATEGIES = ("top-to-bottom", "bottom-to-top", "left-to-right", "right-to-left")
DEFAULT_STRATEGY = "top-to-bottom"


@dataclass(frozen=True)
class CompiledImage:
    """Compiler output.

    Parameters
    ----------
    path : Path
        Placement targets in emission order.
    width, height : int
        Raster size in pixels.
    origin : tuple[int, int]
        Absolute canvas coordinate of raster pixel ``(0, 0)``.
    strategy : str
        Strategy name as requested.
    skipped : int
        Number of transparent pixels left out.
    """

    path: Path
    width: int
    height: int
    origin: tuple[int, int]
    strategy: str
    skipped: int

    def __len__(self) -> int:
        return len(self.path)


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def snake_order(width: int, height: int, strategy: str) -> Iterator[tuple[int, int]]:
    """Yield raster ``(x, y)`` coordinates in the strategy's snake order.

    Raises
    ------
    ValueError
        If *strategy* is not one of ``STRATEGIES``.
    """
    if strategy == "top-to-bottom":
        for i, y in enumerate(range(height)):
            xs = range(width) if i % 2 == 0 else range(width - 1, -1, -1)
            for x in xs:
                yield x, y
    elif strategy == "bottom-to-top":
        for i, y in enumerate(range(height - 1, -1, -1)):
            xs = range(width) if i % 2 == 0 else range(width - 1, -1, -1)
            for x in xs:
                yield x, y
    elif strategy == "left-to-right":
        for i, x in enumerate(range(width)):
            ys = range(height) if i % 2 == 0 else range(height - 1, -1, -1)
            for y in ys:
                yield x, y
    elif strategy == "right-to-left":
        for i, x in enumerate(range(width - 1, -1, -1)):
            ys = range(height) if i % 2 == 0 else range(height - 1, -1, -1)
            for y in ys:
                yield x, y
    else:
        raise ValueError(
            f"Unknown strategy {strategy!r}; expected one of {', '.join(STRATEGIES)}"
        )


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def compile_path(
    rgba: np.ndarray,
    origin: tuple[int, int],
    strategy: str,
    palette: Palette,
) -> CompiledImage:
    """Compile an (H, W, 4) uint8 raster into a placement path.

    Parameters
    ----------
    rgba : np.ndarray
        Decoded image, shape (H, W, 4).
    origin : tuple[int, int]
        Absolute canvas coordinate of the top-left pixel.
    strategy : str
        Traversal strategy name (see module docstring).
    palette : Palette
        Colors to quantize against.

    Returns
    -------
    CompiledImage
    """
    height, width = rgba.shape[:2]
    ox, oy = origin
    indices = palette.classify_array(rgba)
    symbols = palette.symbols

    scan: list[PlacementTarget] = []
    by_coord: dict[tuple[int, int], PlacementTarget] = {}
    for y in range(height):
        row = indices[y]
        for x in np.flatnonzero(row != SKIP):
            x = int(x)
            target = PlacementTarget(x + ox, y + oy, symbols[row[x]])
            scan.append(target)
            by_coord[(target.x, target.y)] = target

    skipped = width * height - len(scan)

    if strategy in STRATEGIES:
        ordered = []
        for x, y in snake_order(width, height, strategy):
            target = by_coord.get((x + ox, y + oy))
            if target is not None:
                ordered.append(target)
        path: Path = tuple(ordered)
    else:
        logger.warning(
            "Unknown placement strategy %r; keeping row-major scan order",
            strategy,
        )
        path = tuple(scan)

    logger.info(
        "Processed image: %dx%d, %d pixels to place (%d transparent skipped)",
        width, height, len(path), skipped,
    )
    return CompiledImage(
        path=path,
        width=width,
        height=height,
        origin=(ox, oy),
        strategy=strategy,
        skipped=skipped,
    )


def compile_image_file(
    image_path: str | FsPath,
    origin: tuple[int, int],
    strategy: str,
    palette: Palette,
) -> CompiledImage:
    """Decode *image_path* and compile it.

    Raises
    ------
    ImageDecodeError
        If the file is missing or cannot be decoded.  Nothing is placed
        in that case; callers abort the run.
    """
    rgba = load_rgba_image(image_path)
    logger.info("Loaded image %s", image_path)
    return compile_path(rgba, origin, strategy, palette)


def render_preview(compiled: CompiledImage, palette: Palette) -> np.ndarray:
    """Render the compiled path back into an (H, W, 4) uint8 image.

    Placed pixels take their palette color at full opacity; skipped
    pixels stay fully transparent.
    """
    out = np.zeros((compiled.height, compiled.width, 4), dtype=np.uint8)
    ox, oy = compiled.origin
    for t in compiled.path:
        out[t.y - oy, t.x - ox, :3] = palette.entry_for(t.symbol).rgb
        out[t.y - oy, t.x - ox, 3] = 255
    return out

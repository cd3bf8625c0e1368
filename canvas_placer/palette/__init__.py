"""Palette definition and nearest-color classification."""

from canvas_placer.palette.classifier import (
    ALPHA_THRESHOLD,
    SKIP,
    Palette,
    PaletteEntry,
    classify,
)

__all__ = ["ALPHA_THRESHOLD", "SKIP", "Palette", "PaletteEntry", "classify"]

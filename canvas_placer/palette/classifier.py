"""Nearest-palette color classification.

Maps RGBA samples to the symbol of the closest palette entry by Euclidean
distance in raw RGB space.  No perceptual conversion is applied: the
palettes involved are small and hand-picked, and raw RGB distance is the
accepted approximation.

Transparency:
    Samples with ``alpha < ALPHA_THRESHOLD`` are never placed; the scalar
    API returns ``None`` and the array API returns ``SKIP`` (-1).

Tie-break:
    The first palette entry (declaration order) achieving the minimum
    distance wins.  Distances are compared as exact integer squares, and
    ``numpy.argmin`` returns the first minimum, so scalar and array paths
    agree bit-for-bit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

import numpy as np

ALPHA_THRESHOLD = 128
"""Samples with alpha strictly below this are skipped."""

SKIP = -1
"""Palette index used by ``classify_array`` for skipped samples."""

_BLOCK = 65536


@dataclass(frozen=True, slots=True)
class PaletteEntry:
    """One selectable canvas color.

    Parameters
    ----------
    rgb : tuple[int, int, int]
        Color value, 0-255 per channel.
    symbol : str
        Single-character key that selects this color on the canvas.
    name : str
        Human-readable label for logs and reports.
    """

    rgb: tuple[int, int, int]
    symbol: str
    name: str = ""

    def __post_init__(self) -> None:
        if len(self.symbol) != 1:
            raise ValueError(
                f"palette symbol must be a single character, got {self.symbol!r}"
            )
        if len(self.rgb) != 3 or any(not 0 <= c <= 255 for c in self.rgb):
            raise ValueError(f"rgb must be three 0-255 values, got {self.rgb!r}")

    @classmethod
    def from_hex(cls, hex_color: str, symbol: str, name: str = "") -> PaletteEntry:
        """Build from a ``#RRGGBB`` string."""
        h = hex_color.strip().lstrip("#")
        if len(h) != 6:
            raise ValueError(f"expected #RRGGBB color, got {hex_color!r}")
        rgb = (int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
        return cls(rgb=rgb, symbol=symbol, name=name)

    @property
    def hex(self) -> str:
        return "#{:02X}{:02X}{:02X}".format(*self.rgb)


class Palette:
    """Ordered, read-only collection of palette entries.

    Declaration order is significant: it decides ties in ``classify``.

    Raises
    ------
    ValueError
        If the palette is empty or two entries share a symbol.
    """

    def __init__(self, entries: Iterable[PaletteEntry]) -> None:
        self._entries: tuple[PaletteEntry, ...] = tuple(entries)
        if not self._entries:
            raise ValueError("palette must contain at least one entry")

        seen: set[str] = set()
        for entry in self._entries:
            if entry.symbol in seen:
                raise ValueError(f"duplicate palette symbol {entry.symbol!r}")
            seen.add(entry.symbol)

        self._rgb = np.array([e.rgb for e in self._entries], dtype=np.int32)
        self._rgb.setflags(write=False)
        self._by_symbol = {e.symbol: e for e in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PaletteEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> PaletteEntry:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"Palette({len(self._entries)} colors)"

    @property
    def entries(self) -> tuple[PaletteEntry, ...]:
        return self._entries

    @property
    def rgb(self) -> np.ndarray:
        """(P, 3) int32 read-only array of palette colors."""
        return self._rgb

    @property
    def symbols(self) -> tuple[str, ...]:
        return tuple(e.symbol for e in self._entries)

    def entry_for(self, symbol: str) -> PaletteEntry:
        """Return the entry for *symbol* or raise ``KeyError``."""
        return self._by_symbol[symbol]

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def nearest_index(self, r: int, g: int, b: int) -> int:
        """Index of the closest entry, ignoring alpha."""
        sample = np.array([r, g, b], dtype=np.int32)
        dist2 = ((self._rgb - sample) ** 2).sum(axis=1)
        return int(np.argmin(dist2))

    def classify(self, r: int, g: int, b: int, a: int) -> str | None:
        """Symbol of the closest color, or ``None`` for a transparent sample."""
        if a < ALPHA_THRESHOLD:
            return None
        return self._entries[self.nearest_index(r, g, b)].symbol

    def classify_array(self, rgba: np.ndarray) -> np.ndarray:
        """Classify every pixel of an (H, W, 4) image.

        Returns
        -------
        np.ndarray
            (H, W) int array of palette indices, ``SKIP`` where alpha is
            below ``ALPHA_THRESHOLD``.
        """
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"expected (H, W, 4) RGBA array, got {rgba.shape}")

        h, w, _ = rgba.shape
        pixels = rgba.reshape(-1, 4).astype(np.int32)
        indices = np.empty(len(pixels), dtype=np.int64)

        # Blocked to bound the (N, P, 3) intermediate on large images
        for start in range(0, len(pixels), _BLOCK):
            block = pixels[start:start + _BLOCK, :3]
            diff = block[:, None, :] - self._rgb[None, :, :]
            dist2 = (diff * diff).sum(axis=2)
            indices[start:start + _BLOCK] = np.argmin(dist2, axis=1)

        indices[pixels[:, 3] < ALPHA_THRESHOLD] = SKIP
        return indices.reshape(h, w)


def classify(palette: Palette, r: int, g: int, b: int, a: int) -> str | None:
    """Module-level convenience for ``palette.classify``."""
    return palette.classify(r, g, b, a)

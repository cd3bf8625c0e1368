"""Filesystem helpers: YAML loading, image decoding and atomic writes.

Provides:
    - YAML load with a clear error for empty / non-mapping documents
    - RGBA image decoding via Pillow
    - Atomic writes: tmp file → fsync → rename (no partially written previews)

All paths use pathlib.Path.

Usage:
    from canvas_placer.utils import fs
    data = fs.load_yaml("placer.yaml")
    rgba = fs.load_rgba_image("art.png")
    fs.atomic_save_image(preview, "outputs/preview.png")
"""

import io
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image, UnidentifiedImageError


class ImageDecodeError(Exception):
    """Raised when a source image is missing or cannot be decoded."""

    pass


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory (and parents) if missing, return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save an (H, W, 3) or (H, W, 4) uint8 array atomically.

    The file format is taken from the extension of *path*.
    """
    path = Path(path)
    if img.dtype != np.uint8:
        raise ValueError(f"Expected uint8 image, got {img.dtype}")
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise ValueError(f"Expected (H, W, 3|4) image, got shape {img.shape}")

    pil_img = Image.fromarray(np.ascontiguousarray(img))

    fmt = path.suffix.lstrip('.').upper() or "PNG"
    if fmt == "JPG":
        fmt = "JPEG"

    buf = io.BytesIO()
    pil_img.save(buf, format=fmt, **(pil_kwargs or {}))
    atomic_write_bytes(path, buf.getvalue())


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML mapping.

    Raises
    ------
    FileNotFoundError
        If *path* doesn't exist
    ValueError
        If the document is empty or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Empty YAML file: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping, got {type(data).__name__}: {path}")

    return data


def load_rgba_image(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file into an (H, W, 4) uint8 RGBA array.

    Any mode Pillow understands is converted to RGBA; images without an
    alpha channel come back fully opaque.

    Raises
    ------
    ImageDecodeError
        If the file does not exist or Pillow cannot decode it.
    """
    path = Path(path)
    if not path.is_file():
        raise ImageDecodeError(f"Image not found: {path}")

    try:
        with Image.open(path) as img:
            img.load()
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Could not decode image {path}: {e}") from e

    return np.asarray(rgba, dtype=np.uint8).copy()

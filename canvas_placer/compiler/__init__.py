"""Image-to-path compilation and work partitioning."""

from canvas_placer.compiler.image_path import (
    DEFAULT_STRATEGY,
    STRATEGIES,
    CompiledImage,
    compile_image_file,
    compile_path,
    render_preview,
    snake_order,
)
from canvas_placer.compiler.partition import partition_path

__all__ = [
    "DEFAULT_STRATEGY",
    "STRATEGIES",
    "CompiledImage",
    "compile_image_file",
    "compile_path",
    "partition_path",
    "render_preview",
    "snake_order",
]

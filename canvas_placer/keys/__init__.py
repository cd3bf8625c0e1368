"""Key-name generation from job IR primitives."""

from canvas_placer.keys.generator import KeyBindings, KeyGenerator, KeyMappingError

__all__ = ["KeyBindings", "KeyGenerator", "KeyMappingError"]

"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - YAML loading, image decoding and atomic writes (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (compiler, session, etc.).

Convenience imports:
    from canvas_placer.utils import fs
    from canvas_placer.utils.logging_config import setup_logging, agent_context
"""

from . import fs
from . import logging_config

__all__ = ["fs", "logging_config"]

"""
Canvas Placer Package.

Reproduces a raster image on a shared pixel canvas by driving several
browser sessions concurrently, each through its own proxy identity and
each pressing keys (arrows, palette symbol, commit) over its share of the
image.

Subpackages:
    palette: Palette definition and nearest-color classification
    compiler: Image to snake-ordered placement path, and path partitioning
    job_ir: Placement targets, chunks and key-level primitives
    keys: Primitive to key-name mapping
    identities: Proxy identity parsing, pool and allocation
    session: Driver interface, Playwright sessions, executor and orchestrator
    configs: Placer configuration loading and validation
    utils: Logging setup and file helpers
"""

__version__ = "0.1.0"

__all__ = [
    "palette",
    "compiler",
    "job_ir",
    "keys",
    "identities",
    "session",
    "configs",
    "utils",
]

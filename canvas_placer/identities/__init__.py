"""Identity pool: proxy credentials handed out to agents."""

from canvas_placer.identities.pool import (
    Identity,
    IdentityAllocator,
    IdentityError,
    IdentityPool,
    IdentityPoolExhausted,
    load_identity_file,
    parse_identity_lines,
)

__all__ = [
    "Identity",
    "IdentityAllocator",
    "IdentityError",
    "IdentityPool",
    "IdentityPoolExhausted",
    "load_identity_file",
    "parse_identity_lines",
]

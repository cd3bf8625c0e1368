"""Identity (proxy credential) pool.

Each agent's browser session egresses through one identity.  The pool is a
fixed list loaded once at start-up; selection is uniform random.

Distinctness across concurrently running agents is best-effort by default:
``IdentityAllocator`` draws up to ``max_draws`` times looking for an
identity not yet handed out, then accepts a repeat.  With ``strict=True``
it draws only from the unused remainder under a lock and raises
``IdentityPoolExhausted`` once every identity is taken.

File format (one identity per line)::

    host:port:principal:secret
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Collection, Iterable, Sequence

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Base exception for identity pool errors."""

    pass


class IdentityPoolExhausted(IdentityError):
    """Strict allocation requested but every identity is already in use."""

    pass


@dataclass(frozen=True)
class Identity:
    """Proxy credential tuple.

    ``secret`` is excluded from ``repr`` and from ``label`` so it never
    reaches the logs.
    """

    host: str
    port: int
    principal: str = ""
    secret: str = field(default="", repr=False)

    @property
    def label(self) -> str:
        """``host:port:principal`` -- used for logging and deduplication."""
        return f"{self.host}:{self.port}:{self.principal}"

    @property
    def server(self) -> str:
        return f"http://{self.host}:{self.port}"

    @classmethod
    def parse(cls, line: str) -> Identity | None:
        """Parse ``host:port[:principal[:secret]]``; ``None`` if unusable."""
        parts = line.strip().split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return None
        try:
            port = int(parts[1])
        except ValueError:
            return None
        principal = parts[2] if len(parts) > 2 else ""
        secret = ":".join(parts[3:]) if len(parts) > 3 else ""
        return cls(host=parts[0], port=port, principal=principal, secret=secret)


def parse_identity_lines(lines: Iterable[str]) -> list[Identity]:
    """Parse identity lines, dropping blanks, ``#`` comments and malformed entries."""
    identities: list[Identity] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        ident = Identity.parse(line)
        if ident is None:
            logger.warning("Skipping malformed identity on line %d", lineno)
            continue
        identities.append(ident)
    return identities


def load_identity_file(path: str | Path) -> list[Identity]:
    """Read identities from a text file (see module docstring)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Identity file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        identities = parse_identity_lines(f)
    logger.info("Loaded %d identities from %s", len(identities), path)
    return identities


class IdentityPool:
    """Immutable pool with uniform random selection.

    Parameters
    ----------
    identities : Sequence[Identity]
        Pool contents.  Duplicate entries are kept (they simply weight
        the random draw).
    rng : random.Random, optional
        Source of randomness; injectable for deterministic tests.
    """

    def __init__(
        self,
        identities: Sequence[Identity],
        rng: random.Random | None = None,
    ) -> None:
        self._identities = tuple(identities)
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def identities(self) -> tuple[Identity, ...]:
        return self._identities

    def get_random(self, exclude: Collection[str] = ()) -> Identity:
        """Uniformly random identity (repeats allowed).

        Parameters
        ----------
        exclude : Collection[str]
            Identity labels to leave out of the draw.

        Raises
        ------
        IdentityError
            If no identity is left to draw from.
        """
        candidates = [i for i in self._identities if i.label not in exclude]
        if not candidates:
            raise IdentityError("Identity pool is empty")
        return self._rng.choice(candidates)


class IdentityAllocator:
    """Hands identities out to agents, discouraging repeats.

    Parameters
    ----------
    pool : IdentityPool
        Source pool.
    max_draws : int
        Best-effort mode: random draws attempted before a repeat is accepted.
    strict : bool
        Refuse to hand out an identity twice.
    """

    def __init__(
        self,
        pool: IdentityPool,
        max_draws: int = 100,
        strict: bool = False,
    ) -> None:
        self._pool = pool
        self.max_draws = max_draws
        self.strict = strict
        self._used: set[str] = set()
        self._lock = threading.Lock()

    @property
    def used(self) -> frozenset[str]:
        return frozenset(self._used)

    def acquire(self) -> Identity:
        """Return an identity for a new agent.

        Raises
        ------
        IdentityPoolExhausted
            In strict mode, when every distinct identity is taken.
        IdentityError
            If the pool is empty.
        """
        if self.strict:
            return self._acquire_strict()

        ident = self._pool.get_random()
        draws = 1
        while ident.label in self._used and draws < self.max_draws:
            ident = self._pool.get_random()
            draws += 1
        if ident.label in self._used:
            logger.warning("Reusing identity %s (pool too small)", ident.label)
        self._used.add(ident.label)
        return ident

    def _acquire_strict(self) -> Identity:
        with self._lock:
            try:
                ident = self._pool.get_random(exclude=self._used)
            except IdentityError as exc:
                raise IdentityPoolExhausted(
                    f"All {len(self._used)} distinct identities are in use"
                ) from exc
            self._used.add(ident.label)
            return ident

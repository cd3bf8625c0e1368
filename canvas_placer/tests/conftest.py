"""Shared fixtures: default palette, fast config and in-memory sessions."""

from __future__ import annotations

import dataclasses
from typing import Any, Callable

import pytest

from canvas_placer.configs.loader import BrowserConfig, PlacerConfig, load_config
from canvas_placer.identities.pool import Identity
from canvas_placer.palette.classifier import Palette
from canvas_placer.session.driver import (
    CanvasSession,
    SessionClosedError,
    SessionOpenError,
)


class FakeSession(CanvasSession):
    """Records every call; failures are scripted per key-press number.

    ``fail_on`` maps the 1-based press count to the exception raised
    instead of sending that key.  ``fail_always`` raises on every press.
    """

    def __init__(
        self,
        identity: Identity | None = None,
        agent_index: int = 0,
        *,
        fail_on: dict[int, Exception] | None = None,
        fail_always: Exception | None = None,
        ready: bool = True,
        focus: bool | Exception = True,
        navigate_error: Exception | None = None,
        page_text: str = "",
    ) -> None:
        self.identity = identity
        self.agent_index = agent_index
        self.keys: list[str] = []
        self.urls: list[str] = []
        self.clicks: list[tuple[float, float]] = []
        self.scripts: list[str] = []
        self.presses = 0
        self.closed = False
        self._fail_on = dict(fail_on or {})
        self._fail_always = fail_always
        self._ready = ready
        self._focus = focus
        self._navigate_error = navigate_error
        self._page_text = page_text

    def navigate(self, url: str) -> None:
        self.urls.append(url)
        if self._navigate_error is not None:
            raise self._navigate_error

    def press_key(self, key: str) -> None:
        if self.closed:
            raise SessionClosedError("closed")
        self.presses += 1
        if self._fail_always is not None:
            raise self._fail_always
        exc = self._fail_on.pop(self.presses, None)
        if exc is not None:
            raise exc
        self.keys.append(key)

    def click(self, x: float, y: float) -> None:
        self.clicks.append((x, y))

    def focus_canvas(self) -> bool:
        if isinstance(self._focus, Exception):
            raise self._focus
        return self._focus

    def wait_ready(self, timeout_s: float) -> bool:
        return self._ready

    def evaluate(self, script: str) -> Any:
        self.scripts.append(script)
        return None

    def read_page_text(self) -> str:
        return self._page_text

    def close(self) -> None:
        self.closed = True


class FakeFactory:
    """``SessionFactory`` handing out ``FakeSession`` objects.

    ``open_errors`` lists agent indices whose session fails to open;
    ``session_kwargs`` maps agent index to ``FakeSession`` keyword args.
    """

    def __init__(
        self,
        open_errors: tuple[int, ...] = (),
        session_kwargs: dict[int, dict[str, Any]] | None = None,
    ) -> None:
        self.open_errors = set(open_errors)
        self.session_kwargs = session_kwargs or {}
        self.sessions: dict[int, FakeSession] = {}
        self.calls: list[tuple[Identity, int]] = []

    def __call__(
        self, identity: Identity, config: BrowserConfig, agent_index: int,
    ) -> CanvasSession:
        self.calls.append((identity, agent_index))
        if agent_index in self.open_errors:
            raise SessionOpenError(f"proxy {identity.label} refused")
        session = FakeSession(
            identity, agent_index, **self.session_kwargs.get(agent_index, {}),
        )
        self.sessions[agent_index] = session
        return session


@pytest.fixture(scope="session")
def base_config() -> PlacerConfig:
    """Bundled configuration."""
    return load_config()


@pytest.fixture()
def palette(base_config: PlacerConfig) -> Palette:
    """The bundled 25-color palette."""
    return base_config.palette


@pytest.fixture()
def fast_config(base_config: PlacerConfig) -> PlacerConfig:
    """Bundled config with every delay zeroed and the origin at (0, 0)."""
    cfg = base_config.with_overrides(
        origin=(0, 0),
        action_delay_s=0.0,
        key_delay_s=0.0,
        settle_s=0.0,
    )
    return dataclasses.replace(
        cfg, timing=dataclasses.replace(cfg.timing, post_check_s=0.0),
    )


@pytest.fixture()
def identities() -> list[Identity]:
    return [
        Identity("10.0.0.1", 8001, "alice", "s1"),
        Identity("10.0.0.2", 8002, "bob", "s2"),
        Identity("10.0.0.3", 8003, "carol", "s3"),
    ]


@pytest.fixture()
def fake_session() -> Callable[..., FakeSession]:
    """Build a ``FakeSession`` with scripted behaviour."""
    return FakeSession


@pytest.fixture()
def fake_factory() -> Callable[..., FakeFactory]:
    """Build a ``FakeFactory`` with scripted open failures."""
    return FakeFactory


@pytest.fixture()
def no_sleep() -> Callable[[float], None]:
    return lambda _s: None


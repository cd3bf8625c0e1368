"""Playwright-backed canvas session.

One Chromium instance per agent, launched through the agent's identity
(proxy server + credentials).  Uses the synchronous Playwright API; every
session must be opened, used and closed on the same thread, which is how
the orchestrator runs agents.

Playwright exceptions never leave this module: they are translated into
the ``canvas_placer.session.driver`` taxonomy.
"""

from __future__ import annotations

import logging
from typing import Any

from playwright.sync_api import ConsoleMessage, Error as PlaywrightError, sync_playwright

from canvas_placer.configs.loader import BrowserConfig
from canvas_placer.identities.pool import Identity
from canvas_placer.session.driver import (
    ActuationError,
    CanvasSession,
    NavigationError,
    SessionClosedError,
    SessionOpenError,
)

logger = logging.getLogger(__name__)


class PlaywrightSession(CanvasSession):
    """Canvas session driving a Playwright page.

    Use ``PlaywrightSession.open`` rather than the constructor.
    """

    def __init__(
        self,
        playwright: Any,
        browser: Any,
        context: Any,
        page: Any,
        config: BrowserConfig,
        agent_index: int,
    ) -> None:
        self._pw = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._cfg = config
        self.agent_index = agent_index
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        identity: Identity,
        config: BrowserConfig,
        agent_index: int,
    ) -> PlaywrightSession:
        """Launch a browser bound to *identity*.

        Raises
        ------
        SessionOpenError
            If Playwright cannot start the browser or create the page.
        """
        width, height = config.viewport
        left, top = config.window_position
        proxy: dict[str, str] = {"server": identity.server}
        if identity.principal:
            proxy["username"] = identity.principal
            proxy["password"] = identity.secret

        try:
            pw = sync_playwright().start()
        except PlaywrightError as exc:
            raise SessionOpenError(f"Could not start Playwright: {exc}") from exc

        try:
            browser = pw.chromium.launch(
                headless=config.headless,
                proxy=proxy,
                args=[
                    f"--window-size={width},{height}",
                    f"--window-position={left},{top}",
                ],
            )
            context = browser.new_context(
                viewport={"width": width, "height": height},
            )
            page = context.new_page()
        except PlaywrightError as exc:
            pw.stop()
            raise SessionOpenError(
                f"Could not open browser via {identity.label}: {exc}"
            ) from exc

        session = cls(pw, browser, context, page, config, agent_index)
        if config.forward_console:
            page.on("console", session._on_console)
        logger.info("Browser %d: opened via %s", agent_index + 1, identity.label)
        return session

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for name, closer in (
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._pw.stop),
        ):
            try:
                closer()
            except PlaywrightError as exc:
                logger.debug("Error closing %s: %s", name, exc)

    def _on_console(self, msg: ConsoleMessage) -> None:
        logger.info("CONSOLE [Browser %d]: %s", self.agent_index + 1, msg.text)

    def _check_open(self) -> None:
        if self._closed or self._page.is_closed():
            raise SessionClosedError(f"Browser {self.agent_index + 1} session is closed")

    # ------------------------------------------------------------------
    # Driver interface
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> None:
        self._check_open()
        try:
            self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._cfg.navigation_timeout_s * 1000.0,
            )
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

    def press_key(self, key: str) -> None:
        self._check_open()
        try:
            self._page.keyboard.press(key)
        except PlaywrightError as exc:
            if self._page.is_closed():
                raise SessionClosedError(str(exc)) from exc
            raise ActuationError(f"Key {key!r} failed: {exc}") from exc

    def click(self, x: float, y: float) -> None:
        self._check_open()
        try:
            self._page.mouse.click(x, y, delay=50)
        except PlaywrightError as exc:
            if self._page.is_closed():
                raise SessionClosedError(str(exc)) from exc
            raise ActuationError(f"Click at ({x}, {y}) failed: {exc}") from exc

    def focus_canvas(self) -> bool:
        """Click the centre of the first canvas element, then press Escape."""
        self._check_open()
        try:
            handle = self._page.wait_for_selector(
                self._cfg.canvas_selector,
                timeout=self._cfg.canvas_timeout_s * 1000.0,
            )
            box = handle.bounding_box() if handle is not None else None
        except PlaywrightError as exc:
            logger.warning("Browser %d: canvas not found: %s", self.agent_index + 1, exc)
            return False
        if box is None:
            return False

        self.click(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)
        try:
            self.press_key("Escape")
        except ActuationError as exc:
            logger.debug("Escape after focus failed: %s", exc)
        return True

    def wait_ready(self, timeout_s: float) -> bool:
        self._check_open()
        try:
            self._page.wait_for_selector("body", timeout=timeout_s * 1000.0)
            return True
        except PlaywrightError:
            return False

    def evaluate(self, script: str) -> Any:
        self._check_open()
        try:
            return self._page.evaluate(script)
        except PlaywrightError as exc:
            raise ActuationError(f"Page script failed: {exc}") from exc

    def read_page_text(self) -> str:
        self._check_open()
        try:
            return self._page.inner_text("body")
        except PlaywrightError as exc:
            logger.debug("Could not read page text: %s", exc)
            return ""


def open_playwright_session(
    identity: Identity,
    config: BrowserConfig,
    agent_index: int,
) -> CanvasSession:
    """``SessionFactory`` for production runs."""
    return PlaywrightSession.open(identity, config, agent_index)

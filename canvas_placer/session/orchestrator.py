"""Agent orchestrator -- one session and executor per chunk.

For every chunk the orchestrator:

1. Picks an identity (best-effort distinct, or strict).
2. Opens a session bound to it and loads the canvas URL for the origin.
3. Waits the settle period, focuses the canvas and runs the optional page
   script.
4. Checks the page responds; an unresponsive page means the identity is
   not working and the chunk is abandoned.
5. Runs a ``PlacementExecutor`` over the chunk, then closes the session.

Agents run concurrently on a thread pool and never share mutable state.
A failing agent only loses its own chunk; chunks are not redistributed.
``run(wait=True)`` joins every agent and returns their results;
``run(wait=False)`` returns the futures immediately.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Sequence

from canvas_placer.configs.loader import PlacerConfig
from canvas_placer.identities.pool import (
    Identity,
    IdentityAllocator,
    IdentityError,
    IdentityPool,
)
from canvas_placer.job_ir.operations import Chunk
from canvas_placer.keys.generator import KeyGenerator
from canvas_placer.session.browser import open_playwright_session
from canvas_placer.session.driver import (
    ActuationError,
    CanvasSession,
    SessionError,
    SessionFactory,
)
from canvas_placer.session.executor import ExecutorState, PlacementExecutor
from canvas_placer.utils.logging_config import agent_context

logger = logging.getLogger(__name__)


@dataclass
class AgentResult:
    """Outcome of one agent."""

    index: int
    identity: Identity | None
    total: int
    placed: int = 0
    state: ExecutorState | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is ExecutorState.DONE


def _log_crash(index: int, fut: Future) -> None:
    """Done-callback for unjoined agents: log an escaped exception."""
    if fut.cancelled():
        logger.warning("Browser %d: agent cancelled", index + 1)
        return
    exc = fut.exception()
    if exc is not None:
        logger.error(
            "Browser %d: agent crashed", index + 1,
            exc_info=(type(exc), exc, exc.__traceback__),
        )


class AgentOrchestrator:
    """Launches one agent per chunk.

    Parameters
    ----------
    config : PlacerConfig
        Full configuration (timing, retry, browser, agents, keys).
    pool : IdentityPool
        Identities to draw from.
    session_factory : SessionFactory
        Opens a session for ``(identity, browser_config, agent_index)``.
    sleep : callable
        Delay function; injectable for tests.
    """

    def __init__(
        self,
        config: PlacerConfig,
        pool: IdentityPool,
        session_factory: SessionFactory = open_playwright_session,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = config
        self._factory = session_factory
        self._sleep = sleep
        self._keys = KeyGenerator(config.keys)
        self._allocator = IdentityAllocator(
            pool,
            max_draws=config.agents.identity_draws,
            strict=config.agents.strict_identities,
        )
        self._page_script = self._load_page_script(config.browser.page_script)

    @staticmethod
    def _load_page_script(path: str | None) -> str | None:
        if not path:
            return None
        p = Path(path)
        if not p.is_file():
            logger.warning("Page script %s not found; skipping", p)
            return None
        return p.read_text(encoding="utf-8")

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def run(
        self,
        chunks: Sequence[Chunk],
        wait: bool | None = None,
    ) -> list[AgentResult] | list[Future]:
        """Start one agent per chunk.

        Parameters
        ----------
        chunks : Sequence[Chunk]
            Output of ``partition_path``.
        wait : bool, optional
            Join all agents before returning.  Defaults to
            ``config.agents.wait``.

        Returns
        -------
        list[AgentResult] | list[Future]
            Results in chunk order when joined, otherwise the futures.
        """
        wait = self._cfg.agents.wait if wait is None else wait
        if not chunks:
            logger.info("Nothing to place")
            return []

        assignments: list[tuple[Chunk, Identity | None, str | None]] = []
        for chunk in chunks:
            try:
                identity: Identity | None = self._allocator.acquire()
                error = None
            except IdentityError as exc:
                identity, error = None, str(exc)
            logger.info(
                "Browser %d: Will place %d pixels (%d to %d)",
                chunk.index + 1, len(chunk), chunk.start, chunk.end,
            )
            assignments.append((chunk, identity, error))

        executor = ThreadPoolExecutor(
            max_workers=len(chunks), thread_name_prefix="agent",
        )
        futures = [
            executor.submit(self.run_agent, chunk, identity, error)
            for chunk, identity, error in assignments
        ]
        executor.shutdown(wait=False)

        if not wait:
            for chunk, fut in zip(chunks, futures):
                fut.add_done_callback(partial(_log_crash, chunk.index))
            return futures

        results: list[AgentResult] = []
        for (chunk, identity, _), fut in zip(assignments, futures):
            try:
                results.append(fut.result())
            except Exception as exc:  # noqa: BLE001
                logger.exception("Browser %d: agent crashed", chunk.index + 1)
                results.append(AgentResult(
                    index=chunk.index,
                    identity=identity,
                    total=len(chunk),
                    state=ExecutorState.FAILED,
                    error=f"crashed: {exc}",
                ))

        done = sum(r.ok for r in results)
        logger.info("%d/%d agents completed their chunk", done, len(results))
        return results

    # ------------------------------------------------------------------
    # Single agent
    # ------------------------------------------------------------------

    def run_agent(
        self,
        chunk: Chunk,
        identity: Identity | None,
        identity_error: str | None = None,
    ) -> AgentResult:
        """Run one agent to completion on the calling thread."""
        with agent_context(agent=chunk.index + 1):
            result = AgentResult(index=chunk.index, identity=identity, total=len(chunk))
            if identity is None:
                result.state = ExecutorState.FAILED
                result.error = identity_error or "no identity available"
                logger.error("Browser %d: %s", chunk.index + 1, result.error)
                return result

            label = f"Browser {chunk.index + 1}"
            logger.info("Launching %s with proxy: %s", label, identity.label)

            try:
                session = self._factory(identity, self._cfg.browser, chunk.index)
            except SessionError as exc:
                result.state = ExecutorState.FAILED
                result.error = str(exc)
                logger.error(
                    "%s: Proxy %s FAILED to connect (%s)", label, identity.label, exc,
                )
                return result

            try:
                self._drive(session, chunk, identity, label, result)
            except SessionError as exc:
                result.state = ExecutorState.FAILED
                result.error = str(exc)
                logger.error("%s: %s", label, exc)
            finally:
                session.close()
            return result

    def _drive(
        self,
        session: CanvasSession,
        chunk: Chunk,
        identity: Identity,
        label: str,
        result: AgentResult,
    ) -> None:
        cfg = self._cfg
        url = cfg.browser.canvas_url(cfg.image.origin)

        logger.info("%s: Navigating to %s...", label, url)
        session.navigate(url)

        logger.info(
            "%s: Waiting %.1f seconds before starting pixel placement...",
            label, cfg.timing.settle_s,
        )
        t0 = time.monotonic()
        self._sleep(cfg.timing.settle_s)
        logger.info(
            "%s: Wait completed after %.0fms - starting pixel placement",
            label, (time.monotonic() - t0) * 1000.0,
        )

        try:
            focused = session.focus_canvas()
        except ActuationError as exc:
            logger.warning("%s: Focus click failed: %s", label, exc)
            focused = False
        if not focused:
            logger.warning("%s: Could not focus the canvas", label)

        if self._page_script is not None:
            try:
                session.evaluate(self._page_script)
            except ActuationError as exc:
                logger.warning("%s: Page script failed: %s", label, exc)
            except NotImplementedError:
                logger.warning("%s: Session cannot run page scripts; skipping", label)

        if not session.wait_ready(cfg.browser.ready_timeout_s):
            result.state = ExecutorState.FAILED
            result.error = f"proxy {identity.label} does not work"
            logger.error("%s: Proxy %s does NOT work.", label, identity.label)
            logger.debug("%s: Page text: %r", label, session.read_page_text()[:500])
            return

        logger.info("%s: Proxy %s is GOOD.", label, identity.label)
        self._sleep(cfg.timing.post_check_s)

        executor = PlacementExecutor(
            session,
            chunk.targets,
            start=cfg.image.origin,
            timing=cfg.timing,
            retry=cfg.retry,
            keys=self._keys,
            label=label,
            sleep=self._sleep,
        )
        progress = executor.run()
        result.placed = progress.placed
        result.state = progress.state
        if progress.state is not ExecutorState.DONE:
            result.error = progress.message

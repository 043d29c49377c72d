# src/watch/reconciler.py — v1
"""Watch-mode state machine.

    IDLE --start()--> WATCHING --add/change--> REGENERATING --done--> WATCHING
                      WATCHING --unlink--> (clean destination) --> WATCHING

At most one action runs at a time per session. Events that arrive while an
action is running are coalesced: only the latest one is kept and it runs
once the current action finishes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Literal

from rfgbuild.watch.session import WatchEvent, WatchEventKind, WatchSession, WatchState

logger = logging.getLogger(__name__)

Action = Literal["regenerate", "clean"]

_ACTIONS: dict[WatchEventKind, Action] = {
    WatchEventKind.ADD: "regenerate",
    WatchEventKind.CHANGE: "regenerate",
    WatchEventKind.UNLINK: "clean",
}


class WatchReconciler:
    """Drive regeneration and cleanup from a session's file events."""

    def __init__(
        self,
        session: WatchSession,
        regenerate: Callable[[], Awaitable[Any]],
        clean: Callable[[], Awaitable[Any]],
    ) -> None:
        self._session = session
        self._regenerate = regenerate
        self._clean = clean
        self._pending: Action | None = None
        self._runner: asyncio.Task[None] | None = None
        self._listener: asyncio.Task[None] | None = None
        self.completed_runs = 0

    @property
    def state(self) -> WatchState:
        return self._session.state

    @property
    def busy(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def start(self, ignore_initial: bool = False) -> bool:
        """Attach the session and begin listening. False if already started."""
        if self._session.state is not WatchState.IDLE:
            return False
        self._session.attach(ignore_initial=ignore_initial)
        self._session.state = WatchState.WATCHING
        self._listener = asyncio.create_task(self._listen())
        logger.info("Watching %s", self._session.path)
        return True

    async def stop(self) -> None:
        """Stop listening, let an in-flight action finish, return to IDLE."""
        self._pending = None
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self.wait_idle()
        self._session.detach()
        self._session.state = WatchState.IDLE
        logger.info("Stopped watching %s", self._session.path)

    async def wait_idle(self) -> None:
        """Wait for the current action (and anything coalesced behind it)."""
        while self._runner is not None and not self._runner.done():
            await asyncio.shield(self._runner)

    def handle(self, event: WatchEvent) -> None:
        """React to one file event."""
        action = _ACTIONS.get(event.kind)
        if action is None or self._session.state is WatchState.IDLE:
            return
        if self.busy:
            logger.debug("Deferring %s (%s) until the current run finishes", action, event.kind.value)
            self._pending = action
            return
        self._runner = asyncio.create_task(self._drain(action))

    async def _listen(self) -> None:
        try:
            async for event in self._session.events():
                self.handle(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Watcher for %s failed", self._session.path)

    async def _drain(self, action: Action | None) -> None:
        while action is not None:
            await self._run(action)
            action, self._pending = self._pending, None
        if self._session.state is WatchState.REGENERATING:
            self._session.state = WatchState.WATCHING

    async def _run(self, action: Action) -> None:
        try:
            if action == "regenerate":
                self._session.state = WatchState.REGENERATING
                await self._regenerate()
            else:
                await self._clean()
        except Exception:
            logger.exception("Watch %s run failed for %s", action, self._session.path)
        finally:
            if self._session.state is WatchState.REGENERATING:
                self._session.state = WatchState.WATCHING
            self.completed_runs += 1

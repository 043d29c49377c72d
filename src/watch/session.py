# src/watch/session.py — v1
"""Watch session: one source path, a pluggable backend and rename recovery.

Some editors save by deleting and recreating the file. Backends report that
as a ``rename`` event; the session's reconnection strategy then re-attaches
the path so later writes keep being noticed. The reconciliation state
machine (reconciler.py) never sees backend details.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, NamedTuple

logger = logging.getLogger(__name__)


class WatchState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    REGENERATING = "regenerating"


class WatchEventKind(str, Enum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    RENAME = "rename"


@dataclass(frozen=True)
class WatchEvent:
    kind: WatchEventKind
    path: Path


# === BACKENDS ===


class WatchBackend(ABC):
    """Source of file events for attached paths."""

    @abstractmethod
    def attach(self, path: Path, ignore_initial: bool = False) -> None:
        """Start reporting events for ``path``."""

    @abstractmethod
    def detach(self, path: Path) -> None:
        """Stop reporting events for ``path``."""

    @abstractmethod
    def events(self) -> AsyncIterator[WatchEvent]:
        """Yield events until closed."""

    def close(self) -> None:
        """Stop the event stream."""


class _Snapshot(NamedTuple):
    inode: int
    mtime_ns: int
    size: int


def _snapshot(path: Path) -> _Snapshot | None:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    return _Snapshot(st.st_ino, st.st_mtime_ns, st.st_size)


class PollingWatchBackend(WatchBackend):
    """Stat-polling backend. An inode change is reported as rename + change."""

    def __init__(self, interval_s: float = 0.5) -> None:
        self._interval_s = interval_s
        self._watched: dict[Path, _Snapshot | None] = {}
        self._closed = False

    def attach(self, path: Path, ignore_initial: bool = False) -> None:
        # A None baseline makes an existing file show up as "add" on first poll.
        self._watched[path] = _snapshot(path) if ignore_initial else None

    def detach(self, path: Path) -> None:
        self._watched.pop(path, None)

    def close(self) -> None:
        self._closed = True

    def poll(self) -> list[WatchEvent]:
        """Compare every attached path against its last snapshot."""
        events: list[WatchEvent] = []
        for path, previous in list(self._watched.items()):
            current = _snapshot(path)
            self._watched[path] = current
            if previous is None and current is None:
                continue
            if previous is None:
                events.append(WatchEvent(WatchEventKind.ADD, path))
            elif current is None:
                events.append(WatchEvent(WatchEventKind.UNLINK, path))
            elif current.inode != previous.inode:
                events.append(WatchEvent(WatchEventKind.RENAME, path))
                events.append(WatchEvent(WatchEventKind.CHANGE, path))
            elif current != previous:
                events.append(WatchEvent(WatchEventKind.CHANGE, path))
        return events

    async def events(self) -> AsyncIterator[WatchEvent]:
        while not self._closed:
            for event in self.poll():
                yield event
            await asyncio.sleep(self._interval_s)


# === RECONNECTION ===


class ReconnectStrategy(ABC):
    """What to do when the watched path is replaced behind the backend's back."""

    @abstractmethod
    def reconnect(self, session: WatchSession) -> None:
        ...


class ReattachOnRename(ReconnectStrategy):
    """Detach then re-attach the same path."""

    def reconnect(self, session: WatchSession) -> None:
        logger.debug("Re-attaching %s after atomic rename", session.path)
        session.backend.detach(session.path)
        session.backend.attach(session.path, ignore_initial=True)


class NoReconnect(ReconnectStrategy):
    def reconnect(self, session: WatchSession) -> None:
        return None


# === SESSION ===


class WatchSession:
    """Binds one source path to a backend and the watcher state."""

    def __init__(
        self,
        path: Path,
        backend: WatchBackend,
        strategy: ReconnectStrategy | None = None,
        rename_recovery: bool = True,
    ) -> None:
        self.path = Path(path)
        self.backend = backend
        self.strategy = strategy or ReattachOnRename()
        self.rename_recovery = rename_recovery
        self.state = WatchState.IDLE

    def attach(self, ignore_initial: bool = False) -> None:
        self.backend.attach(self.path, ignore_initial=ignore_initial)

    def detach(self) -> None:
        self.backend.detach(self.path)
        self.backend.close()

    async def events(self) -> AsyncIterator[WatchEvent]:
        """Backend events for this path, with renames handled internally."""
        async for event in self.backend.events():
            if event.path != self.path:
                continue
            if event.kind is WatchEventKind.RENAME:
                if self.rename_recovery:
                    self.strategy.reconnect(self)
                continue
            yield event

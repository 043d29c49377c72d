# src/tracking/progress.py — v1
"""Monotonic progress state observed by (but independent of) any UI.

The percentage only moves up within a run: ``raise_floor`` never lowers it
and ``advance`` only adds. ``reset`` starts a new run. Observer failures are
logged and swallowed so reporting can never abort generation.
"""

from __future__ import annotations

import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Literal, Union

logger = logging.getLogger(__name__)

ProgressState = Literal["running", "done", "error"]


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification."""

    percent: int
    message: str
    details: tuple[str, ...] = ()
    state: ProgressState = "running"
    force: bool = False

    @property
    def inline(self) -> str:
        text = f"{self.percent}% {self.message}"
        if self.details:
            text += f" ({' '.join(self.details)})"
        return text


ProgressObserver = Callable[[ProgressEvent], Union[Awaitable[None], None]]


def _clamp(percent: float) -> float:
    return max(0.0, min(100.0, percent))


def _normalize_details(details: str | Iterable[str] | None) -> tuple[str, ...]:
    if details is None:
        return ()
    if isinstance(details, str):
        details = [details]
    return tuple(str(d) for d in details if d)


class ProgressTracker:
    """Raise-only percentage with additive increments."""

    def __init__(self, observer: ProgressObserver | None = None, step: float = 5) -> None:
        self._observer = observer
        self._step = step
        self._percent = 0.0
        self._last: tuple[Any, ...] | None = None

    @property
    def percent(self) -> int:
        return math.floor(self._percent)

    def reset(self) -> None:
        """Start a new run at 0%."""
        self._percent = 0.0
        self._last = None

    def raise_floor(self, percent: float) -> None:
        """Set the percentage to max(current, percent)."""
        self._percent = max(self._percent, _clamp(percent))

    def step_percentage(self, total: int, index: int) -> float:
        """Percentage for item ``index`` of ``total`` within the next 9% slice."""
        if total <= 0:
            return self._percent
        return _clamp(self._percent + (9 / total) * (index + 1))

    async def advance(
        self,
        message: str,
        details: str | Iterable[str] | None = None,
        delta: float | None = None,
    ) -> None:
        """Increment by ``delta`` (default step) and emit."""
        self._percent = _clamp(self._percent + (self._step if delta is None else delta))
        await self.report(self._percent, message, details)

    async def report(
        self,
        percent: float,
        message: str,
        details: str | Iterable[str] | None = None,
        force: bool = False,
        state: ProgressState = "running",
    ) -> None:
        """Emit a progress event without moving the floor.

        Non-forced events identical to the previous one are dropped.
        """
        event = ProgressEvent(
            percent=math.floor(_clamp(percent)),
            message=message,
            details=_normalize_details(details),
            state=state,
            force=force,
        )
        key = (event.percent, event.message, event.details, event.state)
        if not force and key == self._last:
            return
        self._last = key

        logger.debug(event.inline)
        if self._observer is None:
            return
        try:
            result = self._observer(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("Progress observer failed for %r", event.message, exc_info=True)

    async def done(self, message: str, details: str | Iterable[str] | None = None) -> None:
        self._percent = 100.0
        await self.report(100, message, details, force=True, state="done")

    async def fail(self, message: str) -> None:
        await self.report(self._percent, message, force=True, state="error")

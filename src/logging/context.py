# src/logging/context.py — v2
"""Contextual logging support: attach run_id, fingerprint and step to records."""

from __future__ import annotations

import contextvars
import uuid
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
_fingerprint: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fingerprint", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar("step", default=None)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    fingerprint: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(run_id=_run_id.get(), fingerprint=_fingerprint.get(), step=_step.get())


def new_run_context() -> str:
    """Start a generation run: fresh run_id, no fingerprint or step yet."""
    run_id = uuid.uuid4().hex[:12]
    _run_id.set(run_id)
    _fingerprint.set(None)
    _step.set(None)
    return run_id


def set_fingerprint(fingerprint: str) -> None:
    _fingerprint.set(fingerprint[:12])


def set_step(step: str | None) -> None:
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _fingerprint.set(None)
    _step.set(None)

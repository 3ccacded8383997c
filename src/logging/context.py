# src/logging/context.py - v1
"""Contextual logging support: attach run_id, phase and window to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per run execution; asyncio tasks inherit a copy.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)
_window_index: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "window_index", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    phase: str | None = None
    window_index: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        phase=_phase.get(),
        window_index=_window_index.get(),
    )


def set_run_context(run_id: str) -> None:
    """Set run-level context (called once per advance)."""
    _run_id.set(run_id)


def set_phase_context(phase: str | None, window_index: int | None = None) -> None:
    """Set phase-level context (called per phase or per window)."""
    _phase.set(phase)
    _window_index.set(window_index)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _phase.set(None)
    _window_index.set(None)

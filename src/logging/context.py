# src/logging/context.py — v2
"""Contextual logging support — attach batch_id, task_id, source_guid, stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per batch and per item.
_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_source_guid: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source_guid", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    batch_id: str | None = None
    task_id: str | None = None
    source_guid: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        task_id=_task_id.get(),
        source_guid=_source_guid.get(),
        stage=_stage.get(),
    )


def set_batch_context(batch_id: str, task_id: str | None = None) -> None:
    """Set batch-level context (called once per pipeline run)."""
    _batch_id.set(batch_id)
    if task_id is not None:
        _task_id.set(task_id)


def set_item_context(source_guid: str, stage: str | None = None) -> None:
    """Set item-level context (called per item inside its own task)."""
    _source_guid.set(source_guid)
    _stage.set(stage)


def set_stage(stage: str) -> None:
    """Update the stage of the item currently being processed."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _task_id.set(None)
    _source_guid.set(None)
    _stage.set(None)

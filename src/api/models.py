# src/api/models.py — v2
"""API-level models: TriggerReceipt, TaskStatus, paging limits."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from newsweaver.pipeline.models import BatchOutcome

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

TaskState = Literal["pending", "running", "completed", "failed", "cancelled"]


class TriggerReceipt(BaseModel):
    """Immediate reply to a processing trigger."""

    status: Literal["started"] = "started"
    task_id: str
    message: str = "Processing started in background"
    feeds: int


class TaskStatus(BaseModel):
    """Observable state of a background pipeline run."""

    task_id: str
    state: TaskState
    created_at: datetime
    finished_at: datetime | None = None
    outcome: BatchOutcome | None = None
    error: str | None = None


def clamp_page(page: int | None) -> int:
    """Pages are 1-based; anything lower means the first page."""
    if page is None or page < 1:
        return 1
    return page


def clamp_page_size(page_size: int | None) -> int:
    """Missing or non-positive → default; above the maximum → maximum."""
    if page_size is None or page_size < 1:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)

# src/pipeline/models.py — v2
"""Per-item and per-batch pipeline outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from newsweaver.core.models import utcnow

ItemStatus = Literal[
    "stored",
    "duplicate",
    "queued",
    "dead_lettered",
    "dropped",
    "storage_failed",
    "failed",
    "skipped",
]


@dataclass
class ItemOutcome:
    """What happened to one source item."""

    guid: str
    status: ItemStatus
    item_id: str | None = None
    fallback: bool = False
    error: str | None = None


class BatchOutcome(BaseModel):
    """Counts for one batch run (main pipeline or retry cycle)."""

    batch_id: str
    kind: Literal["sources", "retry"] = "sources"
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    fetched: int = 0
    normalized: int = 0
    invalid: int = 0
    duplicates: int = 0
    stored: int = 0
    fallback: int = 0
    queued: int = 0
    dead_lettered: int = 0
    dropped: int = 0
    storage_failed: int = 0
    failed: int = 0
    skipped: int = 0

    fetch_error: str | None = None
    deadline_hit: bool = False
    cancelled: bool = False
    enrichment_skipped: bool = False
    stored_ids: list[str] = Field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        """Fold one item outcome into the counters."""
        if outcome.status == "stored":
            self.stored += 1
            if outcome.item_id:
                self.stored_ids.append(outcome.item_id)
            if outcome.fallback:
                self.fallback += 1
        elif outcome.status == "duplicate":
            self.duplicates += 1
        else:
            setattr(self, outcome.status, getattr(self, outcome.status) + 1)

    @property
    def duration_s(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

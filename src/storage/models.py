# src/storage/models.py — v2
"""Storage result types."""

from __future__ import annotations

from pydantic import BaseModel, Field

from newsweaver.core.models import EnrichedItem


class ItemPage(BaseModel):
    """One page of stored items, newest first."""

    items: list[EnrichedItem] = Field(default_factory=list)
    page: int
    page_size: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

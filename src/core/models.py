# src/core/models.py — v2
"""Core domain models: SourceItem, EnrichedItem.

SourceItem is ephemeral (one pipeline run). EnrichedItem is the durable,
write-once record persisted by the item store.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_item_id() -> str:
    """Generate a fresh EnrichedItem identifier."""
    return uuid.uuid4().hex


class SourceItem(BaseModel):
    """One raw article as delivered by a source feed."""

    guid: str = ""
    title: str = ""
    body: str = ""
    image: str = ""
    category: str = ""
    url: str = ""


class EnrichedItem(BaseModel):
    """A generated, publish-ready article.

    Field names follow the persisted JSON record format.
    """

    id: str = Field(default_factory=new_item_id)
    source_guid: str
    seo_title: str
    seo_description: str = ""
    tldr: list[str] = Field(default_factory=list)
    content_md: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    image: str = ""
    image_title: str = ""
    image_description: str = ""
    original_url: str = ""
    fallback: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

# src/feed/parser.py — v2
"""Decode a source feed JSON payload into SourceItem records.

Accepted shapes, tried in order:
    1. Envelope object with an ``items`` list (``{"feed_title": ..., "items": [...]}``).
    2. Bare array of item objects.
    3. A single item object.
"""

from __future__ import annotations

import logging
from typing import Any

from newsweaver.core.errors import FetchError
from newsweaver.core.models import SourceItem

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_CATEGORY = "general"


def _text(raw: dict[str, Any], *keys: str) -> str:
    """First non-empty value among keys, as a string."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        text = value if isinstance(value, str) else str(value)
        if text:
            return text
    return ""


def item_from_dict(raw: dict[str, Any]) -> SourceItem:
    """Map one feed entry onto a SourceItem.

    Missing guid falls back to the article link; missing category defaults
    to "general".
    """
    url = _text(raw, "link", "url")
    return SourceItem(
        guid=_text(raw, "guid") or url,
        title=_text(raw, "title"),
        body=_text(raw, "content", "description"),
        image=_text(raw, "image"),
        category=_text(raw, "category") or DEFAULT_SOURCE_CATEGORY,
        url=url,
    )


def _items_from_list(entries: list[Any], source_url: str | None) -> list[SourceItem]:
    items: list[SourceItem] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(
                "Skipping non-object feed entry (%s) from %s",
                type(entry).__name__, source_url,
            )
            continue
        items.append(item_from_dict(entry))
    return items


def parse_feed_payload(payload: Any, source_url: str | None = None) -> list[SourceItem]:
    """Convert a decoded JSON payload to SourceItems.

    Args:
        payload: Result of ``json.loads`` on the feed response body.
        source_url: Endpoint the payload came from, for error messages.

    Raises:
        FetchError: If the payload matches none of the accepted shapes.
    """
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        return _items_from_list(payload["items"], source_url)
    if isinstance(payload, list):
        return _items_from_list(payload, source_url)
    if isinstance(payload, dict):
        return [item_from_dict(payload)]
    raise FetchError(
        f"failed to parse feed response from {source_url}: "
        f"expected object or array, got {type(payload).__name__}",
        url=source_url,
    )

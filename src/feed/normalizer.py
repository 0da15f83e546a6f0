# src/feed/normalizer.py — v1
"""Source item normalization and validation.

Markup is removed from title and body, entities decoded, whitespace
collapsed; every field is trimmed. Items without guid, title or url are
rejected with a ValidationError and dropped.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
from dataclasses import dataclass, field

from newsweaver.core.errors import ValidationError
from newsweaver.core.models import SourceItem
from newsweaver.pipeline.deadline import Deadline

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

REQUIRED_FIELDS = ("guid", "title", "url")


def clean_html(text: str) -> str:
    """Strip tags, decode entities, collapse whitespace."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def normalize_item(item: SourceItem) -> SourceItem:
    """Return a cleaned copy of item."""
    return SourceItem(
        guid=item.guid.strip(),
        title=clean_html(item.title),
        body=clean_html(item.body),
        image=item.image.strip(),
        category=item.category.strip(),
        url=item.url.strip(),
    )


def validate_item(item: SourceItem) -> None:
    """Raise ValidationError for the first missing mandatory field."""
    for name in REQUIRED_FIELDS:
        if not getattr(item, name):
            raise ValidationError(item.guid, name)


@dataclass
class NormalizationResult:
    """Items that passed validation, plus per-item rejections."""

    items: list[SourceItem] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    skipped: int = 0


class Normalizer:
    """Normalizes a batch of source items under bounded concurrency."""

    def __init__(self, max_workers: int = 10) -> None:
        self._max_workers = max_workers

    async def process(
        self, items: list[SourceItem], deadline: Deadline | None = None
    ) -> NormalizationResult:
        """Normalize and validate items; input order is preserved."""
        semaphore = asyncio.Semaphore(self._max_workers)

        async def _one(item: SourceItem) -> SourceItem | ValidationError | None:
            async with semaphore:
                if deadline is not None and deadline.expired:
                    return None
                cleaned = normalize_item(item)
                try:
                    validate_item(cleaned)
                except ValidationError as e:
                    logger.debug("Dropping source item: %s", e)
                    return e
                return cleaned

        outcomes = await asyncio.gather(*(_one(i) for i in items))

        result = NormalizationResult()
        for outcome in outcomes:
            if outcome is None:
                result.skipped += 1
            elif isinstance(outcome, ValidationError):
                result.errors.append(outcome)
            else:
                result.items.append(outcome)

        logger.info(
            "Normalized %d/%d item(s) (%d invalid, %d skipped)",
            len(result.items), len(items), len(result.errors), result.skipped,
        )
        return result

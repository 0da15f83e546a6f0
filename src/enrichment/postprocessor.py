# src/enrichment/postprocessor.py — v1
"""Sanitize generated items before they are persisted.

Fields are cleaned and clamped in place. Only an empty title or a body that
is too short after cleaning makes an item unpublishable.
"""

from __future__ import annotations

import asyncio
import logging
import re

from newsweaver.core.errors import PostprocessError
from newsweaver.core.models import EnrichedItem, utcnow

logger = logging.getLogger(__name__)

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_WS_RE = re.compile(r"\s+")
_SCRIPT_BLOCK_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_DANGEROUS_TAG_RE = re.compile(
    r"</?(?:script|iframe|object|embed|link|meta)\b[^>]*>", re.IGNORECASE
)
_MARKDOWN_SYNTAX_RE = re.compile(r"[#*_>`\[\]]+")

MAX_TLDR_ENTRIES = 3


def clean_text(text: str) -> str:
    """Replace control characters and collapse whitespace."""
    text = _CONTROL_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def clean_markdown(content: str) -> str:
    """Drop script blocks and active-content tags, normalize line endings."""
    content = _SCRIPT_BLOCK_RE.sub("", content)
    content = _DANGEROUS_TAG_RE.sub("", content)
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    return content.strip()


def truncate(text: str, limit: int) -> str:
    """Clamp text to limit characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def plain_text(markdown: str) -> str:
    """Rough plain-text rendering of markdown, for derived descriptions."""
    return clean_text(_MARKDOWN_SYNTAX_RE.sub(" ", markdown))


class PostProcessor:
    """Validates and cleans generated items."""

    def __init__(
        self,
        max_title_length: int = 60,
        max_description_length: int = 160,
        min_content_length: int = 50,
        default_category: str = "General",
    ) -> None:
        self.max_title_length = max_title_length
        self.max_description_length = max_description_length
        self.min_content_length = min_content_length
        self.default_category = default_category

    def process(self, item: EnrichedItem) -> EnrichedItem:
        """Sanitize item in place and return it.

        Raises:
            PostprocessError: If the title is empty or the content is too
                short to publish.
        """
        title = clean_text(item.seo_title)
        if not title:
            raise PostprocessError(item.id, "missing required field: seo_title")

        content = clean_markdown(item.content_md)
        if len(content) < self.min_content_length:
            raise PostprocessError(
                item.id,
                f"content too short, minimum {self.min_content_length} characters required",
            )

        description = clean_text(item.seo_description) or plain_text(content)

        item.seo_title = truncate(title, self.max_title_length)
        item.seo_description = truncate(description, self.max_description_length)
        item.content_md = content
        item.tldr = [t for t in (clean_text(x) for x in item.tldr) if t][:MAX_TLDR_ENTRIES]

        item.category = clean_text(item.category) or self.default_category
        tags = list(dict.fromkeys(t for t in (clean_text(x) for x in item.tags) if t))
        item.tags = tags or ["news", item.category]

        item.image_title = clean_text(item.image_title)
        item.image_description = clean_text(item.image_description)

        now = utcnow()
        if item.created_at is None:
            item.created_at = now
        item.updated_at = now
        return item

    async def process_batch(
        self, items: list[EnrichedItem]
    ) -> tuple[list[EnrichedItem], list[PostprocessError]]:
        """Process items concurrently; failures are collected, not raised."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.process, item) for item in items),
            return_exceptions=True,
        )

        valid: list[EnrichedItem] = []
        errors: list[PostprocessError] = []
        for result in results:
            if isinstance(result, PostprocessError):
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                valid.append(result)

        if errors:
            logger.info("Postprocess dropped %d/%d item(s)", len(errors), len(items))
        return valid, errors

# src/enrichment/enricher.py — v1
"""Turn one SourceItem into an EnrichedItem via the generation gateway.

An unparseable reply is not an error: the item is built from the source
title and body and flagged ``fallback``. Only gateway failures raise.
"""

from __future__ import annotations

import asyncio
import logging
import re

from newsweaver.core.errors import GenerationError, GenerationFailure
from newsweaver.core.models import EnrichedItem, SourceItem, new_item_id, utcnow
from newsweaver.enrichment.prompts import SYSTEM_PROMPT, build_enrichment_prompt
from newsweaver.enrichment.reply_parser import GenerationReply, ReplyParseError, parse_reply
from newsweaver.llm.base_client import BaseLLMClient
from newsweaver.llm.models import Message

logger = logging.getLogger(__name__)

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")
FALLBACK_TLDR_SENTENCES = 3


def first_sentences(text: str, count: int = FALLBACK_TLDR_SENTENCES) -> list[str]:
    """Leading sentences of text, at most count."""
    sentences = [s.strip() for s in _SENTENCE_END_RE.split(text.strip()) if s.strip()]
    return sentences[:count]


def build_fallback_item(item: SourceItem) -> EnrichedItem:
    """Fallback-quality item built from the source alone."""
    now = utcnow()
    return EnrichedItem(
        id=new_item_id(),
        source_guid=item.guid,
        seo_title=item.title,
        tldr=first_sentences(item.body),
        content_md=item.body,
        category=item.category,
        image=item.image,
        original_url=item.url,
        fallback=True,
        created_at=now,
        updated_at=now,
    )


def build_enriched_item(item: SourceItem, reply: GenerationReply) -> EnrichedItem:
    now = utcnow()
    return EnrichedItem(
        id=new_item_id(),
        source_guid=item.guid,
        seo_title=reply.seo_title,
        seo_description=reply.seo_description,
        tldr=reply.tldr,
        content_md=reply.content_md,
        category=reply.category or item.category,
        tags=reply.tags,
        image=item.image,
        image_title=reply.image_title,
        image_description=reply.image_description,
        original_url=item.url,
        created_at=now,
        updated_at=now,
    )


class Enricher:
    """Calls the gateway for one item at a time."""

    def __init__(
        self,
        client: BaseLLMClient,
        *,
        timeout_s: float = 60.0,
        max_tokens: int = 2000,
        temperature: float = 0.4,
        max_title_length: int = 60,
        max_description_length: int = 160,
    ) -> None:
        self._client = client
        self._timeout_s = timeout_s
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_title_length = max_title_length
        self._max_description_length = max_description_length

    async def enrich(self, item: SourceItem) -> EnrichedItem:
        """Generate an EnrichedItem for item.

        Raises:
            GenerationError: If the gateway fails or times out.
        """
        prompt = build_enrichment_prompt(
            item.title,
            item.body,
            item.category,
            max_title_length=self._max_title_length,
            max_description_length=self._max_description_length,
        )

        try:
            response = await asyncio.wait_for(
                self._client.complete(
                    messages=[Message(role="user", content=prompt)],
                    system=SYSTEM_PROMPT,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(
                GenerationFailure.TIMEOUT,
                f"no reply within {self._timeout_s:.0f}s",
            ) from e

        if not response.content or not response.content.strip():
            raise GenerationError(GenerationFailure.EMPTY_REPLY, "no content in response")

        try:
            reply = parse_reply(response.content)
        except ReplyParseError as e:
            logger.warning("Unusable reply for %s, using fallback: %s", item.guid, e)
            return build_fallback_item(item)

        logger.debug(
            "Enriched %s (%d in / %d out tokens, %d ms)",
            item.guid, response.input_tokens, response.output_tokens, response.latency_ms,
        )
        return build_enriched_item(item, reply)

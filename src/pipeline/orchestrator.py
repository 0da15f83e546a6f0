# src/pipeline/orchestrator.py — v3
"""Pipeline orchestrator: sources in, stored items out.

Per batch:
  1. Fetch all sources (partial failures tolerated)
  2. Normalize + validate
  3. Per item, under a bounded pool:
     reserve fingerprint → enrich → postprocess → persist → mark processed

Failure routing per item:
  - recoverable GenerationError → retry queue (fingerprint stays reserved)
  - fatal GenerationError       → dead letter
  - PostprocessError            → dropped
  - StorageError                → fingerprint released

Once an item is on disk it counts as stored even if marking its
fingerprint fails; the reservation then lapses on its own TTL.

The retry cycle re-runs queued items through the same enrich → persist path.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from newsweaver.cache.base_cache_store import BaseFingerprintCache
from newsweaver.cache.fingerprint import compute_fingerprint
from newsweaver.core.errors import (
    DuplicateSkip,
    GenerationError,
    PostprocessError,
    StorageError,
)
from newsweaver.core.models import SourceItem, utcnow
from newsweaver.enrichment.enricher import Enricher
from newsweaver.enrichment.postprocessor import PostProcessor
from newsweaver.feed.fetcher import SourceFetcher
from newsweaver.feed.normalizer import Normalizer
from newsweaver.logging.context import set_batch_context, set_item_context, set_stage
from newsweaver.pipeline.deadline import Deadline
from newsweaver.pipeline.models import BatchOutcome, ItemOutcome
from newsweaver.retry.manager import RetryManager
from newsweaver.storage.item_store import ItemStore

logger = logging.getLogger(__name__)


def new_batch_id() -> str:
    return uuid.uuid4().hex[:12]


class PipelineOrchestrator:
    """Drives one batch from source URLs to stored items.

    All collaborators are injected; the orchestrator owns none of them.

    Args:
        fetcher: Source feed fetcher.
        normalizer: Source item normalizer/validator.
        cache: Fingerprint cache (dedup source of truth).
        enricher: Gateway wrapper, or None to skip enrichment.
        postprocessor: Output sanitizer.
        store: Item store.
        retry_manager: Retry queue / dead-letter owner.
        cache_ttl_s: Dedup window per fingerprint.
        max_workers: Concurrent enrichments per batch.
        batch_deadline_s: Time budget per batch.
    """

    def __init__(
        self,
        *,
        fetcher: SourceFetcher,
        normalizer: Normalizer,
        cache: BaseFingerprintCache,
        enricher: Enricher | None,
        postprocessor: PostProcessor,
        store: ItemStore,
        retry_manager: RetryManager,
        cache_ttl_s: float = 30 * 24 * 3600,
        max_workers: int = 5,
        batch_deadline_s: float = 30 * 60,
    ) -> None:
        self._fetcher = fetcher
        self._normalizer = normalizer
        self._cache = cache
        self._enricher = enricher
        self._postprocessor = postprocessor
        self._store = store
        self._retry = retry_manager
        self._cache_ttl_s = cache_ttl_s
        self._max_workers = max_workers
        self._batch_deadline_s = batch_deadline_s

    def new_deadline(self) -> Deadline:
        return Deadline(self._batch_deadline_s)

    async def process_sources(
        self,
        urls: list[str],
        deadline: Deadline | None = None,
        batch_id: str | None = None,
    ) -> BatchOutcome:
        """Run one batch over the given source endpoints."""
        deadline = deadline or self.new_deadline()
        outcome = BatchOutcome(batch_id=batch_id or new_batch_id())
        set_batch_context(outcome.batch_id)
        logger.info("Batch started: %d source(s)", len(urls))

        set_stage("fetch")
        fetched = await self._fetcher.fetch_all(urls, deadline)
        outcome.fetched = len(fetched.items)
        if fetched.error is not None:
            outcome.fetch_error = str(fetched.error)

        set_stage("normalize")
        normalized = await self._normalizer.process(fetched.items, deadline)
        outcome.normalized = len(normalized.items)
        outcome.invalid = len(normalized.errors)
        outcome.skipped += normalized.skipped

        if self._enricher is None:
            outcome.enrichment_skipped = True
            logger.warning(
                "No generation credentials; skipping enrichment of %d item(s)",
                len(normalized.items),
            )
        else:
            await self._run_items(
                self._enricher, normalized.items, deadline, outcome, from_retry=False
            )

        return self._finish(outcome, deadline)

    async def run_retry_cycle(
        self,
        deadline: Deadline | None = None,
        batch_id: str | None = None,
    ) -> BatchOutcome:
        """Re-process every retry record whose delay has elapsed."""
        deadline = deadline or self.new_deadline()
        outcome = BatchOutcome(batch_id=batch_id or new_batch_id(), kind="retry")
        set_batch_context(outcome.batch_id)

        due = self._retry.due()
        if not due:
            logger.debug("Retry cycle: nothing due")
            return self._finish(outcome, deadline)

        logger.info("Retry cycle: %d item(s) due", len(due))
        if self._enricher is None:
            outcome.enrichment_skipped = True
            logger.warning("No generation credentials; retry cycle skipped")
        else:
            items = [record.snapshot for record in due]
            await self._run_items(
                self._enricher, items, deadline, outcome, from_retry=True
            )

        return self._finish(outcome, deadline)

    def _finish(self, outcome: BatchOutcome, deadline: Deadline) -> BatchOutcome:
        outcome.finished_at = utcnow()
        outcome.deadline_hit = deadline.timed_out
        outcome.cancelled = deadline.cancelled
        set_stage("done")
        logger.info(
            "Batch %s finished in %.1fs: %d stored (%d fallback), %d duplicate, "
            "%d queued, %d dead-lettered, %d dropped, %d skipped",
            outcome.kind, outcome.duration_s or 0.0, outcome.stored, outcome.fallback,
            outcome.duplicates, outcome.queued, outcome.dead_lettered,
            outcome.dropped, outcome.skipped,
            extra={"data": outcome.model_dump(mode="json", exclude={"stored_ids"})},
        )
        return outcome

    # ------------------------------------------------------------------
    # Per-item processing
    # ------------------------------------------------------------------

    async def _run_items(
        self,
        enricher: Enricher,
        items: list[SourceItem],
        deadline: Deadline,
        outcome: BatchOutcome,
        *,
        from_retry: bool,
    ) -> None:
        semaphore = asyncio.Semaphore(self._max_workers)

        async def _bounded(item: SourceItem) -> ItemOutcome:
            async with semaphore:
                if deadline.expired:
                    return ItemOutcome(guid=item.guid, status="skipped")
                return await self._process_item(enricher, item, from_retry=from_retry)

        results = await asyncio.gather(*(_bounded(i) for i in items))
        for result in results:
            outcome.record(result)

    async def _process_item(
        self, enricher: Enricher, item: SourceItem, *, from_retry: bool
    ) -> ItemOutcome:
        set_item_context(item.guid, stage="dedup")
        fingerprint = compute_fingerprint(item.url)
        reserved = from_retry
        try:
            if not from_retry:
                if not await self._cache.reserve(fingerprint, self._cache_ttl_s):
                    logger.debug("%s", DuplicateSkip(item.guid, fingerprint))
                    return ItemOutcome(guid=item.guid, status="duplicate")
                reserved = True
            return await self._enrich_and_store(
                enricher, item, fingerprint, from_retry=from_retry
            )
        except Exception as e:
            logger.exception("Unexpected failure processing %s", item.guid)
            if reserved:
                await self._cache.release(fingerprint)
            return ItemOutcome(guid=item.guid, status="failed", error=str(e))

    async def _enrich_and_store(
        self,
        enricher: Enricher,
        item: SourceItem,
        fingerprint: str,
        *,
        from_retry: bool,
    ) -> ItemOutcome:
        set_stage("enrich")
        try:
            enriched = await enricher.enrich(item)
        except GenerationError as e:
            decision = await self._retry.record_failure(item, e)
            return ItemOutcome(guid=item.guid, status=decision, error=str(e))

        set_stage("postprocess")
        try:
            self._postprocessor.process(enriched)
        except PostprocessError as e:
            logger.warning("Dropping %s: %s", item.guid, e)
            if from_retry:
                await self._retry.discard(item.guid)
            return ItemOutcome(guid=item.guid, status="dropped", error=str(e))

        set_stage("store")
        try:
            await self._store.save(enriched)
        except StorageError as e:
            logger.error("Failed to store %s: %s", item.guid, e)
            await self._cache.release(fingerprint)
            if from_retry:
                await self._retry.discard(item.guid)
            return ItemOutcome(guid=item.guid, status="storage_failed", error=str(e))

        try:
            await self._cache.mark_processed(fingerprint, self._cache_ttl_s)
        except Exception:
            logger.warning(
                "Stored %s but could not mark %s processed", item.guid, fingerprint,
                exc_info=True,
            )
        await self._retry.record_success(item.guid)
        logger.info("Stored %s as %s%s", item.guid, enriched.id, " (fallback)" if enriched.fallback else "")
        return ItemOutcome(
            guid=item.guid, status="stored", item_id=enriched.id, fallback=enriched.fallback
        )

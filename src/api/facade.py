# src/api/facade.py — v3
"""Public service facade: trigger runs, observe them, query stored items.

Usage:
    async with await NewsService.from_settings() as service:
        receipt = service.trigger()
        outcome = await service.get_task(receipt.task_id).wait()
        page = await service.list_items(page=1)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from newsweaver.api.models import (
    TaskState,
    TaskStatus,
    TriggerReceipt,
    clamp_page,
    clamp_page_size,
)
from newsweaver.config.settings import Settings
from newsweaver.core.models import EnrichedItem, utcnow
from newsweaver.logging.context import set_batch_context
from newsweaver.pipeline.deadline import Deadline
from newsweaver.pipeline.models import BatchOutcome
from newsweaver.storage.models import ItemPage

if TYPE_CHECKING:
    from newsweaver.cache.base_cache_store import BaseFingerprintCache
    from newsweaver.feed.fetcher import SourceFetcher
    from newsweaver.llm.base_client import BaseLLMClient
    from newsweaver.pipeline.orchestrator import PipelineOrchestrator
    from newsweaver.retry.manager import RetryManager
    from newsweaver.retry.models import DeadLetterRecord
    from newsweaver.storage.item_store import ItemStore

logger = logging.getLogger(__name__)


class PipelineTask:
    """Handle on one background batch run.

    Cancelling stops new items from starting; items already in flight
    finish and the outcome is still recorded.
    """

    def __init__(self, task_id: str, deadline: Deadline) -> None:
        self.task_id = task_id
        self.deadline = deadline
        self.created_at = utcnow()
        self.finished_at: datetime | None = None
        self.outcome: BatchOutcome | None = None
        self.error: BaseException | None = None
        self._state: TaskState = "pending"
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def status(self) -> TaskStatus:
        return TaskStatus(
            task_id=self.task_id,
            state=self._state,
            created_at=self.created_at,
            finished_at=self.finished_at,
            outcome=self.outcome,
            error=str(self.error) if self.error is not None else None,
        )

    def cancel(self) -> None:
        """Request graceful cancellation."""
        if not self.done:
            logger.info("Cancellation requested for task %s", self.task_id)
            self.deadline.cancel()

    async def wait(self, timeout: float | None = None) -> BatchOutcome | None:
        """Wait for completion and return the outcome (None if the run failed).

        Raises:
            asyncio.TimeoutError: If timeout elapses first.
        """
        await asyncio.wait_for(self._done.wait(), timeout=timeout)
        return self.outcome

    # --- Transitions (driven by NewsService) ---

    def _start(self, task: asyncio.Task[None]) -> None:
        self._task = task
        self._state = "running"

    def _complete(self, outcome: BatchOutcome) -> None:
        self.outcome = outcome
        self._state = "cancelled" if outcome.cancelled else "completed"
        self._finish()

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self._state = "failed"
        self._finish()

    def _finish(self) -> None:
        self.finished_at = utcnow()
        self._done.set()


class NewsService:
    """Long-lived service wiring the pipeline to its collaborators.

    Args:
        settings: Application settings.
        orchestrator: Pipeline orchestrator.
        store: Item store.
        cache: Fingerprint cache.
        retry_manager: Retry queue owner.
        fetcher: Source fetcher (closed with the service).
        llm_client: Gateway client or None (closed with the service).
        max_finished_tasks: Finished task handles kept for status queries;
            older ones are forgotten as new runs are triggered.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        orchestrator: PipelineOrchestrator,
        store: ItemStore,
        cache: BaseFingerprintCache,
        retry_manager: RetryManager,
        fetcher: SourceFetcher | None = None,
        llm_client: BaseLLMClient | None = None,
        max_finished_tasks: int = 100,
    ) -> None:
        self._settings = settings
        self._orchestrator = orchestrator
        self._store = store
        self._cache = cache
        self._retry = retry_manager
        self._fetcher = fetcher
        self._llm_client = llm_client
        self._tasks: dict[str, PipelineTask] = {}
        self._max_finished_tasks = max_finished_tasks
        self._retry_loop: asyncio.Task[None] | None = None

    @classmethod
    async def from_settings(cls, settings: Settings | None = None) -> NewsService:
        """Build every collaborator from settings."""
        from newsweaver.cache.cache_factory import create_cache_store
        from newsweaver.enrichment.enricher import Enricher
        from newsweaver.enrichment.postprocessor import PostProcessor
        from newsweaver.feed.fetcher import SourceFetcher
        from newsweaver.feed.normalizer import Normalizer
        from newsweaver.llm.client_factory import create_llm_client
        from newsweaver.pipeline.orchestrator import PipelineOrchestrator
        from newsweaver.retry.manager import RetryManager
        from newsweaver.retry.queue_store import RetryQueueStore
        from newsweaver.storage.item_store import ItemStore

        settings = settings or Settings()
        root = settings.data_root.expanduser()

        cache = create_cache_store(settings)
        try:
            if not await cache.ping():
                raise ConnectionError(f"{type(cache).__name__} did not answer ping")
        except Exception:
            await cache.close()
            raise
        logger.info("Fingerprint cache ready: %s", type(cache).__name__)
        store = await ItemStore.open(root)
        retry_manager = RetryManager(
            RetryQueueStore(root),
            max_attempts=settings.retry_max_attempts,
            delay_s=settings.retry_delay_s,
        )
        await retry_manager.load()

        llm_client = create_llm_client(settings)
        enricher = None
        if llm_client is not None:
            enricher = Enricher(
                llm_client,
                timeout_s=settings.llm_timeout_s,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                max_title_length=settings.max_title_length,
                max_description_length=settings.max_description_length,
            )

        fetcher = SourceFetcher.from_settings(settings)
        orchestrator = PipelineOrchestrator(
            fetcher=fetcher,
            normalizer=Normalizer(max_workers=settings.normalize_max_workers),
            cache=cache,
            enricher=enricher,
            postprocessor=PostProcessor(
                max_title_length=settings.max_title_length,
                max_description_length=settings.max_description_length,
                min_content_length=settings.min_content_length,
                default_category=settings.default_category,
            ),
            store=store,
            retry_manager=retry_manager,
            cache_ttl_s=settings.cache_ttl_s,
            max_workers=settings.enrich_max_workers,
            batch_deadline_s=settings.batch_deadline_s,
        )
        return cls(
            settings=settings,
            orchestrator=orchestrator,
            store=store,
            cache=cache,
            retry_manager=retry_manager,
            fetcher=fetcher,
            llm_client=llm_client,
        )

    # ------------------------------------------------------------------
    # Pipeline runs
    # ------------------------------------------------------------------

    def _resolve_urls(self, urls: list[str] | None) -> list[str]:
        resolved = [u.strip() for u in (urls or self._settings.feed_urls_list) if u.strip()]
        if not resolved:
            raise ValueError("No feed URLs given and FEED_URLS is empty")
        return resolved

    def trigger(self, urls: list[str] | None = None) -> TriggerReceipt:
        """Start a background run and return immediately.

        Must be called from within a running event loop.
        """
        resolved = self._resolve_urls(urls)
        handle = PipelineTask(uuid.uuid4().hex[:12], self._orchestrator.new_deadline())
        handle._start(asyncio.create_task(self._run(handle, resolved)))
        self._tasks[handle.task_id] = handle
        self._prune_tasks()
        logger.info("Triggered task %s for %d feed(s)", handle.task_id, len(resolved))
        return TriggerReceipt(task_id=handle.task_id, feeds=len(resolved))

    def _prune_tasks(self) -> None:
        finished = sorted(
            (t for t in self._tasks.values() if t.done),
            key=lambda t: t.finished_at or t.created_at,
        )
        excess = len(finished) - self._max_finished_tasks
        for handle in finished[:max(excess, 0)]:
            del self._tasks[handle.task_id]
        if excess > 0:
            logger.debug("Forgot %d finished task handle(s)", excess)

    async def _run(self, handle: PipelineTask, urls: list[str]) -> None:
        set_batch_context(handle.task_id, task_id=handle.task_id)
        try:
            outcome = await self._orchestrator.process_sources(
                urls, deadline=handle.deadline, batch_id=handle.task_id
            )
        except Exception as e:
            logger.exception("Task %s failed", handle.task_id)
            handle._fail(e)
            return
        handle._complete(outcome)

    def get_task(self, task_id: str) -> PipelineTask | None:
        return self._tasks.get(task_id)

    def tasks(self) -> list[PipelineTask]:
        return list(self._tasks.values())

    async def process(self, urls: list[str] | None = None) -> BatchOutcome:
        """Run one batch in the foreground."""
        return await self._orchestrator.process_sources(self._resolve_urls(urls))

    async def run_retry_cycle(self) -> BatchOutcome:
        return await self._orchestrator.run_retry_cycle()

    def start_retry_loop(self) -> None:
        """Drain the retry queue every retry_cycle_interval_s."""
        if self._retry_loop is None or self._retry_loop.done():
            self._retry_loop = asyncio.create_task(self._retry_forever())

    async def _retry_forever(self) -> None:
        interval = self._settings.retry_cycle_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self._orchestrator.run_retry_cycle()
            except Exception:
                logger.exception("Retry cycle failed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_items(self, page: int | None = 1, page_size: int | None = None) -> ItemPage:
        return await self._store.list(clamp_page(page), clamp_page_size(page_size))

    async def get_item(self, item_id: str) -> EnrichedItem:
        return await self._store.get_by_id(item_id)

    async def delete_item(self, item_id: str) -> None:
        await self._store.delete(item_id)

    async def clear_cache(self) -> None:
        await self._cache.clear()

    async def dead_letters(self) -> list[DeadLetterRecord]:
        return await self._retry.dead_letters()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Stop the retry loop, let running tasks wind down, release clients."""
        if self._retry_loop is not None:
            self._retry_loop.cancel()
            await asyncio.gather(self._retry_loop, return_exceptions=True)
            self._retry_loop = None

        running = [t for t in self._tasks.values() if not t.done]
        for handle in running:
            handle.cancel()
        if running:
            await asyncio.gather(*(t.wait() for t in running))

        if self._fetcher is not None:
            await self._fetcher.close()
        if self._llm_client is not None:
            await self._llm_client.close()
        await self._cache.close()

    async def __aenter__(self) -> NewsService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

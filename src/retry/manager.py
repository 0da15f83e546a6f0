# src/retry/manager.py — v1
"""Retry/dead-letter state machine, one record per source guid.

    New ──recoverable failure──► Queued(attempts+1) ──attempts ≥ max──► DeadLettered
     │                             │
     └──fatal failure──────────────┴──────────────────────────────────► DeadLettered
    Any state ──success──► Done (record removed)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from newsweaver.core.errors import PipelineError
from newsweaver.core.models import SourceItem, utcnow
from newsweaver.retry.models import DeadLetterRecord, ErrorInfo, RetryDecision, RetryRecord
from newsweaver.retry.queue_store import RetryQueueStore

logger = logging.getLogger(__name__)


class RetryManager:
    """Owns queued retries and writes dead letters."""

    def __init__(
        self,
        store: RetryQueueStore,
        *,
        max_attempts: int = 3,
        delay_s: float = 300.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._max_attempts = max_attempts
        self._delay = timedelta(seconds=delay_s)
        self._clock = clock
        self._records: dict[str, RetryRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def load(self) -> None:
        """Restore the queue persisted by a previous process."""
        records = await asyncio.to_thread(self._store.load)
        async with self._lock:
            self._records = {r.source_guid: r for r in records}
        if records:
            logger.info("Loaded %d pending retry record(s)", len(records))

    async def record_failure(self, item: SourceItem, error: PipelineError) -> RetryDecision:
        """Queue item for a later attempt, or dead-letter it."""
        now = self._clock()
        info = ErrorInfo.from_exception(error)
        async with self._lock:
            existing = self._records.get(item.guid)
            first_failed_at = existing.first_failed_at if existing else now
            prior_attempts = existing.attempts if existing else 0

            if not error.recoverable:
                await self._dead_letter(
                    item, info, prior_attempts, f"fatal {info.kind.value} error",
                    first_failed_at, now,
                )
                return "dead_lettered"

            attempts = prior_attempts + 1
            if attempts >= self._max_attempts:
                await self._dead_letter(
                    item, info, attempts, f"gave up after {attempts} attempt(s)",
                    first_failed_at, now,
                )
                return "dead_lettered"

            self._records[item.guid] = RetryRecord(
                source_guid=item.guid,
                snapshot=item,
                last_error=info,
                attempts=attempts,
                next_attempt_at=now + self._delay,
                first_failed_at=first_failed_at,
            )
            await self._persist()

        logger.info(
            "Queued %s for retry (attempt %d/%d): %s",
            item.guid, attempts, self._max_attempts, info.message,
        )
        return "queued"

    async def record_success(self, guid: str) -> None:
        """Drop any queued record for guid."""
        async with self._lock:
            if self._records.pop(guid, None) is None:
                return
            await self._persist()
        logger.info("Retry succeeded for %s", guid)

    async def discard(self, guid: str) -> None:
        """Drop a record without counting it as a success."""
        async with self._lock:
            if self._records.pop(guid, None) is None:
                return
            await self._persist()
        logger.info("Discarded retry record for %s", guid)

    def due(self, now: datetime | None = None) -> list[RetryRecord]:
        """Records whose next attempt time has passed, oldest first."""
        now = now or self._clock()
        ready = [r for r in self._records.values() if r.next_attempt_at <= now]
        return sorted(ready, key=lambda r: r.next_attempt_at)

    def pending(self) -> list[RetryRecord]:
        return list(self._records.values())

    def get(self, guid: str) -> RetryRecord | None:
        return self._records.get(guid)

    async def dead_letters(self) -> list[DeadLetterRecord]:
        return await asyncio.to_thread(self._store.read_dead_letters)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, guid: object) -> bool:
        return guid in self._records

    # --- Internals (caller holds the lock) ---

    async def _dead_letter(
        self,
        item: SourceItem,
        info: ErrorInfo,
        attempts: int,
        reason: str,
        first_failed_at: datetime,
        now: datetime,
    ) -> None:
        record = DeadLetterRecord(
            source_guid=item.guid,
            snapshot=item,
            last_error=info,
            attempts=attempts,
            reason=reason,
            first_failed_at=first_failed_at,
            dead_lettered_at=now,
        )
        await asyncio.to_thread(self._store.append_dead_letter, record)
        self._records.pop(item.guid, None)
        await self._persist()
        logger.warning("Dead-lettered %s (%s): %s", item.guid, reason, info.message)

    async def _persist(self) -> None:
        await asyncio.to_thread(self._store.save, list(self._records.values()))

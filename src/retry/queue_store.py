# src/retry/queue_store.py — v1
"""File persistence for the retry queue and the dead-letter log.

Layout under the storage root::

    retry/
    ├── queue.json          # full snapshot, rewritten on every change
    └── dead_letter.jsonl   # append-only, one DeadLetterRecord per line
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from newsweaver.core.errors import StorageError
from newsweaver.retry.models import DeadLetterRecord, RetryQueueFile, RetryRecord
from newsweaver.storage.layout import retry_dir

logger = logging.getLogger(__name__)

QUEUE_FILE = "queue.json"
DEAD_LETTER_FILE = "dead_letter.jsonl"


class RetryQueueStore:
    """Blocking file I/O for retry state. Callers run it off the event loop."""

    def __init__(self, root: Path) -> None:
        self._dir = retry_dir(Path(root).expanduser())

    @property
    def queue_path(self) -> Path:
        return self._dir / QUEUE_FILE

    @property
    def dead_letter_path(self) -> Path:
        return self._dir / DEAD_LETTER_FILE

    def load(self) -> list[RetryRecord]:
        """Read the queue snapshot; a corrupt file is moved aside."""
        path = self.queue_path
        if not path.exists():
            return []
        try:
            queue = RetryQueueFile.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            aside = path.with_suffix(".json.corrupt")
            os.replace(path, aside)
            logger.error("Retry queue unreadable, moved to %s: %s", aside, e)
            return []
        return queue.records

    def save(self, records: list[RetryRecord]) -> None:
        """Atomically replace the queue snapshot."""
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = self.queue_path.with_suffix(".json.tmp")
        payload = RetryQueueFile(records=records).model_dump_json(indent=2)
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.queue_path)
        except OSError as e:
            raise StorageError(f"failed to write retry queue: {e}") from e

    def append_dead_letter(self, record: DeadLetterRecord) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        try:
            with self.dead_letter_path.open("a", encoding="utf-8") as f:
                f.write(record.model_dump_json() + "\n")
        except OSError as e:
            raise StorageError(f"failed to append dead letter: {e}") from e

    def read_dead_letters(self) -> list[DeadLetterRecord]:
        path = self.dead_letter_path
        if not path.exists():
            return []
        records: list[DeadLetterRecord] = []
        with path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(DeadLetterRecord.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning("Skipping malformed dead letter at line %d: %s", lineno, e)
        return records

# src/storage/item_store.py — v1
"""Write-once JSON file store for EnrichedItems.

Each item is one file created with O_EXCL, so a write never overwrites
another. Files are never rewritten after save; an update is delete then
save. Blocking I/O runs in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path

from pydantic import ValidationError

from newsweaver.core.errors import ItemNotFoundError, StorageError
from newsweaver.core.models import EnrichedItem, utcnow
from newsweaver.storage import layout
from newsweaver.storage.index import ItemIndex
from newsweaver.storage.models import ItemPage

logger = logging.getLogger(__name__)


def _write_exclusive(path: Path, payload: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload)


def _read_item(path: Path) -> EnrichedItem:
    return EnrichedItem.model_validate_json(path.read_text(encoding="utf-8"))


def _sort_key(path: Path) -> tuple[int, str] | None:
    try:
        return path.stat().st_mtime_ns, path.name
    except FileNotFoundError:
        return None


class ItemStore:
    """Filesystem-backed item storage under <root>/processed/."""

    def __init__(self, root: Path, index: ItemIndex | None = None) -> None:
        self._root = Path(root).expanduser()
        self._index = index if index is not None else ItemIndex()
        self._dir_lock = asyncio.Lock()

    @classmethod
    async def open(cls, root: Path) -> ItemStore:
        """Create a store and index what is already on disk."""
        root = Path(root).expanduser()
        index = await asyncio.to_thread(ItemIndex.build, root)
        return cls(root, index)

    @property
    def root(self) -> Path:
        return self._root

    async def save(self, item: EnrichedItem) -> Path:
        """Persist item as a new file.

        Raises:
            StorageError: If the id is already stored or the write fails.
        """
        if item.id in self._index:
            raise StorageError(f"item with ID {item.id} already exists")
        if item.created_at is None:
            item.created_at = utcnow()

        path = layout.item_path(self._root, item.id, item.created_at, time.time())
        try:
            async with self._dir_lock:
                await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(_write_exclusive, path, item.model_dump_json(indent=2))
        except FileExistsError as e:
            raise StorageError(f"item file already exists: {path.name}") from e
        except OSError as e:
            raise StorageError(f"failed to write item {item.id}: {e}") from e

        self._index.add(item.id, path)
        logger.debug("Stored item %s at %s", item.id, path)
        return path

    async def get_by_id(self, item_id: str) -> EnrichedItem:
        """Load one item.

        Raises:
            ItemNotFoundError: If no stored item has this id.
            StorageError: If the file exists but cannot be decoded.
        """
        path = self._index.get(item_id)
        if path is None:
            raise ItemNotFoundError(item_id)
        try:
            return await asyncio.to_thread(_read_item, path)
        except FileNotFoundError as e:
            self._index.remove(item_id)
            raise ItemNotFoundError(item_id) from e
        except (OSError, ValidationError) as e:
            raise StorageError(f"failed to read item {item_id}: {e}") from e

    async def list(self, page: int = 1, page_size: int = 20) -> ItemPage:
        """Page through items by file modification time, newest first.

        Args:
            page: 1-based page number.
            page_size: Items per page.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        keyed = await asyncio.to_thread(
            lambda: [(k, p) for p in self._index.paths() if (k := _sort_key(p)) is not None]
        )
        keyed.sort(key=lambda kp: kp[0], reverse=True)

        start = (page - 1) * page_size
        selected = [p for _, p in keyed[start:start + page_size]]

        items: list[EnrichedItem] = []
        for path in selected:
            try:
                items.append(await asyncio.to_thread(_read_item, path))
            except (OSError, ValidationError) as e:
                logger.warning("Skipping unreadable item file %s: %s", path, e)

        return ItemPage(items=items, page=page, page_size=page_size, total=len(keyed))

    async def delete(self, item_id: str) -> None:
        """Remove an item file permanently.

        Raises:
            ItemNotFoundError: If no stored item has this id.
        """
        path = self._index.get(item_id)
        if path is None:
            raise ItemNotFoundError(item_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as e:
            raise ItemNotFoundError(item_id) from e
        except OSError as e:
            raise StorageError(f"failed to delete item {item_id}: {e}") from e
        finally:
            if not path.exists():
                self._index.remove(item_id)
        logger.info("Deleted item %s", item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._index

    def __len__(self) -> int:
        return len(self._index)

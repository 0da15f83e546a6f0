# src/storage/index.py — v1
"""In-memory id → file path index over the processed/ tree."""

from __future__ import annotations

import logging
from pathlib import Path

from newsweaver.storage.layout import iter_item_files

logger = logging.getLogger(__name__)


class ItemIndex:
    """Maps item ids to their files. Built once, then maintained on save/delete."""

    def __init__(self, entries: dict[str, Path] | None = None) -> None:
        self._paths: dict[str, Path] = dict(entries or {})

    @classmethod
    def build(cls, root: Path) -> ItemIndex:
        """Walk the processed/ tree once (blocking)."""
        entries: dict[str, Path] = {}
        for item_id, path in iter_item_files(root):
            if item_id in entries:
                logger.warning(
                    "Duplicate item id %s at %s and %s; keeping the first",
                    item_id, entries[item_id], path,
                )
                continue
            entries[item_id] = path
        logger.debug("Indexed %d stored item(s) under %s", len(entries), root)
        return cls(entries)

    def get(self, item_id: str) -> Path | None:
        return self._paths.get(item_id)

    def add(self, item_id: str, path: Path) -> None:
        self._paths[item_id] = path

    def remove(self, item_id: str) -> Path | None:
        return self._paths.pop(item_id, None)

    def paths(self) -> list[Path]:
        return list(self._paths.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._paths

    def __len__(self) -> int:
        return len(self._paths)

# src/storage/layout.py — v2
"""Storage root directory structure.

    <root>/
    ├── processed/<YYYY>/<MM>/<DD>/<unix-write-time>_<id>.json
    └── retry/
        ├── queue.json
        └── dead_letter.jsonl

The date directories come from the item's created_at (UTC); the filename
prefix is the write time in whole Unix seconds.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

PROCESSED_DIR = "processed"
RETRY_DIR = "retry"
ITEM_SUFFIX = ".json"

_ITEM_NAME_RE = re.compile(r"^(\d+)_([0-9A-Za-z-]+)\.json$")


def processed_root(root: Path) -> Path:
    return root / PROCESSED_DIR


def retry_dir(root: Path) -> Path:
    return root / RETRY_DIR


def day_dir(root: Path, created_at: datetime) -> Path:
    """processed/YYYY/MM/DD directory for an item created at created_at."""
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc)
    return (
        processed_root(root)
        / f"{created_at.year:04d}"
        / f"{created_at.month:02d}"
        / f"{created_at.day:02d}"
    )


def item_filename(item_id: str, written_at: float) -> str:
    return f"{int(written_at)}_{item_id}{ITEM_SUFFIX}"


def item_path(root: Path, item_id: str, created_at: datetime, written_at: float) -> Path:
    return day_dir(root, created_at) / item_filename(item_id, written_at)


def parse_item_filename(name: str) -> tuple[int, str] | None:
    """Split '<unix>_<id>.json' into (unix, id); None for foreign files."""
    match = _ITEM_NAME_RE.match(name)
    if not match:
        return None
    return int(match.group(1)), match.group(2)


def iter_item_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield (item_id, path) for every item file under processed/."""
    base = processed_root(root)
    if not base.is_dir():
        return
    for path in base.rglob(f"*{ITEM_SUFFIX}"):
        parsed = parse_item_filename(path.name)
        if parsed is not None and path.is_file():
            yield parsed[1], path

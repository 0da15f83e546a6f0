# src/enrichment/prompts.py — v1
"""Enrichment prompt construction.

The instruction template lives in templates/enrichment.txt and is filled
with the (escaped) source title, body and category.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

_TEMPLATE_PATH = Path(__file__).parent / "templates" / "enrichment.txt"

SYSTEM_PROMPT = "You are a news editor. Respond only with valid JSON."


@lru_cache(maxsize=1)
def load_prompt_template() -> str:
    """Load and cache the enrichment prompt template."""
    return _TEMPLATE_PATH.read_text(encoding="utf-8")


def escape_for_prompt(text: str) -> str:
    """Escape double quotes and flatten newlines/tabs to spaces."""
    text = text.replace('"', '\\"')
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    return text.strip()


def build_enrichment_prompt(
    title: str,
    body: str,
    category: str,
    max_title_length: int = 60,
    max_description_length: int = 160,
) -> str:
    """Fill the enrichment template for one source article."""
    return load_prompt_template().format(
        title=escape_for_prompt(title),
        body=escape_for_prompt(body),
        category=escape_for_prompt(category),
        max_title_length=max_title_length,
        max_description_length=max_description_length,
    )

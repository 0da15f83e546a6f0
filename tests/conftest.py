# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides sample source/enriched items, a mock gateway client, settings
without .env, and temp storage roots. No network: all I/O is mocked or
confined to tmp_path.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from newsweaver.config.settings import Settings
from newsweaver.core.models import EnrichedItem, SourceItem
from newsweaver.llm.models import LLMResponse
from newsweaver.logging.context import clear_context

SAMPLE_BODY = (
    "The city council approved a new budget on Monday. "
    "Spending on public transport rises by twelve percent. "
    "Opposition members criticised the timeline. "
    "A final vote is expected next month."
)

SAMPLE_REPLY = {
    "seo_title": "City Council Approves New Transport Budget",
    "seo_description": "The council backed a budget that raises transport spending by 12%.",
    "tldr": [
        "Budget approved on Monday",
        "Transport spending up 12%",
        "Final vote next month",
    ],
    "content_md": (
        "## Budget approved\n\nThe city council approved a new budget on Monday, "
        "raising public transport spending by twelve percent."
    ),
    "category": "Politics",
    "tags": ["budget", "transport", "city council"],
    "image_title": "Council chamber",
    "image_description": "Members of the city council during the vote",
}


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_source_item() -> SourceItem:
    """Minimal valid, already-normalized SourceItem."""
    return SourceItem(
        guid="guid-001",
        title="Council approves budget",
        body=SAMPLE_BODY,
        image="https://cdn.example.com/img/council.jpg",
        category="general",
        url="https://news.example.com/articles/council-budget",
    )


@pytest.fixture
def sample_enriched_item() -> EnrichedItem:
    """Fully populated EnrichedItem."""
    created = datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc)
    return EnrichedItem(
        id="a1b2c3d4e5f60718293a4b5c6d7e8f90",
        source_guid="guid-001",
        seo_title="City Council Approves New Transport Budget",
        seo_description="The council backed a budget that raises transport spending.",
        tldr=["Budget approved", "Transport up 12%", "Vote next month"],
        content_md="## Budget\n\n" + SAMPLE_BODY,
        category="Politics",
        tags=["budget", "transport"],
        image="https://cdn.example.com/img/council.jpg",
        image_title="Council chamber",
        image_description="Council members voting",
        original_url="https://news.example.com/articles/council-budget",
        created_at=created,
        updated_at=created,
    )


# === FIXTURES: Mock gateway ===


def make_llm_response(content: str) -> LLMResponse:
    return LLMResponse(
        content=content,
        input_tokens=120,
        output_tokens=80,
        model="gemini-1.5-flash",
        provider="mock",
        latency_ms=250,
    )


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    """Well-formed enrichment reply."""
    return make_llm_response(json.dumps(SAMPLE_REPLY))


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock BaseLLMClient with default response."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.provider_name = "mock"
    return client


# === FIXTURES: Settings / temp dirs ===


@pytest.fixture
def tmp_data_root(tmp_path: Path) -> Path:
    """Temporary storage root."""
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_data_root: Path) -> Settings:
    """Settings isolated from any .env file."""
    return Settings(
        _env_file=None,
        data_root=tmp_data_root,
        google_api_key="AIza-test-credential",
        wake_grace_s=0,
        fetch_retry_base_delay_s=0.01,
        fetch_retry_max_delay_s=0.01,
    )


@pytest.fixture
def llm_response_factory():
    """Build an LLMResponse carrying arbitrary reply text."""
    return make_llm_response

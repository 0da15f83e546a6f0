# tests/unit/core/test_unit_models.py — v2
"""Tests for core/models.py — SourceItem and EnrichedItem."""

from __future__ import annotations

from newsweaver.core.models import EnrichedItem, SourceItem, new_item_id, utcnow


class TestSourceItem:
    def test_defaults_empty(self):
        item = SourceItem()
        assert item.guid == ""
        assert item.url == ""


class TestEnrichedItem:
    def test_fresh_ids_unique(self):
        a = EnrichedItem(source_guid="g", seo_title="t")
        b = EnrichedItem(source_guid="g", seo_title="t")
        assert a.id != b.id
        assert len(a.id) == 32

    def test_defaults(self):
        item = EnrichedItem(source_guid="g", seo_title="t")
        assert item.tldr == []
        assert item.tags == []
        assert item.fallback is False
        assert item.created_at is None

    def test_json_field_names(self, sample_enriched_item):
        data = sample_enriched_item.model_dump(mode="json")
        assert set(data) >= {
            "id", "source_guid", "seo_title", "seo_description", "tldr",
            "content_md", "category", "tags", "image", "image_title",
            "image_description", "original_url", "fallback", "created_at", "updated_at",
        }
        assert data["created_at"].startswith("2026-03-14T09:30:00")


class TestHelpers:
    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is not None

    def test_new_item_id_hex(self):
        int(new_item_id(), 16)

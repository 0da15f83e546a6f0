"""Batch orchestration: fetch, dedup, enrich, postprocess, persist."""

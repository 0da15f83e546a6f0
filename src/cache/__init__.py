"""Fingerprint cache: the deduplication source of truth."""

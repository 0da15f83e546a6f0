# src/__init__.py — v1
"""newsweaver: feed ingestion, deduplication and generative enrichment pipeline."""

from newsweaver.version import __version__

__all__ = ["__version__"]

# src/cache/fingerprint.py — v3
"""Content fingerprinting: deterministic digest of a canonical source URL.

Fingerprints are opaque 64-char hex strings used as deduplication keys.
"""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit, urlunsplit

FINGERPRINT_LENGTH = 64


def canonicalize_url(url: str) -> str:
    """Canonical form of a source URL.

    Trims whitespace, lowercases scheme and host, and drops the fragment.
    Path and query are kept verbatim since they identify the article.
    """
    url = url.strip()
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, "")
    )


def compute_fingerprint(url: str) -> str:
    """SHA-256 hex digest of the canonical URL."""
    canonical = canonicalize_url(url)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

# src/feed/fetcher.py — v3
"""Concurrent source feed fetcher.

One asyncio task per endpoint; failures are collected and reported as a
single aggregated FetchError next to every item that did arrive.

Hosts on free-tier platforms (default ``onrender.com``) suspend when idle.
For those a HEAD probe to the host root is sent first so the real GET does
not land on a cold instance.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable
from urllib.parse import urlsplit

import httpx

from newsweaver.config.settings import Settings
from newsweaver.core.backoff import RetryConfig, with_backoff
from newsweaver.core.errors import FetchError
from newsweaver.core.models import SourceItem
from newsweaver.feed.parser import parse_feed_payload

if TYPE_CHECKING:
    from newsweaver.pipeline.deadline import Deadline

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({502, 503, 504})


@dataclass
class FetchBatch:
    """Union of fetched items plus the aggregated failure, if any."""

    items: list[SourceItem] = field(default_factory=list)
    error: FetchError | None = None


def _should_retry(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


class SourceFetcher:
    """Fetches and parses source feeds over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_s: float = 30.0,
        retry: RetryConfig | None = None,
        wake_host_suffixes: Iterable[str] = ("onrender.com",),
        wake_probe_timeout_s: float = 10.0,
        wake_grace_s: float = 2.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._timeout_s = timeout_s
        self._retry = retry or RetryConfig()
        self._wake_suffixes = tuple(s.lower() for s in wake_host_suffixes)
        self._wake_probe_timeout_s = wake_probe_timeout_s
        self._wake_grace_s = wake_grace_s

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> SourceFetcher:
        return cls(
            client,
            timeout_s=settings.fetch_timeout_s,
            retry=RetryConfig(
                max_retries=settings.fetch_max_retries,
                base_delay_s=settings.fetch_retry_base_delay_s,
                max_delay_s=settings.fetch_retry_max_delay_s,
            ),
            wake_host_suffixes=settings.wake_host_suffixes_list,
            wake_probe_timeout_s=settings.wake_probe_timeout_s,
            wake_grace_s=settings.wake_grace_s,
        )

    async def fetch_all(
        self, urls: list[str], deadline: Deadline | None = None
    ) -> FetchBatch:
        """Fetch every endpoint concurrently.

        Never raises for endpoint failures; they are folded into
        ``FetchBatch.error``. Once ``deadline`` expires no new request or
        retry is started; the affected endpoints are reported as failures.
        """
        if not urls:
            return FetchBatch()

        results = await asyncio.gather(
            *(self._fetch_guarded(u, deadline) for u in urls)
        )

        batch = FetchBatch()
        failures: list[FetchError] = []
        for items, error in results:
            batch.items.extend(items)
            if error is not None:
                failures.append(error)

        if failures:
            batch.error = FetchError.aggregate(failures, total=len(urls))
            logger.warning("Feed fetch: %s", batch.error)

        logger.info(
            "Fetched %d item(s) from %d/%d source(s)",
            len(batch.items), len(urls) - len(failures), len(urls),
        )
        return batch

    async def _fetch_guarded(
        self, url: str, deadline: Deadline | None = None
    ) -> tuple[list[SourceItem], FetchError | None]:
        try:
            return await self.fetch_source(url, deadline), None
        except FetchError as e:
            return [], e

    async def fetch_source(
        self, url: str, deadline: Deadline | None = None
    ) -> list[SourceItem]:
        """Fetch and parse one endpoint.

        Raises:
            FetchError: On transport or decoding failure, unexpected status,
                bad payload, or an already expired ``deadline``.
        """
        if deadline is not None and deadline.expired:
            raise FetchError(
                f"skipped fetch of {url}: batch deadline expired", url=url
            )

        if self._needs_wake_up(url):
            await self._wake_up(url)

        try:
            response = await with_backoff(
                lambda: self._get(url),
                should_retry=_should_retry,
                config=self._retry,
                label=f"GET {url}",
                give_up=(lambda: deadline.expired) if deadline is not None else None,
            )
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"unexpected status code {e.response.status_code} from {url}", url=url
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # decoding, redirect loops and malformed URLs included
            raise FetchError(f"failed to fetch feed from {url}: {e}", url=url) from e

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise FetchError(
                f"failed to parse feed response from {url}: {e}", url=url
            ) from e

        items = parse_feed_payload(payload, source_url=url)
        logger.debug("Parsed %d item(s) from %s", len(items), url)
        return items

    async def _get(self, url: str) -> httpx.Response:
        response = await self._client.get(
            url,
            headers={"Accept": "application/json"},
            timeout=self._timeout_s,
        )
        if response.status_code in RETRYABLE_STATUS:
            response.raise_for_status()
        if response.status_code != 200:
            raise FetchError(
                f"unexpected status code {response.status_code} from {url}", url=url
            )
        return response

    # --- Wake-up probe ---

    def _needs_wake_up(self, url: str) -> bool:
        host = (urlsplit(url).hostname or "").lower()
        return any(host == s or host.endswith("." + s) for s in self._wake_suffixes)

    async def _wake_up(self, url: str) -> None:
        """HEAD the host root; log and continue on any failure."""
        parts = urlsplit(url)
        root = f"{parts.scheme}://{parts.netloc}"
        try:
            response = await self._client.head(root, timeout=self._wake_probe_timeout_s)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Wake-up probe to %s failed, continuing: %s", root, e)
            return

        if not response.is_success:
            logger.warning(
                "Wake-up probe to %s returned %d, continuing",
                root, response.status_code,
            )
            return

        logger.debug("Wake-up probe to %s ok, waiting %.1fs", root, self._wake_grace_s)
        if self._wake_grace_s > 0:
            await asyncio.sleep(self._wake_grace_s)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SourceFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

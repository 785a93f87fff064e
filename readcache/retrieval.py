"""
Retriever - read-through article retrieval.

Lookup order for a URL:
1. Store hit: bump the view count and serve the stored article
2. Store miss: extract the page, store it, push it onto the recency list
3. Store failure or corrupt entry: return a degraded record without
   extracting, so an outage does not turn every request into a fetch

Side-effect writes (view count, store write, recency push) are awaited
before returning, but their failures are logged and never change the
response.

Concurrent misses for the same URL are not coalesced: both requests
extract, the last write wins, and the recency list may hold the URL twice.
"""

import logging
from typing import TYPE_CHECKING

from .exceptions import DecodeError, ExtractionError, StoreUnavailable
from .models import ArticleRecord

if TYPE_CHECKING:
    from .fetcher import Fetcher
    from .store import ArticleStore

logger = logging.getLogger(__name__)

EXTRACT_TIMEOUT = 30.0


class Retriever:
    """Serves articles from the store, extracting them on a miss."""

    def __init__(
        self,
        store: "ArticleStore",
        fetcher: "Fetcher",
        extract_timeout: float = EXTRACT_TIMEOUT,
    ):
        self.store = store
        self.fetcher = fetcher
        self.extract_timeout = extract_timeout

    async def retrieve(self, url: str) -> ArticleRecord:
        """
        Get the article for a URL.

        Never raises for store or extraction failures; those come back as a
        record with error_message set.
        """
        if not url or not url.strip():
            return ArticleRecord.failed(url, "URL must not be empty")

        try:
            cached = await self.store.get(url)
        except (StoreUnavailable, DecodeError) as e:
            logger.error(f"Cache lookup failed for {url}: {e}")
            return ArticleRecord.failed(url, e)

        if cached is not None:
            logger.info(f"get article from cache: {url}")
            await self._increment_views(url)
            return cached

        try:
            title, content = await self.fetcher.extract(url, timeout=self.extract_timeout)
        except ExtractionError as e:
            logger.warning(f"Extraction failed for {url}: {e}")
            return ArticleRecord.failed(url, e)

        record = ArticleRecord(url=url, title=title, content=content)
        await self._save(record)
        return record

    async def list_recent(self, n: int) -> list[str]:
        """
        Most recently extracted URLs, newest first.

        Raises:
            StoreUnavailable: If the store cannot be read
        """
        if n <= 0:
            return []
        return await self.store.recent(n)

    async def list_popular(self, n: int) -> list[tuple[str, float]]:
        """
        URLs with the most cache-served views, highest first.

        Raises:
            StoreUnavailable: If the store cannot be read
        """
        if n <= 0:
            return []
        return await self.store.top(n)

    async def _increment_views(self, url: str) -> None:
        try:
            await self.store.increment_score(url)
        except StoreUnavailable as e:
            logger.warning(f"Failed to increment view count for {url}: {e}")

    async def _save(self, record: ArticleRecord) -> None:
        try:
            await self.store.set(record.url, record)
        except StoreUnavailable as e:
            logger.warning(f"Failed to cache article {record.url}: {e}")

        # Independent of the write above; one failing never cancels the other
        try:
            await self.store.push_recent(record.url)
        except StoreUnavailable as e:
            logger.warning(f"Failed to push {record.url} onto recent articles: {e}")

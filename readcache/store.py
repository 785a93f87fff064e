"""
Article store - read-through cache for extracted articles.

Provides:
- RedisStore: shared store backed by a Redis server
- MemoryStore: in-process store for local development and tests

Alongside the serialized articles the store keeps two indexes:
- a recency list of URLs, most recently extracted first
- a view-count ranking, bumped each time an article is served from cache
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

import redis
import redis.asyncio

from .exceptions import StoreUnavailable
from .models import ArticleRecord, decode_record, encode_record

logger = logging.getLogger(__name__)

ARTICLE_PREFIX = "article:"
RECENT_KEY = "readability-timequeue"
VIEWCOUNT_KEY = "readability-viewcount"

MEMORY_URL = "memory://"


def article_key(url: str) -> str:
    """Store key for an article's serialized record."""
    return f"{ARTICLE_PREFIX}{url}"


class ArticleStore(ABC):
    """Abstract base class for article stores."""

    def __init__(self, ttl: int | None = None):
        # Seconds before a stored article expires; None keeps it forever
        self.ttl = ttl or None

    @abstractmethod
    async def get(self, url: str) -> ArticleRecord | None:
        """Get a stored article, or None when absent.

        Raises:
            StoreUnavailable: Backend failure
            DecodeError: Stored payload is corrupt
        """
        pass

    @abstractmethod
    async def set(self, url: str, record: ArticleRecord) -> None:
        """Store an article, overwriting any existing value."""
        pass

    @abstractmethod
    async def push_recent(self, url: str) -> None:
        """Prepend a URL to the recency list."""
        pass

    @abstractmethod
    async def increment_score(self, url: str) -> None:
        """Add one to a URL's view count, starting at 1."""
        pass

    @abstractmethod
    async def recent(self, n: int) -> list[str]:
        """Up to n most recently pushed URLs, most recent first."""
        pass

    @abstractmethod
    async def top(self, n: int) -> list[tuple[str, float]]:
        """Up to n URLs with the highest view counts, highest first."""
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Check that the backend is reachable."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass

    @staticmethod
    def _check_cacheable(record: ArticleRecord) -> None:
        if not record.is_cacheable:
            raise ValueError(f"Refusing to store degraded article for {record.url}")


class RedisStore(ArticleStore):
    """Article store backed by Redis.

    Each method is a single Redis command, so it inherits the server's
    per-command atomicity. Every redis or socket error surfaces as
    StoreUnavailable.
    """

    def __init__(self, client: "redis.asyncio.Redis", ttl: int | None = None):
        super().__init__(ttl)
        self.client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        ttl: int | None = None,
        socket_timeout: float | None = 5.0,
    ) -> "RedisStore":
        """Create a store from a redis:// URL."""
        client = redis.asyncio.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, ttl=ttl)

    async def get(self, url: str) -> ArticleRecord | None:
        try:
            data = await self.client.get(article_key(url))
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to get article from cache: {e}") from e

        if data is None:
            return None

        return decode_record(data, url)

    async def set(self, url: str, record: ArticleRecord) -> None:
        self._check_cacheable(record)
        try:
            await self.client.set(article_key(url), encode_record(record), ex=self.ttl)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to set article in cache: {e}") from e

    async def push_recent(self, url: str) -> None:
        try:
            await self.client.lpush(RECENT_KEY, url)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to push recent article: {e}") from e

    async def increment_score(self, url: str) -> None:
        try:
            await self.client.zincrby(VIEWCOUNT_KEY, 1, url)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to increment view count: {e}") from e

    async def recent(self, n: int) -> list[str]:
        if n <= 0:
            return []
        try:
            # LRANGE bounds are inclusive
            items = await self.client.lrange(RECENT_KEY, 0, n - 1)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to get last {n} articles: {e}") from e
        return [_to_str(item) for item in items]

    async def top(self, n: int) -> list[tuple[str, float]]:
        if n <= 0:
            return []
        try:
            items = await self.client.zrevrange(VIEWCOUNT_KEY, 0, n - 1, withscores=True)
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to get top {n} articles: {e}") from e
        return [(_to_str(member), float(score)) for member, score in items]

    async def ping(self) -> None:
        try:
            await self.client.ping()
        except (redis.RedisError, OSError) as e:
            raise StoreUnavailable(f"Failed to connect to redis: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()


def _to_str(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@dataclass
class StoreEntry:
    payload: str
    expires_at: datetime | None


class MemoryStore(ArticleStore):
    """In-process article store.

    Articles are held serialized, as in Redis, so decoding behaves the same.
    State is per process; use RedisStore when several workers share a cache.
    """

    def __init__(self, ttl: int | None = None):
        super().__init__(ttl)
        self._articles: dict[str, StoreEntry] = {}
        self._recent: list[str] = []
        self._scores: dict[str, float] = {}

    async def get(self, url: str) -> ArticleRecord | None:
        entry = self._articles.get(article_key(url))
        if entry is None:
            return None

        # Check expiration
        if entry.expires_at and entry.expires_at < datetime.now():
            self._articles.pop(article_key(url), None)
            return None

        return decode_record(entry.payload, url)

    async def set(self, url: str, record: ArticleRecord) -> None:
        self._check_cacheable(record)
        expires_at = datetime.now() + timedelta(seconds=self.ttl) if self.ttl else None
        self._articles[article_key(url)] = StoreEntry(
            payload=encode_record(record),
            expires_at=expires_at,
        )

    async def push_recent(self, url: str) -> None:
        self._recent.insert(0, url)

    async def increment_score(self, url: str) -> None:
        self._scores[url] = self._scores.get(url, 0.0) + 1

    async def recent(self, n: int) -> list[str]:
        if n <= 0:
            return []
        return self._recent[:n]

    async def top(self, n: int) -> list[tuple[str, float]]:
        if n <= 0:
            return []
        ranked = sorted(self._scores.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:n]

    async def ping(self) -> None:
        return None

    def put_raw(self, url: str, payload: str) -> None:
        """Store a raw payload under an article key, bypassing encoding."""
        self._articles[article_key(url)] = StoreEntry(payload=payload, expires_at=None)

    def score(self, url: str) -> float:
        """Current view count for a URL (0 when never served from cache)."""
        return self._scores.get(url, 0.0)

    @property
    def size(self) -> int:
        return len(self._articles)


def create_store(url: str, ttl: int | None = None) -> ArticleStore:
    """Factory function to create a store from a STORE_URL value."""
    if url == MEMORY_URL:
        logger.info("Using in-process article store")
        return MemoryStore(ttl=ttl)
    return RedisStore.from_url(url, ttl=ttl)

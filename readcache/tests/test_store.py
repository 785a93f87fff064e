"""
Tests for article stores and the stored record format.
"""

import json
from unittest.mock import AsyncMock

import pytest
import redis

from readcache.exceptions import DecodeError, StoreUnavailable
from readcache.models import ArticleRecord, decode_record, encode_record
from readcache.store import (
    RECENT_KEY,
    VIEWCOUNT_KEY,
    MemoryStore,
    RedisStore,
    article_key,
    create_store,
)


ARTICLE = ArticleRecord(url="http://a.test", title="Example", content="<p>Hi</p>")


class TestRecordFormat:
    """Tests for encode_record / decode_record."""

    def test_encoded_fields(self):
        """Should write a JSON object with tagged fields."""
        payload = json.loads(encode_record(ARTICLE))
        assert payload == {
            "url": "http://a.test",
            "title": "Example",
            "content": "<p>Hi</p>",
            "errorMessage": "",
        }

    def test_decodes_bytes(self):
        data = encode_record(ARTICLE).encode("utf-8")
        assert decode_record(data, "http://a.test") == ARTICLE

    def test_missing_url_uses_lookup_key(self):
        record = decode_record('{"title": "T", "content": "C"}', "http://k.test")
        assert record.url == "http://k.test"
        assert record.title == "T"

    def test_legacy_field_names(self):
        """Should read entries written with capitalized field names."""
        data = json.dumps({"URL": "http://a.test", "Title": "Old", "Content": "<p>x</p>", "ErrMsg": ""})
        record = decode_record(data, "http://a.test")
        assert record.title == "Old"
        assert record.content == "<p>x</p>"

    def test_invalid_json(self):
        with pytest.raises(DecodeError, match="not valid JSON"):
            decode_record("{oops", "http://a.test")

    def test_non_object(self):
        with pytest.raises(DecodeError, match="not a JSON object"):
            decode_record("[1, 2]", "http://a.test")

    def test_non_string_field(self):
        with pytest.raises(DecodeError, match="non-string field"):
            decode_record('{"title": 5}', "http://a.test")

    def test_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode_record(b"\xff\xfe", "http://a.test")

    def test_decode_error_is_not_store_unavailable(self):
        """Decoding and backend failures should be distinguishable."""
        assert not issubclass(DecodeError, StoreUnavailable)


class TestArticleRecord:

    def test_failed_record(self):
        record = ArticleRecord.failed("http://x.test", ValueError("boom"))
        assert record.error_message == "boom"
        assert record.title == ""
        assert record.is_error
        assert not record.is_cacheable

    def test_failed_record_without_message(self):
        """Exceptions with no message still produce a non-empty error."""
        record = ArticleRecord.failed("http://x.test", TimeoutError())
        assert record.error_message == "TimeoutError"


class TestMemoryStore:
    """Tests for the in-process store."""

    @pytest.mark.asyncio
    async def test_get_missing(self):
        store = MemoryStore()
        assert await store.get("http://nope.test") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        store = MemoryStore()
        await store.set(ARTICLE.url, ARTICLE)
        assert await store.get(ARTICLE.url) == ARTICLE

    @pytest.mark.asyncio
    async def test_set_overwrites(self):
        store = MemoryStore()
        await store.set(ARTICLE.url, ARTICLE)
        await store.set(ARTICLE.url, ArticleRecord(url=ARTICLE.url, title="New", content="<p>2</p>"))
        assert (await store.get(ARTICLE.url)).title == "New"
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_refuses_degraded_record(self):
        store = MemoryStore()
        with pytest.raises(ValueError):
            await store.set("http://x.test", ArticleRecord.failed("http://x.test", "boom"))

    @pytest.mark.asyncio
    async def test_recent_order_and_limit(self):
        store = MemoryStore()
        for url in ("u1", "u2", "u3"):
            await store.push_recent(url)
        assert await store.recent(2) == ["u3", "u2"]
        assert await store.recent(10) == ["u3", "u2", "u1"]

    @pytest.mark.asyncio
    async def test_increment_score_starts_at_one(self):
        store = MemoryStore()
        await store.increment_score("u1")
        assert store.score("u1") == 1
        await store.increment_score("u1")
        assert store.score("u1") == 2

    @pytest.mark.asyncio
    async def test_top(self):
        store = MemoryStore()
        await store.increment_score("u1")
        await store.increment_score("u2")
        await store.increment_score("u2")
        assert await store.top(1) == [("u2", 2.0)]

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        """Entries should expire once their TTL has passed."""
        store = MemoryStore(ttl=60)
        await store.set(ARTICLE.url, ARTICLE)
        entry = store._articles[article_key(ARTICLE.url)]
        entry.expires_at = entry.expires_at.replace(year=2000)
        assert await store.get(ARTICLE.url) is None


class TestRedisStore:
    """Tests for RedisStore against a mocked redis client."""

    @pytest.fixture
    def client(self):
        return AsyncMock()

    @pytest.fixture
    def store(self, client):
        return RedisStore(client)

    @pytest.mark.asyncio
    async def test_get_uses_article_namespace(self, store, client):
        client.get.return_value = encode_record(ARTICLE).encode()
        assert await store.get("http://a.test") == ARTICLE
        client.get.assert_awaited_once_with("article:http://a.test")

    @pytest.mark.asyncio
    async def test_get_missing(self, store, client):
        client.get.return_value = None
        assert await store.get("http://a.test") is None

    @pytest.mark.asyncio
    async def test_get_connection_error(self, store, client):
        client.get.side_effect = redis.ConnectionError("Connection refused")
        with pytest.raises(StoreUnavailable, match="Connection refused"):
            await store.get("http://a.test")

    @pytest.mark.asyncio
    async def test_get_socket_error(self, store, client):
        client.get.side_effect = OSError("network unreachable")
        with pytest.raises(StoreUnavailable):
            await store.get("http://a.test")

    @pytest.mark.asyncio
    async def test_get_corrupt_payload(self, store, client):
        client.get.return_value = b"not json"
        with pytest.raises(DecodeError):
            await store.get("http://a.test")

    @pytest.mark.asyncio
    async def test_set_without_ttl(self, store, client):
        await store.set(ARTICLE.url, ARTICLE)
        client.set.assert_awaited_once_with("article:http://a.test", encode_record(ARTICLE), ex=None)

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, client):
        store = RedisStore(client, ttl=3600)
        await store.set(ARTICLE.url, ARTICLE)
        assert client.set.await_args.kwargs["ex"] == 3600

    @pytest.mark.asyncio
    async def test_set_error(self, store, client):
        client.set.side_effect = redis.TimeoutError("Timeout writing to socket")
        with pytest.raises(StoreUnavailable):
            await store.set(ARTICLE.url, ARTICLE)

    @pytest.mark.asyncio
    async def test_push_recent(self, store, client):
        await store.push_recent("http://a.test")
        client.lpush.assert_awaited_once_with(RECENT_KEY, "http://a.test")

    @pytest.mark.asyncio
    async def test_increment_score(self, store, client):
        await store.increment_score("http://a.test")
        client.zincrby.assert_awaited_once_with(VIEWCOUNT_KEY, 1, "http://a.test")

    @pytest.mark.asyncio
    async def test_increment_score_error(self, store, client):
        client.zincrby.side_effect = redis.ConnectionError("gone")
        with pytest.raises(StoreUnavailable):
            await store.increment_score("http://a.test")

    @pytest.mark.asyncio
    async def test_recent_range_is_inclusive(self, store, client):
        """Should ask for exactly n entries."""
        client.lrange.return_value = [b"u3", b"u2"]
        assert await store.recent(2) == ["u3", "u2"]
        client.lrange.assert_awaited_once_with(RECENT_KEY, 0, 1)

    @pytest.mark.asyncio
    async def test_recent_zero(self, store, client):
        assert await store.recent(0) == []
        client.lrange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recent_error(self, store, client):
        client.lrange.side_effect = redis.ConnectionError("gone")
        with pytest.raises(StoreUnavailable):
            await store.recent(10)

    @pytest.mark.asyncio
    async def test_top(self, store, client):
        client.zrevrange.return_value = [(b"u2", 5.0), (b"u1", 1.0)]
        assert await store.top(2) == [("u2", 5.0), ("u1", 1.0)]
        client.zrevrange.assert_awaited_once_with(VIEWCOUNT_KEY, 0, 1, withscores=True)

    @pytest.mark.asyncio
    async def test_ping_error(self, store, client):
        client.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(StoreUnavailable, match="Failed to connect"):
            await store.ping()

    @pytest.mark.asyncio
    async def test_close(self, store, client):
        await store.close()
        client.aclose.assert_awaited_once()


class TestCreateStore:

    def test_memory_url(self):
        assert isinstance(create_store("memory://"), MemoryStore)

    def test_redis_url(self):
        """Building the client should not connect."""
        store = create_store("redis://localhost:6379/0", ttl=10)
        assert isinstance(store, RedisStore)
        assert store.ttl == 10

    def test_zero_ttl_means_no_expiry(self):
        assert create_store("memory://", ttl=0).ttl is None

"""
Pytest fixtures for readcache tests.
"""

import pytest
from fastapi.testclient import TestClient

from readcache.config import state
from readcache.exceptions import ExtractionError, StoreUnavailable
from readcache.retrieval import Retriever
from readcache.server import app
from readcache.store import MemoryStore


class FakeFetcher:
    """Extractor double returning canned pages and recording calls."""

    def __init__(self, pages: dict[str, tuple[str, str] | Exception] | None = None):
        self.pages = dict(pages or {})
        self.calls: list[tuple[str, float | None]] = []

    async def extract(self, url: str, timeout: float | None = None) -> tuple[str, str]:
        self.calls.append((url, timeout))
        page = self.pages.get(url)
        if page is None:
            raise ExtractionError(f"HTTP 404 fetching {url}", url=url)
        if isinstance(page, Exception):
            raise page
        return page

    def call_count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)


class FlakyStore(MemoryStore):
    """MemoryStore whose operations can be made to fail one by one."""

    def __init__(self, failing: set[str] | None = None):
        super().__init__()
        self.failing = set(failing or ())

    def _maybe_fail(self, op: str) -> None:
        if op in self.failing:
            raise StoreUnavailable(f"{op}: connection refused")

    async def get(self, url):
        self._maybe_fail("get")
        return await super().get(url)

    async def set(self, url, record):
        self._maybe_fail("set")
        await super().set(url, record)

    async def push_recent(self, url):
        self._maybe_fail("push_recent")
        await super().push_recent(url)

    async def increment_score(self, url):
        self._maybe_fail("increment_score")
        await super().increment_score(url)

    async def recent(self, n):
        self._maybe_fail("recent")
        return await super().recent(n)

    async def top(self, n):
        self._maybe_fail("top")
        return await super().top(n)

    async def ping(self):
        self._maybe_fail("ping")


@pytest.fixture
def store():
    """Fresh store whose operations can be switched to fail."""
    return FlakyStore()


@pytest.fixture
def fetcher():
    """Extractor double with a few canned pages."""
    return FakeFetcher({
        "http://a.test": ("Example", "<p>Hi</p>"),
        "https://example.com/posts/1": ("First Post", "<p>One</p>"),
        "https://example.com/posts/2": ("Second Post", "<p>Two</p>"),
        "https://example.com/search?q=a/b": ("Search", "<p>Results</p>"),
        "http://c.test": ExtractionError("Timed out after 30s fetching http://c.test"),
    })


@pytest.fixture
def retriever(store, fetcher):
    return Retriever(store=store, fetcher=fetcher)


@pytest.fixture
def client(store, fetcher, retriever):
    """Test client wired to the fake store and extractor."""
    original_store = state.store
    original_fetcher = state.fetcher
    original_retriever = state.retriever

    state.store = store
    state.fetcher = fetcher
    state.retriever = retriever

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    state.store = original_store
    state.fetcher = original_fetcher
    state.retriever = original_retriever

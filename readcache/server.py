"""
Readable-article API Server

FastAPI application providing endpoints for:
- Reading a URL as an extracted article (cached in the store)
- Listing recently extracted and most viewed articles
- Health checks
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import config, state
from .exceptions import StoreUnavailable
from .fetcher import Fetcher
from .retrieval import Retriever
from .routes import articles_router, misc_router
from .store import create_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store client once per process and close it on shutdown."""
    owned_store = None

    # Startup - skip if already initialized (e.g., by tests)
    if state.retriever is None:
        store = create_store(config.STORE_URL, ttl=config.STORE_TTL_SECONDS)
        try:
            await store.ping()
        except StoreUnavailable as e:
            logger.error(f"Failed to connect to store, URL: {config.STORE_URL}, error: {e}")
            await store.close()
            raise

        owned_store = store
        state.store = store
        state.fetcher = Fetcher(timeout=config.EXTRACT_TIMEOUT)
        state.retriever = Retriever(
            store=store,
            fetcher=state.fetcher,
            extract_timeout=config.EXTRACT_TIMEOUT,
        )
        logger.info(f"Article store connected: {config.STORE_URL}")

    yield

    # Shutdown
    if owned_store is not None:
        try:
            await owned_store.close()
        except Exception as e:
            logger.warning(f"Error closing article store: {e}")
        state.store = None
        state.fetcher = None
        state.retriever = None


app = FastAPI(
    title="Readable Article API",
    version=__version__,
    lifespan=lifespan
)

# Include routers
app.include_router(misc_router)
app.include_router(articles_router)


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Listening on address, http://localhost:{config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT, log_level=config.LOG_LEVEL.lower())

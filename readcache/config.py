"""
Configuration and application state management.
"""

import os
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .fetcher import Fetcher
    from .retrieval import Retriever
    from .store import ArticleStore

# Load environment variables
load_dotenv()


class Config:
    """Application configuration from environment."""
    # redis://host:port/db, or memory:// for a per-process store.
    # REDIS_URL is read as a fallback for older deployments.
    STORE_URL: str = os.getenv("STORE_URL") or os.getenv("REDIS_URL") or "redis://localhost:6379/0"

    # Seconds before stored articles expire; 0 keeps them forever
    STORE_TTL_SECONDS: int = int(os.getenv("STORE_TTL_SECONDS", "0"))

    EXTRACT_TIMEOUT: float = float(os.getenv("EXTRACT_TIMEOUT", "30"))
    RECENT_LIMIT: int = int(os.getenv("RECENT_LIMIT", "10"))

    PORT: int = int(os.getenv("PORT", "8080"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


config = Config()


class AppState:
    """Shared application state."""
    store: "ArticleStore | None" = None
    fetcher: "Fetcher | None" = None
    retriever: "Retriever | None" = None


state = AppState()


def get_retriever() -> "Retriever":
    """Dependency to get the retriever instance."""
    if not state.retriever:
        raise HTTPException(status_code=500, detail="Retriever not initialized")
    return state.retriever

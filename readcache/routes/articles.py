"""
Article routes: recent list, submit a URL, read an article, popular list.
"""

import json
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from ..config import config, get_retriever
from ..exceptions import StoreUnavailable, require_resource, store_unavailable
from ..retrieval import Retriever
from ..schemas import (
    ArticleResponse,
    PopularArticle,
    PopularArticlesResponse,
    ReadRequest,
    RecentArticlesResponse,
)

router = APIRouter(tags=["articles"])

READ_PREFIX = "/read/"


def escape(s: str) -> str:
    """Make a URL safe to embed as a single path segment."""
    return s.replace("/", "%2F")


def unescape(s: str) -> str:
    """Reverse escape()."""
    return s.replace("%2F", "/").replace("%2f", "/")


def target_url(request: Request) -> str:
    """
    Recover the submitted URL from a /read/ request.

    The decoded path has already turned %2F into /, so the raw path is used
    instead. A query string belongs to the target URL, not to this route.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    url = unescape(path[len(READ_PREFIX):])
    if url and request.url.query:
        url = f"{url}?{request.url.query}"
    return url


# ─────────────────────────────────────────────────────────────
# Index
# ─────────────────────────────────────────────────────────────

@router.get("/")
async def list_recent(
    retriever: Annotated[Retriever, Depends(get_retriever)],
    limit: int | None = Query(default=None, ge=1, le=100),
) -> RecentArticlesResponse:
    """Most recently extracted articles."""
    try:
        recents = await retriever.list_recent(limit or config.RECENT_LIMIT)
    except StoreUnavailable as e:
        raise store_unavailable(e)
    return RecentArticlesResponse(recents=recents)


@router.get("/popular")
async def list_popular(
    retriever: Annotated[Retriever, Depends(get_retriever)],
    limit: int = Query(default=10, ge=1, le=100),
) -> PopularArticlesResponse:
    """Articles served from cache most often."""
    try:
        ranked = await retriever.list_popular(limit)
    except StoreUnavailable as e:
        raise store_unavailable(e)
    return PopularArticlesResponse(
        articles=[PopularArticle(url=url, views=int(views)) for url, views in ranked]
    )


# ─────────────────────────────────────────────────────────────
# Read
# ─────────────────────────────────────────────────────────────

@router.post("/read")
async def submit_url(request: Request) -> RedirectResponse:
    """Redirect a submitted URL (form field or JSON body) to its read page."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = ReadRequest.model_validate(await request.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise HTTPException(status_code=422, detail=f"Invalid request body: {e}")
        url = body.url
    else:
        form = await request.form()
        url = form.get("url") or request.query_params.get("url") or ""

    url = str(url).strip()
    if not url:
        raise HTTPException(status_code=400, detail="Missing url")

    return RedirectResponse(url=READ_PREFIX + escape(url), status_code=303)


@router.get("/read/{target:path}")
async def read_article(
    request: Request,
    retriever: Annotated[Retriever, Depends(get_retriever)],
) -> ArticleResponse:
    """Extracted article for a URL; failures come back in error_message."""
    url = require_resource(target_url(request) or None, "Missing article URL")
    record = await retriever.retrieve(url)
    return ArticleResponse.from_record(record)

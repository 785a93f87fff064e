"""
Pydantic models for API request/response validation.
"""

from pydantic import BaseModel

from .models import ArticleRecord


class ReadRequest(BaseModel):
    """Submit a URL to read."""
    url: str


class ArticleResponse(BaseModel):
    """Extracted article, or a degraded record with error_message set."""
    url: str
    title: str
    content: str
    error_message: str = ""

    @classmethod
    def from_record(cls, record: ArticleRecord) -> "ArticleResponse":
        return cls(
            url=record.url,
            title=record.title,
            content=record.content,
            error_message=record.error_message,
        )


class RecentArticlesResponse(BaseModel):
    """Most recently extracted URLs, newest first."""
    recents: list[str]


class PopularArticle(BaseModel):
    url: str
    views: int


class PopularArticlesResponse(BaseModel):
    articles: list[PopularArticle]

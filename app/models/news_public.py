from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.news_item import NewsItem


class NewsItemOut(BaseModel):
    """Public-facing news article payload."""

    id: str
    headline: str
    summary: str
    source_url: str
    published_at: datetime
    categories: List[str] = Field(default_factory=list)
    source: str

    @classmethod
    def from_item(cls, item: NewsItem) -> "NewsItemOut":
        return cls(
            id=item.id,
            headline=item.headline,
            summary=item.summary,
            source_url=item.source_url,
            published_at=item.published_at,
            categories=list(item.categories),
            source=item.source,
        )


class NewsListResponse(BaseModel):
    """Response for /api/v1/news and /api/v1/news/search."""

    items: List[NewsItemOut]
    total: int


class NewsStatusResponse(BaseModel):
    last_refreshed_at: Optional[datetime] = None
    item_count: int = 0


class RefreshResponse(BaseModel):
    count: int
    timestamp: datetime

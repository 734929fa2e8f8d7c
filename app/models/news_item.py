from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class RawNewsItem(BaseModel):
    """
    Uniform shape every source adapter produces. Nothing here is validated
    beyond types: empty headlines, odd date strings and the like are the
    Item Filter's business, not the adapter's.
    """

    headline: str = ""
    summary: str = ""
    link: str = ""
    # Source-native date string (RFC 822 from RSS, ISO 8601 from Atom, ...)
    published: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    source: str = ""


class NewsItem(BaseModel):
    """Canonical, filtered and deduplicated item held in the aggregation cache."""

    model_config = ConfigDict(frozen=True)

    id: str
    headline: str
    summary: str
    source_url: str
    published_at: datetime
    categories: Tuple[str, ...] = ()
    source: str = ""

    @classmethod
    def from_raw(cls, raw: RawNewsItem, published_at: datetime) -> "NewsItem":
        headline = raw.headline.strip()
        summary = raw.summary.strip() or headline
        return cls(
            id=uuid.uuid4().hex,
            headline=headline,
            summary=summary,
            source_url=raw.link.strip(),
            published_at=published_at,
            categories=tuple(c for c in raw.categories if c),
            source=raw.source,
        )

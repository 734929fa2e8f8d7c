"""
Source adapters: one instance per configured feed.

An adapter knows how to fetch one source and turn it into RawNewsItems. It
raises on transport failure; isolating that failure from the rest of the
refresh cycle is the aggregator's job.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Protocol, runtime_checkable

import feedparser

from app.config import Settings
from app.core.logging import get_logger
from app.models.feed_sources import FeedSource
from app.models.news_item import RawNewsItem
from services.base_scraper_service import BaseScraperService
from services.html_listing import parse_listing
from services.rss_normalization import detect_feed_type, normalize_feed_entries

logger = get_logger().bind(module="source_adapters")

RSS_ACCEPT = "application/rss+xml,application/atom+xml,application/xml;q=0.9,*/*;q=0.8"
HTML_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"


@runtime_checkable
class SourceAdapter(Protocol):
    source_key: str

    async def fetch(self) -> List[RawNewsItem]:
        ...


class RSSFeedAdapter(BaseScraperService):
    """RSS 2.0 / Atom feed fetched with httpx and parsed with feedparser."""

    def __init__(self, source: FeedSource, *, user_agent: str, timeout_s: float, max_retries: int) -> None:
        super().__init__(
            user_agent=user_agent,
            timeout_s=timeout_s,
            max_retries=max_retries,
            accept=RSS_ACCEPT,
        )
        self.source = source
        self.source_key = source.key

    async def fetch(self) -> List[RawNewsItem]:
        logger.info("news_source_fetching", source=self.source_key, url=self.source.url)
        async with self:
            response = await self.fetch_url(self.source.url)

        parsed = feedparser.parse(response.content)
        items, errors = normalize_feed_entries(
            parsed,
            self.source,
            fetched_at=datetime.now(timezone.utc),
        )
        for err in errors:
            entry_raw = err.entry_raw or {}
            logger.warning(
                "news_source_normalization_error",
                source=self.source_key,
                url=entry_raw.get("link") or entry_raw.get("id") or self.source.url,
                error=str(err),
            )
        logger.info(
            "news_source_fetched",
            source=self.source_key,
            feed_type=detect_feed_type(parsed),
            items=len(items),
            failed_items=len(errors),
        )
        return items


class HTMLListingAdapter(BaseScraperService):
    """Listing page scraped with CSS selectors, gated by engagement indicators."""

    def __init__(self, source: FeedSource, *, user_agent: str, timeout_s: float, max_retries: int) -> None:
        super().__init__(
            user_agent=user_agent,
            timeout_s=timeout_s,
            max_retries=max_retries,
            accept=HTML_ACCEPT,
        )
        self.source = source
        self.source_key = source.key

    async def fetch(self) -> List[RawNewsItem]:
        logger.info("news_source_fetching", source=self.source_key, url=self.source.url)
        async with self:
            html_text = await self.fetch_text(self.source.url)

        items = parse_listing(self.source, html_text, fetched_at=datetime.now(timezone.utc))
        logger.info("news_source_fetched", source=self.source_key, feed_type="html", items=len(items))
        return items


def build_adapter(source: FeedSource, settings: Settings) -> SourceAdapter:
    kwargs = {
        "user_agent": settings.NEWS_USER_AGENT,
        "timeout_s": settings.NEWS_FETCH_TIMEOUT_S,
        "max_retries": settings.NEWS_FETCH_MAX_RETRIES,
    }
    if source.format == "html":
        return HTMLListingAdapter(source, **kwargs)
    return RSSFeedAdapter(source, **kwargs)

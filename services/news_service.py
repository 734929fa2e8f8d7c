from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from app.config import Settings, get_settings
from app.core.logging import get_logger
from app.models.feed_sources import get_all_feed_sources
from app.models.news_item import NewsItem
from services.news_aggregator import NewsAggregator
from services.news_cache import NewsCache
from services.news_dedupe_service import NewsDeduplicator
from services.news_filter import NewsItemFilter
from services.scheduler import TaskScheduler
from services.source_adapters import build_adapter

logger = get_logger().bind(module="news_service")

REFRESH_TASK_NAME = "news_refresh"


@dataclass(frozen=True)
class RefreshResult:
    items: List[NewsItem]
    count: int
    timestamp: datetime


@dataclass(frozen=True)
class NewsStatus:
    last_refreshed_at: Optional[datetime]
    item_count: int


class NewsService:
    """In-process entry point for everything that reads or refreshes news."""

    def __init__(self, cache: NewsCache, aggregator: NewsAggregator, scheduler: TaskScheduler) -> None:
        self.cache = cache
        self.aggregator = aggregator
        self.scheduler = scheduler

    def list(self) -> List[NewsItem]:
        return self.cache.list()

    def get_by_id(self, item_id: str) -> Optional[NewsItem]:
        return self.cache.get_by_id(item_id)

    def search(self, query: str) -> List[NewsItem]:
        return self.cache.search(query)

    def status(self) -> NewsStatus:
        snapshot = self.cache.snapshot
        return NewsStatus(last_refreshed_at=snapshot.last_refreshed_at, item_count=len(snapshot))

    async def refresh_now(self) -> RefreshResult:
        items = await self.aggregator.refresh()
        timestamp = self.cache.last_refreshed_at() or datetime.now(timezone.utc)
        return RefreshResult(items=items, count=len(items), timestamp=timestamp)

    async def _scheduled_refresh(self) -> None:
        await self.aggregator.refresh()

    def start_scheduler(self, interval: timedelta) -> None:
        self.scheduler.schedule(REFRESH_TASK_NAME, interval, self._scheduled_refresh)

    async def shutdown(self) -> None:
        await self.scheduler.cancel_all()


def build_news_service(settings: Settings) -> NewsService:
    sources_path = Path(settings.NEWS_SOURCES_PATH) if settings.NEWS_SOURCES_PATH else None
    sources = get_all_feed_sources(sources_path)
    adapters = [build_adapter(source, settings) for source in sources]

    cache = NewsCache()
    aggregator = NewsAggregator(
        cache,
        adapters,
        item_filter=NewsItemFilter(
            recency_window=timedelta(hours=settings.NEWS_RECENCY_WINDOW_HOURS),
            excluded_keywords=settings.NEWS_EXCLUDED_KEYWORDS,
            excluded_categories=settings.NEWS_EXCLUDED_CATEGORIES,
        ),
        deduplicator=NewsDeduplicator(threshold=settings.NEWS_SIMILARITY_THRESHOLD),
        fetch_timeout_s=settings.NEWS_FETCH_TIMEOUT_S,
        jitter_ms=(settings.NEWS_FETCH_JITTER_MIN_MS, settings.NEWS_FETCH_JITTER_MAX_MS),
        keep_stale_on_total_failure=settings.NEWS_KEEP_STALE_ON_TOTAL_FAILURE,
    )
    logger.info(
        "news_service_built",
        sources=[source.key for source in sources],
        recency_window_hours=settings.NEWS_RECENCY_WINDOW_HOURS,
    )
    return NewsService(cache, aggregator, TaskScheduler())


_service: Optional[NewsService] = None


def get_news_service() -> NewsService:
    """Process-wide service, built lazily from settings. FastAPI dependency."""
    global _service
    if _service is None:
        _service = build_news_service(get_settings())
    return _service


def reset_news_service() -> None:
    global _service
    _service = None

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from app.config import Settings
from app.models.feed_sources import clear_feed_sources_cache
from app.models.news_item import RawNewsItem
from services.news_aggregator import NewsAggregator
from services.news_cache import NewsCache
from services.news_service import REFRESH_TASK_NAME, NewsService, build_news_service
from services.scheduler import TaskScheduler
from services.source_adapters import HTMLListingAdapter, RSSFeedAdapter


class StaticAdapter:
    def __init__(self, key: str, headlines: List[str]) -> None:
        self.source_key = key
        self.headlines = headlines
        self.calls = 0

    async def fetch(self) -> List[RawNewsItem]:
        self.calls += 1
        now = datetime.now(timezone.utc)
        return [
            RawNewsItem(
                headline=headline,
                link=f"https://{self.source_key}.example/{i}",
                published=(now - timedelta(minutes=i + 1)).isoformat(),
                source=self.source_key,
            )
            for i, headline in enumerate(self.headlines)
        ]


def _service(adapter: StaticAdapter) -> NewsService:
    cache = NewsCache()
    aggregator = NewsAggregator(cache, [adapter], jitter_ms=(0, 0))
    return NewsService(cache, aggregator, TaskScheduler())


@pytest.mark.asyncio
async def test_status_before_first_refresh():
    service = _service(StaticAdapter("alpha", ["Anything"]))
    status = service.status()
    assert status.last_refreshed_at is None
    assert status.item_count == 0
    assert service.list() == []


@pytest.mark.asyncio
async def test_refresh_now_populates_cache():
    service = _service(StaticAdapter("alpha", ["Bitcoin hits record", "Oil slides lower"]))

    result = await service.refresh_now()

    assert result.count == 2
    assert [item.headline for item in result.items] == ["Bitcoin hits record", "Oil slides lower"]
    assert result.timestamp == service.status().last_refreshed_at
    assert service.status().item_count == 2
    first = result.items[0]
    assert service.get_by_id(first.id) == first
    assert service.search("bitcoin") == [first]


@pytest.mark.asyncio
async def test_start_scheduler_runs_refresh_and_shutdown_stops_it():
    adapter = StaticAdapter("alpha", ["Scheduled story"])
    service = _service(adapter)

    service.start_scheduler(timedelta(minutes=15))
    await asyncio.sleep(0.01)

    assert service.scheduler.active_tasks() == [REFRESH_TASK_NAME]
    assert adapter.calls == 1
    assert service.status().item_count == 1

    await service.shutdown()
    assert service.scheduler.active_tasks() == []


def test_build_news_service_wires_configured_sources(tmp_path):
    path = tmp_path / "news_sources.yml"
    path.write_text(
        """
sources:
  - key: feed_one
    name: Feed One
    url: https://one.example/rss
  - key: listing
    name: Listing
    url: https://listing.example/
    format: html
    selectors:
      article: .item
      headline: .title
      link: a
  - key: off
    name: Off
    url: https://off.example/rss
    enabled: false
""",
        encoding="utf-8",
    )
    clear_feed_sources_cache()
    settings = Settings(
        NEWS_SOURCES_PATH=str(path),
        NEWS_RECENCY_WINDOW_HOURS=6,
        NEWS_SIMILARITY_THRESHOLD=0.5,
        NEWS_FETCH_JITTER_MIN_MS=0,
        NEWS_FETCH_JITTER_MAX_MS=10,
    )

    service = build_news_service(settings)

    adapters = service.aggregator.adapters
    assert [a.source_key for a in adapters] == ["feed_one", "listing"]
    assert isinstance(adapters[0], RSSFeedAdapter)
    assert isinstance(adapters[1], HTMLListingAdapter)
    assert service.aggregator.item_filter.recency_window == timedelta(hours=6)
    assert service.aggregator.deduplicator.threshold == 0.5
    assert service.aggregator.jitter_ms == (0, 10)
    assert service.cache is service.aggregator.cache
    clear_feed_sources_cache()

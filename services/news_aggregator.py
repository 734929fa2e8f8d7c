from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from app.core.logging import get_logger
from app.core.request_id import get_run_id, with_run_id
from app.models.news_item import NewsItem, RawNewsItem
from services.news_cache import NewsCache
from services.news_dedupe_service import NewsDeduplicator
from services.news_filter import NewsItemFilter, parse_published_at
from services.source_adapters import SourceAdapter

logger = get_logger().bind(module="news_aggregator")

DEFAULT_FETCH_TIMEOUT_S = 10.0
DEFAULT_JITTER_MS: Tuple[int, int] = (500, 1500)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RefreshStats:
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    sources: int = 0
    failed_sources: List[str] = field(default_factory=list)
    raw_items: int = 0
    filtered_items: int = 0
    deduped_items: int = 0
    installed: bool = False

    @property
    def duration_ms(self) -> Optional[int]:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at) / timedelta(milliseconds=1))


class NewsAggregator:
    """
    Runs refresh cycles: fetch every adapter, filter, dedupe, sort, install.

    At most one cycle is in flight. A call that arrives while a cycle runs
    gets the current snapshot back straight away instead of waiting.
    """

    def __init__(
        self,
        cache: NewsCache,
        adapters: Sequence[SourceAdapter],
        *,
        item_filter: Optional[NewsItemFilter] = None,
        deduplicator: Optional[NewsDeduplicator] = None,
        fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        jitter_ms: Tuple[int, int] = DEFAULT_JITTER_MS,
        keep_stale_on_total_failure: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.cache = cache
        self.adapters = list(adapters)
        self.item_filter = item_filter or NewsItemFilter()
        self.deduplicator = deduplicator or NewsDeduplicator()
        self.fetch_timeout_s = fetch_timeout_s
        self.jitter_ms = (min(jitter_ms), max(jitter_ms))
        self.keep_stale_on_total_failure = keep_stale_on_total_failure
        self._clock = clock
        self._in_progress = False
        self.last_stats: Optional[RefreshStats] = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def refresh(self) -> List[NewsItem]:
        # check-and-set with no await in between: one event loop, no race
        if self._in_progress:
            logger.info("news_refresh_already_running", cached_items=len(self.cache.snapshot))
            return self.cache.list()

        self._in_progress = True
        try:
            with with_run_id(get_run_id()) as run_id:
                return await self._run_cycle(run_id)
        finally:
            self._in_progress = False

    async def _run_cycle(self, run_id: str) -> List[NewsItem]:
        stats = RefreshStats(run_id=run_id, started_at=self._clock(), sources=len(self.adapters))
        self.last_stats = stats
        logger.info("news_refresh_started", sources=stats.sources)

        raw_items = await self._fetch_all(stats)
        stats.raw_items = len(raw_items)

        if self._should_keep_stale(stats):
            stats.finished_at = self._clock()
            logger.warning(
                "news_refresh_all_sources_failed_keeping_snapshot",
                failed_sources=stats.failed_sources,
                cached_items=len(self.cache.snapshot),
            )
            return self.cache.list()

        now = self._clock()
        accepted = self._filter(raw_items, now)
        stats.filtered_items = len(accepted)

        deduped = self.deduplicator.cluster(accepted)
        deduped.sort(key=lambda item: item.published_at, reverse=True)
        stats.deduped_items = len(deduped)

        refreshed_at = self._clock()
        snapshot = self.cache.replace(deduped, refreshed_at)
        stats.installed = True
        stats.finished_at = refreshed_at

        logger.info(
            "news_refresh_summary",
            sources=stats.sources,
            failed_sources=stats.failed_sources,
            raw_items=stats.raw_items,
            filtered_items=stats.filtered_items,
            deduped_items=stats.deduped_items,
            duration_ms=stats.duration_ms,
        )
        return list(snapshot.items)

    async def _fetch_all(self, stats: RefreshStats) -> List[RawNewsItem]:
        collected: List[RawNewsItem] = []
        for index, adapter in enumerate(self.adapters):
            if index:
                await self._pause_between_sources()
            source_key = getattr(adapter, "source_key", type(adapter).__name__)
            try:
                items = await asyncio.wait_for(adapter.fetch(), timeout=self.fetch_timeout_s)
            except asyncio.TimeoutError:
                stats.failed_sources.append(source_key)
                logger.warning(
                    "news_refresh_source_failed",
                    source=source_key,
                    error="timeout",
                    timeout_s=self.fetch_timeout_s,
                )
                continue
            except Exception as exc:
                stats.failed_sources.append(source_key)
                logger.warning(
                    "news_refresh_source_failed",
                    source=source_key,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            logger.info("news_refresh_source_done", source=source_key, items=len(items))
            collected.extend(items)
        return collected

    async def _pause_between_sources(self) -> None:
        low, high = self.jitter_ms
        if high <= 0:
            return
        await asyncio.sleep(random.uniform(low, high) / 1000.0)

    def _should_keep_stale(self, stats: RefreshStats) -> bool:
        if not self.keep_stale_on_total_failure:
            return False
        if not self.adapters or len(stats.failed_sources) < len(self.adapters):
            return False
        return self.cache.is_populated

    def _filter(self, raw_items: Sequence[RawNewsItem], now: datetime) -> List[NewsItem]:
        accepted: List[NewsItem] = []
        for raw in raw_items:
            if not self.item_filter.accept(raw, now):
                continue
            published_at = parse_published_at(raw.published)
            if published_at is None:
                continue
            accepted.append(NewsItem.from_raw(raw, published_at))
        return accepted

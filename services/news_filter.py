from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Optional, Sequence

from dateutil import parser as date_parser

from app.config import DEFAULT_EXCLUDED_CATEGORIES, DEFAULT_EXCLUDED_KEYWORDS
from app.core.logging import get_logger
from app.models.news_item import RawNewsItem

logger = get_logger().bind(module="news_filter")

DEFAULT_RECENCY_WINDOW = timedelta(hours=12)

REASON_MISSING_FIELD = "missing_field"
REASON_UNPARSEABLE_DATE = "unparseable_date"
REASON_STALE = "stale"
REASON_EXCLUDED_KEYWORD = "excluded_keyword"
REASON_EXCLUDED_CATEGORY = "excluded_category"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_published_at(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a source-native date string into an aware UTC datetime.

    RFC 822 (RSS pubDate) first, then ISO 8601 (Atom), then dateutil as a
    catch-all. Returns None instead of raising, including for dates that fall
    outside the datetime range once shifted to UTC; naive values are read as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()

    try:
        return _as_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError, OverflowError):
        pass

    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except (ValueError, OverflowError):
        pass

    try:
        return _as_utc(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def _lowered(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in values if isinstance(v, str) and v.strip())


class NewsItemFilter:
    """
    Inclusion policy applied to every raw item before deduplication.

    Order matters only for the reported reason: required fields, recency,
    keywords, categories.
    """

    def __init__(
        self,
        *,
        recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
        excluded_keywords: Sequence[str] = DEFAULT_EXCLUDED_KEYWORDS,
        excluded_categories: Sequence[str] = DEFAULT_EXCLUDED_CATEGORIES,
    ) -> None:
        self.recency_window = recency_window
        self.excluded_keywords = _lowered(excluded_keywords)
        self.excluded_categories = _lowered(excluded_categories)

    def rejection_reason(self, raw: RawNewsItem, now: datetime) -> Optional[str]:
        if not raw.headline.strip() or not raw.link.strip():
            return REASON_MISSING_FIELD

        published_at = parse_published_at(raw.published)
        if published_at is None:
            return REASON_UNPARSEABLE_DATE
        if _as_utc(now) - published_at > self.recency_window:
            return REASON_STALE

        content = f"{raw.headline} {raw.summary}".lower()
        if any(keyword in content for keyword in self.excluded_keywords):
            return REASON_EXCLUDED_KEYWORD

        for category in raw.categories:
            lowered = (category or "").lower()
            if lowered and any(excluded in lowered for excluded in self.excluded_categories):
                return REASON_EXCLUDED_CATEGORY

        return None

    def accept(self, raw: RawNewsItem, now: datetime) -> bool:
        reason = self.rejection_reason(raw, now)
        if reason is None:
            return True
        logger.debug(
            "news_filter_rejected",
            reason=reason,
            source=raw.source,
            headline=raw.headline[:120],
            published=raw.published,
        )
        return False

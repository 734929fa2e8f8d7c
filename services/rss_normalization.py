from __future__ import annotations

import calendar
import re
from datetime import datetime, timezone
from html import unescape
from typing import Any, Dict, List, Optional, Tuple

from app.models.feed_sources import FeedSource
from app.models.news_item import RawNewsItem

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_DATE_KEYS = ("published", "updated", "pubDate", "dc_date", "created")
_PARSED_DATE_KEYS = ("published_parsed", "updated_parsed", "created_parsed")


class FeedNormalizationError(Exception):
    """A single feed entry that could not be turned into a RawNewsItem."""

    def __init__(self, message: str, entry_raw: Dict[str, Any] | None = None):
        super().__init__(message)
        self.entry_raw = entry_raw or {}


def detect_feed_type(parsed_feed: Any) -> str:
    """'rss', 'atom' or 'unknown', from feedparser's ``version`` field."""
    getter = parsed_feed.get if isinstance(parsed_feed, dict) else lambda k: getattr(parsed_feed, k, None)
    version = str(getter("version") or "").lower()
    for family in ("rss", "atom"):
        if version.startswith(family):
            return family
    return "unknown"


def strip_html(value: str) -> str:
    # unescape first so escaped markup (&lt;p&gt;) is stripped as well
    without_tags = _HTML_TAG_RE.sub(" ", unescape(value or ""))
    return _WHITESPACE_RE.sub(" ", without_tags).strip()


def _struct_time_to_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        seconds = calendar.timegm(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _first_content_value(entry: Dict[str, Any]) -> str:
    blocks = entry.get("content")
    if isinstance(blocks, dict):
        blocks = [blocks]
    if not isinstance(blocks, list):
        return ""
    values = (block.get("value") for block in blocks if isinstance(block, dict))
    return next((v for v in values if isinstance(v, str) and v.strip()), "")


def _extract_title(entry: Dict[str, Any]) -> str:
    title = entry.get("title")
    if isinstance(title, str):
        return strip_html(title)
    return ""


def _extract_link(entry: Dict[str, Any]) -> str:
    link = entry.get("link")
    if isinstance(link, str) and link.strip():
        return link.strip()

    # Atom: prefer rel="alternate", then any href
    links = entry.get("links")
    if isinstance(links, list):
        hrefs = [
            (str(item.get("rel") or "").lower(), item.get("href"))
            for item in links
            if isinstance(item, dict)
        ]
        for rel, href in hrefs:
            if isinstance(href, str) and href.strip() and rel in ("", "alternate"):
                return href.strip()
        for _, href in hrefs:
            if isinstance(href, str) and href.strip():
                return href.strip()

    entry_id = entry.get("id")
    if isinstance(entry_id, str) and entry_id.startswith(("http://", "https://")):
        return entry_id.strip()
    return ""


def _extract_summary(entry: Dict[str, Any]) -> str:
    summary = entry.get("summary") or entry.get("description")
    if isinstance(summary, str) and summary.strip():
        return strip_html(summary)
    content_value = _first_content_value(entry)
    if content_value:
        return strip_html(content_value)
    return ""


def _extract_published(entry: Dict[str, Any]) -> Optional[str]:
    for key in _DATE_KEYS:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for key in _PARSED_DATE_KEYS:
        iso = _struct_time_to_iso(entry.get(key))
        if iso:
            return iso
    return None


def _extract_categories(entry: Dict[str, Any]) -> List[str]:
    categories: List[str] = []
    tags = entry.get("tags")
    if isinstance(tags, list):
        for tag in tags:
            term = tag.get("term") if isinstance(tag, dict) else None
            if isinstance(term, str) and term.strip():
                categories.append(term.strip())
    category = entry.get("category")
    if isinstance(category, str) and category.strip() and category.strip() not in categories:
        categories.append(category.strip())
    return categories


def normalize_entry(
    source: FeedSource,
    entry: Dict[str, Any],
    *,
    fetched_at: datetime,
) -> RawNewsItem:
    """
    Map one feedparser entry (RSS or Atom; the accessors cover both) into a
    RawNewsItem.

    Entries without any date take ``fetched_at``; an entry that carries a
    date string is passed through verbatim so the filter can judge it.
    """
    if not isinstance(entry, dict):
        raise FeedNormalizationError(
            f"unsupported entry type: {type(entry).__name__}",
            entry_raw={},
        )

    headline = _extract_title(entry)
    link = _extract_link(entry)
    if not headline and not link:
        raise FeedNormalizationError("missing_title_and_link", entry_raw=entry)

    return RawNewsItem(
        headline=headline,
        summary=_extract_summary(entry),
        link=link,
        published=_extract_published(entry) or fetched_at.isoformat(),
        categories=_extract_categories(entry),
        source=source.key,
    )


def normalize_feed_entries(
    parsed_feed: Any,
    source: FeedSource,
    *,
    fetched_at: Optional[datetime] = None,
) -> Tuple[List[RawNewsItem], List[FeedNormalizationError]]:
    """
    Normalize every entry of a feedparser result.

    Returns (items, errors); a bad entry lands in ``errors`` and never
    raises past this function.
    """
    fetched_at = fetched_at or datetime.now(timezone.utc)
    if isinstance(parsed_feed, dict):
        entries = parsed_feed.get("entries") or []
    else:
        entries = getattr(parsed_feed, "entries", None) or []

    items: List[RawNewsItem] = []
    errors: List[FeedNormalizationError] = []
    for entry in entries:
        try:
            items.append(normalize_entry(source, entry, fetched_at=fetched_at))
        except FeedNormalizationError as exc:
            errors.append(exc)
        except Exception as exc:
            errors.append(FeedNormalizationError(str(exc), entry_raw=entry if isinstance(entry, dict) else {}))
    return items, errors

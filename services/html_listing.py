from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from app.models.feed_sources import FeedSource
from app.models.news_item import RawNewsItem

_NON_DIGIT_RE = re.compile(r"[^0-9]")


def _node_text(node: Node, selector: Optional[str]) -> str:
    if not selector:
        return ""
    target = node.css_first(selector)
    if target is None:
        return ""
    return (target.text(strip=True) or "").strip()


def _node_href(node: Node, selector: Optional[str]) -> str:
    if not selector:
        return ""
    target = node.css_first(selector)
    if target is None:
        return ""
    return (target.attributes.get("href") or "").strip()


def _indicator_passes(node: Node, indicator: Dict[str, Any]) -> bool:
    value = _node_text(node, indicator.get("selector"))
    if indicator.get("is_number"):
        digits = _NON_DIGIT_RE.sub("", value)
        if not digits:
            return False
        min_value = indicator.get("min_value")
        return not min_value or int(digits) >= int(min_value)
    return bool(value)


def is_engaging(node: Node, indicators: Sequence[Dict[str, Any]]) -> bool:
    """
    A listing entry is kept when any indicator passes; sources without
    indicators keep everything.
    """
    if not indicators:
        return True
    return any(_indicator_passes(node, ind) for ind in indicators)


def parse_listing(
    source: FeedSource,
    html_text: str,
    *,
    fetched_at: Optional[datetime] = None,
) -> List[RawNewsItem]:
    """
    Extract items from a listing page using the source's CSS selectors.

    Listing pages carry no per-item dates, so every item is stamped with
    the fetch time.
    """
    selectors = source.selectors
    published = (fetched_at or datetime.now(timezone.utc)).isoformat()
    fallback_summary = f"This is a trending article from {source.name}"
    indicators = source.engagement_indicators

    items: List[RawNewsItem] = []
    for node in HTMLParser(html_text).css(selectors["article"]):
        headline = _node_text(node, selectors.get("headline"))
        href = _node_href(node, selectors.get("link"))
        if not headline or not href:
            continue
        if not is_engaging(node, indicators):
            continue
        link = href if href.startswith(("http://", "https://")) else urljoin(source.url, href)
        items.append(
            RawNewsItem(
                headline=headline,
                summary=_node_text(node, selectors.get("summary")) or fallback_summary,
                link=link,
                published=published,
                categories=[],
                source=source.key,
            )
        )
    return items

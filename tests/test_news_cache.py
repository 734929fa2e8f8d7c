from __future__ import annotations

import uuid
from datetime import datetime, timezone

from app.models.news_item import NewsItem
from services.news_cache import NewsCache

REFRESHED = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _item(headline: str, summary: str = "") -> NewsItem:
    return NewsItem(
        id=uuid.uuid4().hex,
        headline=headline,
        summary=summary or headline,
        source_url=f"https://example.com/{uuid.uuid4().hex}",
        published_at=REFRESHED,
        source="example",
    )


def test_empty_cache():
    cache = NewsCache()
    assert cache.list() == []
    assert cache.is_populated is False
    assert cache.last_refreshed_at() is None
    assert cache.get_by_id("missing") is None
    assert cache.search("anything") == []


def test_replace_installs_snapshot():
    cache = NewsCache()
    items = [_item("Bitcoin rallies"), _item("Oil slips")]
    cache.replace(items, REFRESHED)

    assert cache.list() == items
    assert cache.is_populated is True
    assert cache.last_refreshed_at() == REFRESHED
    assert cache.get_by_id(items[1].id) == items[1]


def test_replace_with_empty_still_counts_as_populated():
    cache = NewsCache()
    cache.replace([], REFRESHED)
    assert cache.is_populated is True
    assert cache.list() == []


def test_previous_snapshot_is_untouched_by_replace():
    cache = NewsCache()
    first = [_item("First story")]
    cache.replace(first, REFRESHED)
    held = cache.snapshot

    cache.replace([_item("Second story")], REFRESHED)

    assert list(held.items) == first
    assert held.get(first[0].id) == first[0]
    assert cache.get_by_id(first[0].id) is None


def test_list_returns_a_copy():
    cache = NewsCache()
    cache.replace([_item("Only story")], REFRESHED)
    listed = cache.list()
    listed.clear()
    assert len(cache.list()) == 1


def test_search_is_case_insensitive_over_headline_and_summary():
    cache = NewsCache()
    in_headline = _item("BITCOIN breaks resistance")
    in_summary = _item("Markets wrap", summary="Crypto led by bitcoin gains")
    other = _item("Weather update")
    cache.replace([in_headline, in_summary, other], REFRESHED)

    assert cache.search("Bitcoin") == [in_headline, in_summary]
    assert cache.search("nothing matches") == []


def test_search_empty_query_returns_everything():
    cache = NewsCache()
    items = [_item("One"), _item("Two")]
    cache.replace(items, REFRESHED)
    assert cache.search("") == items

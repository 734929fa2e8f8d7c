from __future__ import annotations

from datetime import datetime
from typing import List, Mapping, Optional, Sequence, Tuple

from app.models.news_item import NewsItem


class NewsSnapshot:
    """
    Immutable result of one refresh cycle.

    Readers grab a reference to one snapshot and work on it; the cache swaps
    the reference, never the contents.
    """

    __slots__ = ("_items", "_by_id", "_last_refreshed_at")

    def __init__(self, items: Sequence[NewsItem] = (), last_refreshed_at: Optional[datetime] = None) -> None:
        self._items: Tuple[NewsItem, ...] = tuple(items)
        self._by_id: Mapping[str, NewsItem] = {item.id: item for item in self._items}
        self._last_refreshed_at = last_refreshed_at

    @property
    def items(self) -> Tuple[NewsItem, ...]:
        return self._items

    @property
    def last_refreshed_at(self) -> Optional[datetime]:
        return self._last_refreshed_at

    def get(self, item_id: str) -> Optional[NewsItem]:
        return self._by_id.get(item_id)

    def __len__(self) -> int:
        return len(self._items)


EMPTY_SNAPSHOT = NewsSnapshot()


class NewsCache:
    """
    Owner of the current snapshot. Reads never block; a refresh installs a
    whole new snapshot with a single reference assignment.

    Empty until the first replace(), populated ever after.
    """

    def __init__(self) -> None:
        self._snapshot: NewsSnapshot = EMPTY_SNAPSHOT

    @property
    def snapshot(self) -> NewsSnapshot:
        return self._snapshot

    @property
    def is_populated(self) -> bool:
        return self._snapshot.last_refreshed_at is not None

    def replace(self, items: Sequence[NewsItem], refreshed_at: datetime) -> NewsSnapshot:
        snapshot = NewsSnapshot(items, refreshed_at)
        self._snapshot = snapshot
        return snapshot

    def list(self) -> List[NewsItem]:
        return list(self._snapshot.items)

    def get_by_id(self, item_id: str) -> Optional[NewsItem]:
        return self._snapshot.get(item_id)

    def search(self, query: str) -> List[NewsItem]:
        snapshot = self._snapshot
        needle = (query or "").lower()
        if not needle:
            return list(snapshot.items)
        return [
            item
            for item in snapshot.items
            if needle in item.headline.lower() or needle in item.summary.lower()
        ]

    def last_refreshed_at(self) -> Optional[datetime]:
        return self._snapshot.last_refreshed_at

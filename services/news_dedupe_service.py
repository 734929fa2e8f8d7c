from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from app.core.logging import get_logger
from app.models.news_item import NewsItem

logger = get_logger().bind(module="news_dedupe_service")

DEFAULT_SIMILARITY_THRESHOLD = 0.4

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_headline(value: str) -> str:
    lowered = (value or "").lower()
    spaced = _NON_ALNUM_RE.sub(" ", lowered)
    return _WHITESPACE_RE.sub(" ", spaced).strip()


def jaccard_similarity(a: str, b: str) -> float:
    """
    Word-set Jaccard index of two normalized strings, in [0, 1].

    Two empty strings have an empty union; that is similarity 0, not 1.
    """
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def completeness_score(item: NewsItem) -> int:
    score = 0
    if len(item.headline) > 10:
        score += 2
    if len(item.summary) > 20:
        score += 1
    return score


@dataclass
class _Cluster:
    key: str
    members: List[NewsItem] = field(default_factory=list)


def _drop_exact_duplicates(items: Sequence[NewsItem]) -> List[NewsItem]:
    seen: set[str] = set()
    unique: List[NewsItem] = []
    for item in items:
        if item.source_url in seen:
            logger.debug("news_dedupe_duplicate_url", url=item.source_url, source=item.source)
            continue
        seen.add(item.source_url)
        unique.append(item)
    return unique


def _select_representatives(cluster: _Cluster) -> List[NewsItem]:
    ranked = sorted(
        cluster.members,
        key=lambda item: (completeness_score(item), item.published_at),
        reverse=True,
    )
    best = ranked[0]
    kept = [best]
    if len(ranked) > 1:
        # one extra perspective when the story really came from several sources
        for other in ranked[1:]:
            if other.source != best.source:
                kept.append(other)
                break
    return kept


class NewsDeduplicator:
    """
    Collapses near-duplicate stories into one representative (at most two
    when the cluster is genuinely multi-sourced).

    Greedy single pass: each item is compared only against cluster keys,
    which are the normalized headlines of the founding members.
    """

    def __init__(self, *, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        self.threshold = threshold

    def _assign(self, items: Sequence[NewsItem]) -> List[_Cluster]:
        clusters: List[_Cluster] = []
        for item in items:
            normalized = normalize_headline(item.headline)
            best: _Cluster | None = None
            best_score = self.threshold
            for cluster in clusters:
                # identical keys always match, even when both normalize to ""
                if normalized == cluster.key:
                    score = 1.0
                else:
                    score = jaccard_similarity(normalized, cluster.key)
                if score > best_score:
                    best = cluster
                    best_score = score
            if best is None:
                clusters.append(_Cluster(key=normalized, members=[item]))
            else:
                best.members.append(item)
        return clusters

    def cluster(self, items: Sequence[NewsItem]) -> List[NewsItem]:
        if len(items) <= 1:
            return list(items)

        unique = _drop_exact_duplicates(items)
        clusters = self._assign(unique)

        result: List[NewsItem] = []
        for cluster in clusters:
            result.extend(_select_representatives(cluster))

        logger.info(
            "news_dedupe_summary",
            input=len(items),
            unique_urls=len(unique),
            clusters=len(clusters),
            output=len(result),
        )
        return result

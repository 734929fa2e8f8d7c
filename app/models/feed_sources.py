"""
Feed sources registry loader.

Parses configs/news_sources.yml into strongly-typed FeedSource objects with
structlog-backed validation and caching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import yaml

from app.core.logging import get_logger

logger = get_logger().bind(module="feed_sources")

THIS_FILE = Path(__file__).resolve()
APP_DIR = THIS_FILE.parent.parent  # app
REPO_ROOT = APP_DIR.parent
NEWS_SOURCES_YML = REPO_ROOT / "configs" / "news_sources.yml"

ALLOWED_SOURCE_FORMATS: Sequence[str] = ("rss", "html")
_REQUIRED_HTML_SELECTORS: Sequence[str] = ("article", "headline", "link")


@dataclass(frozen=True)
class FeedSource:
    """Single feed definition."""

    key: str
    name: str
    url: str
    format: str = "rss"
    enabled: bool = True
    selectors: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def engagement_indicators(self) -> List[Dict[str, Any]]:
        indicators = self.selectors.get("engagement_indicators")
        if not isinstance(indicators, list):
            return []
        return [ind for ind in indicators if isinstance(ind, dict) and ind.get("selector")]


def load_news_sources_config(path: Optional[Path] = None) -> Dict[str, object]:
    """
    Read the sources YAML into a plain dict.

    Returns empty dict if file is missing or invalid so a bad config never
    takes the scheduler down; the refresh simply runs with zero sources.
    """
    config_path = Path(path) if path else NEWS_SOURCES_YML
    if not config_path.is_file():
        logger.error("feed_sources_config_missing", path=str(config_path))
        return {}

    try:
        with config_path.open(encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except OSError as exc:
        logger.error("feed_sources_config_unreadable", path=str(config_path), error=str(exc))
        return {}
    except yaml.YAMLError as exc:
        logger.error("feed_sources_config_malformed", path=str(config_path), error=str(exc))
        return {}

    if loaded is None:
        return {}
    if isinstance(loaded, dict):
        return loaded

    logger.error("feed_sources_config_not_a_mapping", path=str(config_path), got=type(loaded).__name__)
    return {}


def _normalize_enabled_flag(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() not in {"false", "no", "0", "off"}
    return bool(value)


def _validate_selectors(name: str, raw: Dict[str, object]) -> Optional[Dict[str, Any]]:
    selectors = raw.get("selectors")
    if not isinstance(selectors, dict):
        logger.warning("feed_source_invalid_selectors", source=name, selectors=selectors)
        return None
    missing = [k for k in _REQUIRED_HTML_SELECTORS if not selectors.get(k)]
    if missing:
        logger.warning("feed_source_missing_selectors", source=name, missing=missing)
        return None
    return dict(selectors)


def _validate_source(raw: Dict[str, object]) -> Optional[FeedSource]:
    """One YAML entry to a FeedSource, or None (with a warning) when unusable."""
    name = str(raw.get("name") or "").strip()
    url = raw.get("url")
    if not name or not url:
        logger.warning(
            "feed_source_missing_fields",
            missing=[label for label, value in (("name", name), ("url", url)) if not value],
            entry=raw,
        )
        return None
    if not isinstance(url, str) or urlparse(url).scheme not in ("http", "https"):
        logger.warning("feed_source_bad_url", source=name, url=url)
        return None

    fmt = str(raw.get("format") or "rss").strip().lower()
    if fmt not in ALLOWED_SOURCE_FORMATS:
        logger.warning(
            "feed_source_invalid_format",
            source=name,
            format=fmt,
            allowed=list(ALLOWED_SOURCE_FORMATS),
        )
        return None

    selectors: Dict[str, Any] = {}
    if fmt == "html":
        validated = _validate_selectors(name, raw)
        if validated is None:
            return None
        selectors = validated

    explicit_key = raw.get("key")
    if isinstance(explicit_key, str) and explicit_key.strip():
        source_key = explicit_key.strip().lower()
    else:
        source_key = "_".join(name.lower().split())

    return FeedSource(
        key=source_key,
        name=name,
        url=url.strip(),
        format=fmt,
        enabled=_normalize_enabled_flag(raw.get("enabled")),
        selectors=selectors,
        raw=dict(raw),
    )


@lru_cache(maxsize=8)
def _load_sources_from_path(resolved_path: str) -> Tuple[FeedSource, ...]:
    entries = load_news_sources_config(Path(resolved_path)).get("sources") or []
    if not isinstance(entries, list):
        logger.error("feed_sources_not_a_list", path=resolved_path, got=type(entries).__name__)
        return ()

    by_key: Dict[str, FeedSource] = {}
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("feed_source_entry_not_a_mapping", index=index, got=type(entry).__name__)
            continue
        source = _validate_source(entry)
        if source is None:
            continue
        if source.key in by_key:
            # first definition wins
            logger.warning("feed_source_duplicate_key", key=source.key, index=index)
            continue
        by_key[source.key] = source

    sources = tuple(by_key.values())
    logger.info(
        "feed_sources_loaded",
        path=resolved_path,
        total=len(sources),
        enabled=sum(1 for s in sources if s.enabled),
    )
    return sources


def get_all_feed_sources(path: Optional[Path] = None, *, enabled_only: bool = True) -> List[FeedSource]:
    """
    Public accessor for all valid feed sources.

    Defaults to configs/news_sources.yml; results are cached per resolved path.
    """
    sources = _load_sources_from_path(str(Path(path or NEWS_SOURCES_YML).resolve()))
    return [s for s in sources if s.enabled or not enabled_only]


def clear_feed_sources_cache() -> None:
    """Drop cached registries so the next call re-reads the YAML."""
    _load_sources_from_path.cache_clear()

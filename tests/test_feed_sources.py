from __future__ import annotations

from pathlib import Path

import pytest

from app.models.feed_sources import (
    NEWS_SOURCES_YML,
    clear_feed_sources_cache,
    get_all_feed_sources,
    load_news_sources_config,
)


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_feed_sources_cache()
    yield
    clear_feed_sources_cache()


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "news_sources.yml"
    path.write_text(body, encoding="utf-8")
    return path


def test_repo_config_loads():
    assert NEWS_SOURCES_YML.exists()
    sources = get_all_feed_sources()
    keys = [s.key for s in sources]
    assert "coindesk_rss" in keys
    assert all(s.enabled for s in sources)
    # the listing scraper ships disabled
    all_keys = [s.key for s in get_all_feed_sources(enabled_only=False)]
    assert "cryptopanic" in all_keys
    assert "cryptopanic" not in keys


def test_valid_and_invalid_entries(tmp_path):
    path = _write(
        tmp_path,
        """
sources:
  - key: Good_Feed
    name: Good Feed
    url: https://good.example/rss
  - name: Derived Key Feed
    url: https://derived.example/rss
    format: RSS
  - name: No Url
  - name: Bad Url
    url: ftp://bad.example/rss
  - name: Bad Format
    url: https://bad.example/feed
    format: json
  - name: Html Missing Selectors
    url: https://html.example/
    format: html
    selectors:
      article: .item
  - just-a-string
  - key: good_feed
    name: Duplicate Key
    url: https://dup.example/rss
""",
    )

    sources = get_all_feed_sources(path)

    assert [s.key for s in sources] == ["good_feed", "derived_key_feed"]
    assert sources[0].format == "rss"
    assert sources[1].format == "rss"


def test_html_source_with_selectors(tmp_path):
    path = _write(
        tmp_path,
        """
sources:
  - key: listing
    name: Listing
    url: https://listing.example/
    format: html
    selectors:
      article: .item
      headline: .title
      link: a.title
      engagement_indicators:
        - selector: .votes
          min_value: 10
          is_number: true
        - not-a-dict
""",
    )

    (source,) = get_all_feed_sources(path)

    assert source.format == "html"
    assert source.selectors["article"] == ".item"
    assert source.engagement_indicators == [{"selector": ".votes", "min_value": 10, "is_number": True}]


@pytest.mark.parametrize("flag, expected", [("false", False), ("no", False), ("yes", True), (False, False)])
def test_enabled_flag_parsing(tmp_path, flag, expected):
    path = _write(
        tmp_path,
        f"""
sources:
  - name: Toggle
    url: https://toggle.example/rss
    enabled: {flag!r}
""",
    )
    (source,) = get_all_feed_sources(path, enabled_only=False)
    assert source.enabled is expected


def test_missing_file_yields_no_sources(tmp_path):
    assert get_all_feed_sources(tmp_path / "nope.yml") == []


def test_malformed_yaml_yields_no_sources(tmp_path):
    path = _write(tmp_path, "sources: [unclosed\n")
    assert load_news_sources_config(path) == {}
    assert get_all_feed_sources(path) == []


def test_sources_must_be_a_list(tmp_path):
    path = _write(tmp_path, "sources:\n  name: not-a-list\n")
    assert get_all_feed_sources(path) == []


def test_results_are_cached_until_cleared(tmp_path):
    path = _write(tmp_path, "sources:\n  - name: First\n    url: https://first.example/rss\n")
    assert [s.key for s in get_all_feed_sources(path)] == ["first"]

    path.write_text("sources:\n  - name: Second\n    url: https://second.example/rss\n", encoding="utf-8")
    assert [s.key for s in get_all_feed_sources(path)] == ["first"]

    clear_feed_sources_cache()
    assert [s.key for s in get_all_feed_sources(path)] == ["second"]

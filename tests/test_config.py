from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import DEFAULT_EXCLUDED_KEYWORDS, Settings


def test_defaults():
    settings = Settings()
    assert settings.NEWS_REFRESH_INTERVAL_MINUTES == 15
    assert settings.NEWS_RECENCY_WINDOW_HOURS == 12
    assert settings.NEWS_SIMILARITY_THRESHOLD == 0.4
    assert settings.NEWS_FETCH_JITTER_MIN_MS == 500
    assert settings.NEWS_FETCH_JITTER_MAX_MS == 1500
    assert settings.NEWS_KEEP_STALE_ON_TOTAL_FAILURE is False
    assert settings.NEWS_EXCLUDED_KEYWORDS == DEFAULT_EXCLUDED_KEYWORDS


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NEWS_RECENCY_WINDOW_HOURS", "6")
    monkeypatch.setenv("NEWS_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("NEWS_EXCLUDED_KEYWORDS", '["Airdrop", "  Giveaway "]')

    settings = Settings()

    assert settings.NEWS_RECENCY_WINDOW_HOURS == 6
    assert settings.NEWS_SCHEDULER_ENABLED is False
    assert settings.NEWS_EXCLUDED_KEYWORDS == ["airdrop", "giveaway"]


def test_jitter_range_must_be_ordered():
    with pytest.raises(ValidationError):
        Settings(NEWS_FETCH_JITTER_MIN_MS=2000, NEWS_FETCH_JITTER_MAX_MS=100)


def test_similarity_threshold_bounds():
    with pytest.raises(ValidationError):
        Settings(NEWS_SIMILARITY_THRESHOLD=1.5)

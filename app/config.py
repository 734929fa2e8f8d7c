# app/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env lives next to pyproject.toml; this file is app/config.py → parents[1]
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(ENV_FILE, override=False)

DEFAULT_EXCLUDED_KEYWORDS: List[str] = [
    "sponsored",
    "press release",
    "partner content",
    "advertisement",
    "promoted",
    "paid content",
    "advertorial",
    "sponsored content",
    "press-release",
    "promotion",
    "partnership",
]

DEFAULT_EXCLUDED_CATEGORIES: List[str] = [
    "sponsored",
    "press release",
    "press-release",
    "sponsored-content",
    "partner-content",
]


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # ---- Sources ----
    # Defaults to configs/news_sources.yml at the repo root when unset.
    NEWS_SOURCES_PATH: Optional[str] = None
    NEWS_USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
    )
    NEWS_FETCH_TIMEOUT_S: float = Field(10.0, gt=0)
    NEWS_FETCH_MAX_RETRIES: int = Field(1, ge=0)
    NEWS_FETCH_JITTER_MIN_MS: int = Field(500, ge=0)
    NEWS_FETCH_JITTER_MAX_MS: int = Field(1500, ge=0)

    # ---- Refresh cycle ----
    NEWS_REFRESH_INTERVAL_MINUTES: float = Field(15.0, gt=0)
    NEWS_SCHEDULER_ENABLED: bool = True
    NEWS_KEEP_STALE_ON_TOTAL_FAILURE: bool = False

    # ---- Filtering / dedupe ----
    NEWS_RECENCY_WINDOW_HOURS: float = Field(12.0, gt=0)
    NEWS_SIMILARITY_THRESHOLD: float = Field(0.4, ge=0.0, le=1.0)
    NEWS_EXCLUDED_KEYWORDS: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_KEYWORDS)
    )
    NEWS_EXCLUDED_CATEGORIES: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_CATEGORIES)
    )

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("NEWS_FETCH_JITTER_MAX_MS")
    @classmethod
    def _jitter_range_ordered(cls, value: int, info) -> int:
        low = info.data.get("NEWS_FETCH_JITTER_MIN_MS", 0)
        if value < low:
            raise ValueError("NEWS_FETCH_JITTER_MAX_MS must be >= NEWS_FETCH_JITTER_MIN_MS")
        return value

    @field_validator("NEWS_EXCLUDED_KEYWORDS", "NEWS_EXCLUDED_CATEGORIES")
    @classmethod
    def _lowercase_terms(cls, values: List[str]) -> List[str]:
        cleaned = [str(v).strip().lower() for v in values]
        return [v for v in cleaned if v]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

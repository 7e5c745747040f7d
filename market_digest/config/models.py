"""Pydantic models used across the market-digest configuration flow."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.dedup import DuplicateCheckMode


class JobName(str, Enum):
    """Batch jobs known to the orchestrator."""

    NEWS = "news"
    TERMS = "terms"


class ScheduleType(str, Enum):
    """Scheduler modes supported by the APScheduler adapter."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """Configuration describing when a job should run."""

    type: ScheduleType = Field(default=ScheduleType.CRON)
    value: Any = Field(
        default="0 8 * * *",
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )
    timezone: str = "Asia/Tokyo"

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class RetrySettings(BaseModel):
    """Exponential backoff for whole-job retries."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RetrySettings":
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Retry delays must be non-negative")
        return self


class RateLimitSettings(BaseModel):
    """Retry policy applied to quota-limited upstream calls."""

    max_retries: int = 3
    default_wait_seconds: int = 60
    max_wait_seconds: int = 300

    @model_validator(mode="after")
    def _validate_waits(self) -> "RateLimitSettings":
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.default_wait_seconds < 0 or self.max_wait_seconds < 0:
            raise ValueError("Wait seconds must be non-negative")
        return self


class DuplicateSettings(BaseModel):
    """Duplicate detection for generated terms."""

    mode: DuplicateCheckMode = DuplicateCheckMode.EXACT
    similarity_threshold: float = 0.7
    lookback_days: int = 30
    max_regenerations: int = 5

    @field_validator("similarity_threshold")
    @classmethod
    def _check_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("similarity_threshold must be within [0, 1]")
        return value

    @model_validator(mode="after")
    def _validate_counts(self) -> "DuplicateSettings":
        if self.lookback_days < 1:
            raise ValueError("lookback_days must be >= 1")
        if self.max_regenerations < 0:
            raise ValueError("max_regenerations must be >= 0")
        return self


class JobConfig(BaseModel):
    """Per-job controls."""

    timeout_ms: int = 300000
    cancel_on_timeout: bool = True
    save_to_database: bool = True
    enabled: bool = True
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    @field_validator("timeout_ms")
    @classmethod
    def _check_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timeout_ms must be > 0")
        return value


class NewsApiSettings(BaseModel):
    """NewsAPI v2 top-headlines request options."""

    base_url: str = "https://newsapi.org/v2"
    category: str = "business"
    country: str = "us"
    page_size: int = 10
    timeout_seconds: float = 10.0
    daily_request_limit: int = 100
    api_key_env: str = "NEWS_API_KEY"

    def api_key(self) -> str:
        value = os.environ.get(self.api_key_env, "").strip()
        if not value:
            raise ValueError(f"{self.api_key_env} environment variable is not set")
        return value


class GoogleNewsSettings(BaseModel):
    """Google News RSS search options for Japanese market news."""

    base_url: str = "https://news.google.com/rss/search"
    query: str = "株式 OR 経済 OR 金融"
    language: str = "ja"
    region: str = "JP"
    max_items: int = 10
    timeout_seconds: float = 10.0


class ClaudeSettings(BaseModel):
    """Anthropic messages API options."""

    base_url: str = "https://api.anthropic.com/v1/messages"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    timeout_seconds: float = 120.0
    api_version: str = "2023-06-01"
    api_key_env: str = "ANTHROPIC_API_KEY"

    def api_key(self) -> str:
        value = os.environ.get(self.api_key_env, "").strip()
        if not value:
            raise ValueError(f"{self.api_key_env} environment variable is not set")
        return value


class ProviderSettings(BaseModel):
    newsapi: NewsApiSettings = Field(default_factory=NewsApiSettings)
    google_news: GoogleNewsSettings = Field(default_factory=GoogleNewsSettings)
    claude: ClaudeSettings = Field(default_factory=ClaudeSettings)


class GlobalConfig(BaseModel):
    """Global controls shared across jobs."""

    news: JobConfig = Field(default_factory=JobConfig)
    terms: JobConfig = Field(default_factory=JobConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    duplicates: DuplicateSettings = Field(default_factory=DuplicateSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    database_path: Path = Field(default=Path("data/digest.db"))

    @field_validator("database_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def job(self, name: JobName | str) -> JobConfig:
        return getattr(self, JobName(name).value)

    def resolved_database_path(self, base_dir: Path) -> Path:
        """Return the SQLite path relative to the project root."""

        if not self.database_path.is_absolute():
            return (base_dir / self.database_path).resolve()
        return self.database_path


__all__ = [
    "ClaudeSettings",
    "DuplicateSettings",
    "GlobalConfig",
    "GoogleNewsSettings",
    "JobConfig",
    "JobName",
    "NewsApiSettings",
    "ProviderSettings",
    "RateLimitSettings",
    "RetrySettings",
    "ScheduleConfig",
    "ScheduleType",
]

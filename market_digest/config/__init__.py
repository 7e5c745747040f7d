"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ClaudeSettings,
    DuplicateSettings,
    GlobalConfig,
    GoogleNewsSettings,
    JobConfig,
    JobName,
    NewsApiSettings,
    ProviderSettings,
    RateLimitSettings,
    RetrySettings,
    ScheduleConfig,
    ScheduleType,
)

__all__ = [
    "ClaudeSettings",
    "ConfigLocator",
    "ConfigRepository",
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

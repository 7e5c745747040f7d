"""Daily request budget tracking for quota-limited providers.

Usage is an immutable value handed into a job invocation and returned
updated, so nothing about the quota lives in process-global state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime

DAILY_REQUEST_LIMIT = 100
WARNING_THRESHOLD_PERCENT = 90


@dataclass(frozen=True, slots=True)
class RequestUsage:
    count: int = 0
    last_request_at: datetime | None = None
    date: date | None = None

    def as_dict(self) -> dict:
        return {
            "count": self.count,
            "last_request_at": self.last_request_at.isoformat() if self.last_request_at else None,
            "date": self.date.isoformat() if self.date else None,
        }


def roll_over(usage: RequestUsage, now: datetime) -> RequestUsage:
    """Return zeroed usage when ``now`` falls on a different day."""

    today = now.date()
    if usage.date == today:
        return usage
    return RequestUsage(count=0, last_request_at=None, date=today)


def record_request(usage: RequestUsage, now: datetime) -> RequestUsage:
    current = roll_over(usage, now)
    return replace(current, count=current.count + 1, last_request_at=now)


def is_near_limit(
    usage: RequestUsage,
    limit: int = DAILY_REQUEST_LIMIT,
    threshold_percent: int = WARNING_THRESHOLD_PERCENT,
) -> bool:
    return usage.count >= limit * threshold_percent / 100


__all__ = [
    "DAILY_REQUEST_LIMIT",
    "RequestUsage",
    "WARNING_THRESHOLD_PERCENT",
    "is_near_limit",
    "record_request",
    "roll_over",
]

from __future__ import annotations

from datetime import date, datetime, timezone

from market_digest.engine.usage import RequestUsage, is_near_limit, record_request, roll_over


def test_record_request_counts_and_rolls_over_daily() -> None:
    day_one = datetime(2024, 5, 20, 9, 0, tzinfo=timezone.utc)
    usage = record_request(RequestUsage(), day_one)
    usage = record_request(usage, day_one)
    assert usage.count == 2
    assert usage.date == date(2024, 5, 20)
    assert usage.last_request_at == day_one

    day_two = datetime(2024, 5, 21, 0, 1, tzinfo=timezone.utc)
    assert roll_over(usage, day_two).count == 0
    assert record_request(usage, day_two).count == 1


def test_usage_is_immutable_value() -> None:
    now = datetime(2024, 5, 20, tzinfo=timezone.utc)
    original = RequestUsage()
    updated = record_request(original, now)
    assert original.count == 0
    assert updated is not original


def test_near_limit_threshold() -> None:
    assert not is_near_limit(RequestUsage(count=89))
    assert is_near_limit(RequestUsage(count=90))
    assert is_near_limit(RequestUsage(count=9), limit=10)

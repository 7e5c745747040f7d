from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from market_digest.config import ScheduleConfig, ScheduleType
from market_digest.scheduler import APSchedulerAdapter, build_trigger


class StubScheduler:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def add_job(self, callback, trigger, id, args, replace_existing, max_instances, coalesce):  # noqa: ANN001, A002
        self.calls.append(
            {
                "id": id,
                "args": args,
                "trigger": trigger,
                "callback": callback,
                "replace_existing": replace_existing,
                "max_instances": max_instances,
                "coalesce": coalesce,
            }
        )

    def get_jobs(self):
        return []

    def start(self):
        self.calls.append({"event": "started"})

    def shutdown(self, wait=False):  # noqa: ARG002
        self.calls.append({"event": "shutdown"})

    def remove_job(self, job_id):  # noqa: ANN001
        self.calls.append({"event": "remove", "id": job_id})


def test_build_triggers() -> None:
    cron = build_trigger(ScheduleConfig(type=ScheduleType.CRON, value="0 8 * * *"))
    assert isinstance(cron, CronTrigger)
    assert str(cron.timezone) == "Asia/Tokyo"

    interval = build_trigger(ScheduleConfig(type=ScheduleType.INTERVAL, value=30))
    assert isinstance(interval, IntervalTrigger)
    assert interval.interval.total_seconds() == 30

    kwargs_interval = build_trigger(ScheduleConfig(type=ScheduleType.INTERVAL, value={"minutes": 2}))
    assert kwargs_interval.interval.total_seconds() == 120

    future = (datetime.now(timezone.utc) + timedelta(minutes=5)).isoformat()
    once = build_trigger(ScheduleConfig(type=ScheduleType.ONCE, value=future))
    assert isinstance(once, DateTrigger)


def test_invalid_cron_expression_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_trigger(ScheduleConfig(type=ScheduleType.CRON, value="not a cron"))


def test_schedule_job_uses_scheduler() -> None:
    stub = StubScheduler()
    adapter = APSchedulerAdapter(scheduler=stub)  # type: ignore[arg-type]

    def callback(name: str) -> None:
        return None

    adapter.schedule_job("news", ScheduleConfig(), callback)
    adapter.start()
    adapter.start()
    adapter.remove_job("news")
    adapter.shutdown()

    first = stub.calls[0]
    assert first["id"] == "job::news"
    assert first["args"] == ["news"]
    assert first["callback"] is callback
    assert first["max_instances"] == 1
    assert first["coalesce"] is True
    assert [call.get("event") for call in stub.calls[1:]] == ["started", "remove", "shutdown"]
    assert adapter.list_jobs() == []

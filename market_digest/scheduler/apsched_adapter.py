"""APScheduler wrapper exposing higher level helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig, ScheduleType
from ..logging_conf import configure_logging


class APSchedulerAdapter:
    """Manage APScheduler jobs for the daily batch runs."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_job(
        self, job_name: str, schedule: ScheduleConfig, callback: Callable[[str], object]
    ) -> None:
        trigger = build_trigger(schedule)
        job_id = f"job::{job_name}"
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            args=[job_name],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", job=job_name, schedule=schedule.model_dump(mode="json"))

    def remove_job(self, job_name: str) -> None:
        job_id = f"job::{job_name}"
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            self.logger.warning("job_remove_failed", job=job_name)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


def build_trigger(schedule: ScheduleConfig):
    if schedule.type is ScheduleType.CRON:
        return CronTrigger.from_crontab(str(schedule.value), timezone=schedule.timezone)
    if schedule.type is ScheduleType.INTERVAL:
        if isinstance(schedule.value, (int, float)):
            return IntervalTrigger(seconds=float(schedule.value), timezone=schedule.timezone)
        if isinstance(schedule.value, dict):
            return IntervalTrigger(timezone=schedule.timezone, **schedule.value)
        raise ValueError("Interval schedule requires seconds or kwargs dict")
    if schedule.type is ScheduleType.ONCE:
        if schedule.value:
            run_date = datetime.fromisoformat(str(schedule.value))
        else:
            run_date = datetime.now(timezone.utc)
        return DateTrigger(run_date=run_date, timezone=schedule.timezone)
    raise ValueError(f"Unknown schedule type: {schedule.type}")


__all__ = ["APSchedulerAdapter", "build_trigger"]

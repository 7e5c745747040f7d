"""Orchestrator wiring configuration, collaborators, jobs and the scheduler."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from .ai import ClaudeClient, ClaudeNewsSummarizer, ClaudeTermGenerator
from .collectors import GoogleNewsRssFetcher, NewsApiFetcher
from .config import ConfigRepository, GlobalConfig, JobName
from .engine.rate_limit import RateLimitConfig, RateLimitExecutor
from .engine.retry import RetryConfig
from .engine.usage import RequestUsage
from .infra import SQLiteManager, SQLiteStore
from .jobs import JobFailedError, JobRunner, NewsBatchJob, TermsBatchJob, http_status_for
from .jobs.results import jst_date
from .jobs.runner import BatchJob
from .logging_conf import configure_logging, job_logger

JobFactory = Callable[[], BatchJob]


@dataclass(slots=True)
class JobRunSummary:
    """Outcome of one scheduled or manual job run."""

    job: str
    http_status: int
    attempts: int
    result: dict[str, Any] | None
    steps: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.http_status == 200

    def as_dict(self) -> dict[str, Any]:
        return {
            "job": self.job,
            "http_status": self.http_status,
            "attempts": self.attempts,
            "result": self.result,
            "steps": self.steps,
            "error": self.error,
        }


class Orchestrator:
    """Central coordinator managing the lifecycle of the batch jobs."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        scheduler,
        storage: SQLiteManager,
        *,
        job_factories: dict[str, JobFactory] | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.scheduler = scheduler
        self.storage = storage
        self.store = SQLiteStore(storage, config_repository.database_path())
        self.logger = configure_logging().bind(component="orchestrator")
        self.newsapi_usage = RequestUsage()
        self._job_factories: dict[str, JobFactory] = {
            JobName.NEWS.value: self.build_news_job,
            JobName.TERMS.value: self.build_terms_job,
        }
        if job_factories:
            self._job_factories.update(job_factories)

    # ------------------------------------------------------------------
    # Job construction
    # ------------------------------------------------------------------
    def _rate_limiter(self) -> RateLimitExecutor:
        settings = self.global_config.rate_limit
        return RateLimitExecutor(
            RateLimitConfig(
                max_retries=settings.max_retries,
                default_wait_seconds=settings.default_wait_seconds,
                max_wait_seconds=settings.max_wait_seconds,
            )
        )

    def _claude(self) -> ClaudeClient:
        settings = self.global_config.providers.claude
        return ClaudeClient(settings, settings.api_key())

    def build_news_job(self) -> NewsBatchJob:
        providers = self.global_config.providers
        job_cfg = self.global_config.news
        world = NewsApiFetcher(
            providers.newsapi, providers.newsapi.api_key(), usage=self.newsapi_usage
        )
        japan = GoogleNewsRssFetcher(providers.google_news)
        summarizer = ClaudeNewsSummarizer(self._claude(), self._rate_limiter())
        return NewsBatchJob(
            world,
            japan,
            summarizer,
            self.store,
            timeout_ms=job_cfg.timeout_ms,
            cancel_on_timeout=job_cfg.cancel_on_timeout,
            save_to_database=job_cfg.save_to_database,
            logger=job_logger(JobName.NEWS.value, run_date=jst_date()),
        )

    def build_terms_job(self) -> TermsBatchJob:
        job_cfg = self.global_config.terms
        duplicates = self.global_config.duplicates
        generator = ClaudeTermGenerator(self._claude(), self._rate_limiter())
        return TermsBatchJob(
            generator,
            self.store,
            self.store,
            timeout_ms=job_cfg.timeout_ms,
            cancel_on_timeout=job_cfg.cancel_on_timeout,
            save_to_database=job_cfg.save_to_database,
            lookback_days=duplicates.lookback_days,
            max_regenerations=duplicates.max_regenerations,
            duplicate_mode=duplicates.mode,
            similarity_threshold=duplicates.similarity_threshold,
            logger=job_logger(JobName.TERMS.value, run_date=jst_date()),
        )

    def _retry_config(self, job_name: str) -> RetryConfig:
        # only the news job retries as a whole; terms runs once
        if job_name != JobName.NEWS.value:
            return RetryConfig(max_retries=0)
        settings = self.global_config.retry
        return RetryConfig(
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
        )

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------
    def job_names(self) -> list[str]:
        return list(self._job_factories)

    async def run_job_async(self, job_name: str) -> JobRunSummary:
        if job_name not in self._job_factories:
            raise KeyError(f"Unknown job: {job_name}")
        job = self._job_factories[job_name]()
        runner = JobRunner(
            job,
            self._retry_config(job_name),
            self.store,
            context={"trigger": "orchestrator"},
        )
        try:
            outcome = await runner.run()
        except JobFailedError as exc:
            result = exc.result
            summary = JobRunSummary(
                job=job_name,
                http_status=http_status_for(None),
                attempts=exc.outcome.attempt_count,
                result=result.as_dict() if result is not None else None,
                steps=_steps_of(job),
                error=str(exc),
            )
        else:
            summary = JobRunSummary(
                job=job_name,
                http_status=http_status_for(outcome.result),
                attempts=outcome.attempt_count,
                result=outcome.result.as_dict(),
                steps=_steps_of(job),
            )
        if isinstance(job, NewsBatchJob) and isinstance(job.world_fetcher, NewsApiFetcher):
            self.newsapi_usage = job.world_fetcher.usage
        self.logger.info(
            "job_run_completed",
            job=job_name,
            http_status=summary.http_status,
            attempts=summary.attempts,
        )
        return summary

    def run_job(self, job_name: str) -> JobRunSummary:
        """Run one job on a fresh event loop (scheduler worker threads, CLI)."""

        return asyncio.run(self.run_job_async(job_name))

    def run_all(self) -> list[JobRunSummary]:
        return [self.run_job(name) for name in self.job_names()]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def register_schedules(self) -> list[str]:
        registered: list[str] = []
        for name in self.job_names():
            job_cfg = self.global_config.job(name)
            if not job_cfg.enabled:
                self.logger.info("job_disabled", job=name)
                continue
            self.scheduler.schedule_job(name, job_cfg.schedule, self.run_job)
            registered.append(name)
        self.scheduler.start()
        return registered

    def list_jobs(self) -> list[dict[str, Any]]:
        rows = []
        for name in self.job_names():
            job_cfg = self.global_config.job(name)
            rows.append(
                {
                    "job": name,
                    "enabled": job_cfg.enabled,
                    "schedule": job_cfg.schedule.model_dump(mode="json"),
                    "timeout_ms": job_cfg.timeout_ms,
                }
            )
        return rows

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.storage.close_all()


def _steps_of(job: BatchJob) -> dict[str, Any]:
    steps = getattr(job, "steps", None)
    return steps.summary() if steps is not None else {}


__all__ = ["JobRunSummary", "Orchestrator"]

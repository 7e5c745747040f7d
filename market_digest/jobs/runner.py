"""Whole-job retry, durable failure logging and HTTP status mapping."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from ..engine.retry import RetryConfig, RetryExecutor, RetryOutcome, SleepFunc
from ..errors import ErrorEntry, as_batch_error, utcnow
from .contracts import FailureLog
from .results import JobResult

HTTP_OK = 200
HTTP_SERVER_ERROR = 500


class BatchJob(Protocol):
    name: str

    async def execute(self) -> JobResult: ...

    def error_result(self, entry: ErrorEntry) -> JobResult: ...


class JobFailedError(Exception):
    """Raised once a job has exhausted its retries without any usable output."""

    def __init__(self, job_name: str, outcome: RetryOutcome[JobResult]) -> None:
        result = outcome.result
        errors = len(result.errors) if result is not None else 0
        super().__init__(
            f"{job_name} job failed after {outcome.attempt_count} attempt(s) with {errors} error(s)"
        )
        self.job_name = job_name
        self.outcome = outcome

    @property
    def result(self) -> JobResult | None:
        return self.outcome.result


def http_status_for(result: JobResult | None) -> int:
    """Map a job result to the status a request handler would return."""

    if result is None:
        return HTTP_SERVER_ERROR
    if result.success or result.partial_success:
        return HTTP_OK
    return HTTP_SERVER_ERROR


def failure_log_entry(
    job_name: str, outcome: RetryOutcome[JobResult], context: dict[str, Any] | None = None
) -> dict[str, Any]:
    result = outcome.result
    return {
        "batch_type": job_name,
        "date": result.date if result is not None else utcnow().date().isoformat(),
        "attempt_count": outcome.attempt_count,
        "total_retries": outcome.retry_count,
        "total_processing_time_ms": outcome.total_elapsed_ms,
        "partial_success": bool(result and result.partial_success),
        "exception_occurred": outcome.exception_occurred,
        "errors": [entry.as_dict() for entry in (result.errors if result else [])],
        "timestamp": utcnow().isoformat(),
        "context": dict(context or {}),
    }


class JobRunner:
    """Run a batch job, retrying it only while it produces nothing usable.

    Partial success is final. Exceptions escaping the job are turned into a
    failed result and retried like any other full failure. When the retry
    budget is spent the failure is written to the failure log and
    :class:`JobFailedError` is raised.
    """

    def __init__(
        self,
        job: BatchJob,
        retry_config: RetryConfig | None = None,
        failure_log: FailureLog | None = None,
        *,
        sleep: SleepFunc | None = None,
        context: dict[str, Any] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.job = job
        self.retry_config = retry_config or RetryConfig()
        self.failure_log = failure_log
        self.context = dict(context or {})
        self.logger = logger or structlog.get_logger("market_digest.runner").bind(job=job.name)
        executor_kwargs: dict[str, Any] = {"logger": self.logger}
        if sleep is not None:
            executor_kwargs["sleep"] = sleep
        self._executor = RetryExecutor(self.retry_config, **executor_kwargs)

    async def run(self) -> RetryOutcome[JobResult]:
        exception_seen = False
        attempt = 0

        async def _attempt() -> JobResult:
            nonlocal exception_seen, attempt
            attempt += 1
            # collaborator events logged during this attempt carry its number
            with structlog.contextvars.bound_contextvars(job_attempt=attempt):
                try:
                    return await self.job.execute()
                except Exception as exc:
                    exception_seen = True
                    error = as_batch_error(exc)
                    self.logger.warning("job_raised", **error.log_fields())
                    return self.job.error_result(error.to_entry(source="exception"))

        outcome = await self._executor.execute(
            _attempt, retry_on_result=lambda result: result.is_full_failure
        )
        outcome.exception_occurred = exception_seen
        result = outcome.result
        self.logger.info(
            "job_finished",
            attempts=outcome.attempt_count,
            retries=outcome.retry_count,
            elapsed_ms=outcome.total_elapsed_ms,
            success=result.success,
            partial_success=result.partial_success,
        )
        if result.is_full_failure:
            await self._log_final_failure(outcome)
            raise JobFailedError(self.job.name, outcome)
        return outcome

    async def _log_final_failure(self, outcome: RetryOutcome[JobResult]) -> None:
        entry = failure_log_entry(self.job.name, outcome, self.context)
        self.logger.error(
            "job_final_failure",
            date=entry["date"],
            attempt_count=entry["attempt_count"],
            total_retries=entry["total_retries"],
            total_processing_time_ms=entry["total_processing_time_ms"],
            errors=entry["errors"],
        )
        if self.failure_log is None:
            return
        try:
            await self.failure_log.record(entry)
        except Exception as exc:  # noqa: BLE001
            # the structured log above already holds the full entry
            self.logger.error("failure_log_write_failed", error=str(exc))


__all__ = [
    "BatchJob",
    "HTTP_OK",
    "HTTP_SERVER_ERROR",
    "JobFailedError",
    "JobRunner",
    "failure_log_entry",
    "http_status_for",
]

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeStorage

from market_digest.engine.retry import RetryConfig
from market_digest.errors import ErrorEntry
from market_digest.jobs import JobFailedError, JobRunner, http_status_for
from market_digest.jobs.results import NewsJobResult


class ScriptedJob:
    """Returns queued results; exceptions in the queue are raised."""

    name = "news"

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def execute(self) -> NewsJobResult:
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def error_result(self, entry: ErrorEntry) -> NewsJobResult:
        return NewsJobResult(date="2024-05-21", errors=[entry])


def _failed() -> NewsJobResult:
    return NewsJobResult(date="2024-05-21", errors=[ErrorEntry(kind="network", message="down")])


def _partial() -> NewsJobResult:
    return NewsJobResult(date="2024-05-21", partial_success=True)


def _success() -> NewsJobResult:
    return NewsJobResult(date="2024-05-21", success=True)


def test_full_failure_is_retried_until_success(sleep_recorder) -> None:
    job = ScriptedJob(_failed(), _failed(), _success())
    runner = JobRunner(job, RetryConfig(max_retries=3), sleep=sleep_recorder)
    outcome = asyncio.run(runner.run())
    assert outcome.result.success
    assert outcome.attempt_count == 3
    assert sleep_recorder.calls == [1.0, 2.0]
    assert http_status_for(outcome.result) == 200


def test_partial_success_is_not_retried(sleep_recorder) -> None:
    job = ScriptedJob(_partial(), _success())
    outcome = asyncio.run(JobRunner(job, RetryConfig(), sleep=sleep_recorder).run())
    assert job.calls == 1
    assert outcome.result.partial_success
    assert http_status_for(outcome.result) == 200


def test_exceptions_become_failed_results(sleep_recorder) -> None:
    job = ScriptedJob(RuntimeError("boom"), _success())
    outcome = asyncio.run(JobRunner(job, RetryConfig(max_retries=1), sleep=sleep_recorder).run())
    assert outcome.result.success
    assert outcome.exception_occurred
    assert outcome.attempt_count == 2


def test_final_failure_is_logged_and_raised(sleep_recorder) -> None:
    failure_log = FakeStorage()
    job = ScriptedJob(_failed())
    runner = JobRunner(
        job,
        RetryConfig(max_retries=3),
        failure_log,
        sleep=sleep_recorder,
        context={"trigger": "test"},
    )
    with pytest.raises(JobFailedError) as excinfo:
        asyncio.run(runner.run())

    assert job.calls == 4
    assert sleep_recorder.calls == [1.0, 2.0, 4.0]
    error = excinfo.value
    assert error.job_name == "news"
    assert error.result.is_full_failure
    assert http_status_for(error.result) == 500

    [entry] = failure_log.failures
    assert entry["batch_type"] == "news"
    assert entry["date"] == "2024-05-21"
    assert entry["attempt_count"] == 4
    assert entry["total_retries"] == 3
    assert entry["partial_success"] is False
    assert entry["exception_occurred"] is False
    assert entry["errors"][0]["kind"] == "network"
    assert entry["context"] == {"trigger": "test"}


def test_failure_log_errors_do_not_mask_job_failure(sleep_recorder) -> None:
    failure_log = FakeStorage(fail={"record"})
    job = ScriptedJob(_failed())
    runner = JobRunner(job, RetryConfig(max_retries=0), failure_log, sleep=sleep_recorder)
    with pytest.raises(JobFailedError):
        asyncio.run(runner.run())
    assert failure_log.failures == []


def test_http_status_without_result() -> None:
    assert http_status_for(None) == 500

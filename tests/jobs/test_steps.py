from __future__ import annotations

from market_digest.errors import ErrorEntry
from market_digest.jobs.steps import BatchStep, StepLog, step_for_source


def test_step_for_source_mapping() -> None:
    assert step_for_source("world-news-fetch") is BatchStep.WORLD_NEWS_FETCH
    assert step_for_source("term-generation-advanced") is BatchStep.TERM_GENERATION
    assert step_for_source("exception") is BatchStep.UNKNOWN
    assert step_for_source(None) is BatchStep.UNKNOWN


def test_step_log_summary() -> None:
    log = StepLog()
    log.success(BatchStep.WORLD_NEWS_FETCH, articles=3)
    log.record_error(ErrorEntry(kind="network", message="down", source="japan-news-fetch"))
    log.success(BatchStep.DATABASE_SAVE)

    summary = log.summary()
    assert summary == {
        "total_steps": 3,
        "success_count": 2,
        "error_count": 1,
        "failed_steps": ["japan-news-fetch"],
        "successful_steps": ["world-news-fetch", "database-save"],
    }
    assert log.for_step(BatchStep.WORLD_NEWS_FETCH)[0].metadata == {"articles": 3}
    assert log.failures()[0].error.kind == "network"
    log.clear()
    assert log.entries() == []

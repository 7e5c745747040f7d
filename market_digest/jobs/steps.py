"""Per-run trail of job steps and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from ..errors import ErrorEntry, utcnow


class BatchStep(str, Enum):
    WORLD_NEWS_FETCH = "world-news-fetch"
    JAPAN_NEWS_FETCH = "japan-news-fetch"
    WORLD_NEWS_SUMMARY = "world-news-summary"
    JAPAN_NEWS_SUMMARY = "japan-news-summary"
    HISTORY_FETCH = "history-fetch"
    TERM_GENERATION = "term-generation"
    DATABASE_SAVE = "database-save"
    HISTORY_UPDATE = "history-update"
    METADATA_UPDATE = "metadata-update"
    UNKNOWN = "unknown"


def step_for_source(source: str | None) -> BatchStep:
    if not source:
        return BatchStep.UNKNOWN
    if source.startswith(BatchStep.TERM_GENERATION.value):
        return BatchStep.TERM_GENERATION
    try:
        return BatchStep(source)
    except ValueError:
        return BatchStep.UNKNOWN


@dataclass(slots=True)
class StepEntry:
    step: BatchStep
    success: bool
    error: ErrorEntry | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


class StepLog:
    """Collect step outcomes for one job run and mirror them to structlog."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("market_digest.steps")
        self._entries: list[StepEntry] = []

    def success(self, step: BatchStep, **metadata: Any) -> None:
        self._entries.append(StepEntry(step=step, success=True, metadata=metadata))
        self.logger.info("step_succeeded", step=step.value, **metadata)

    def failure(self, step: BatchStep, error: ErrorEntry) -> None:
        self._entries.append(StepEntry(step=step, success=False, error=error))
        self.logger.error(
            "step_failed", step=step.value, error_kind=error.kind, error=error.message
        )

    def record_error(self, entry: ErrorEntry) -> None:
        self.failure(step_for_source(entry.source), entry)

    def extend(self, other: StepLog) -> None:
        """Append another trail's entries without logging them again."""

        self._entries.extend(other._entries)

    def entries(self) -> list[StepEntry]:
        return list(self._entries)

    def for_step(self, step: BatchStep) -> list[StepEntry]:
        return [entry for entry in self._entries if entry.step is step]

    def failures(self) -> list[StepEntry]:
        return [entry for entry in self._entries if not entry.success]

    def summary(self) -> dict[str, Any]:
        succeeded = [entry.step.value for entry in self._entries if entry.success]
        failed = [entry.step.value for entry in self._entries if not entry.success]
        return {
            "total_steps": len(self._entries),
            "success_count": len(succeeded),
            "error_count": len(failed),
            "failed_steps": failed,
            "successful_steps": succeeded,
        }

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["BatchStep", "StepEntry", "StepLog", "step_for_source"]

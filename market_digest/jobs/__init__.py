"""Batch job controllers, their records and the whole-job runner."""

from .contracts import (
    FailureLog,
    HistoryRepository,
    NewsSummarizer,
    SourceFetcher,
    Storage,
    TermGenerator,
)
from .news import NewsBatchJob
from .results import (
    Article,
    GeneratedTerm,
    NewsJobResult,
    NewsPayload,
    NewsRecord,
    NewsSummary,
    Summary,
    TermHistoryRecord,
    TermRecord,
    TermsJobResult,
)
from .runner import JobFailedError, JobRunner, http_status_for
from .steps import BatchStep, StepLog
from .terms import TermsBatchJob

__all__ = [
    "Article",
    "BatchStep",
    "FailureLog",
    "GeneratedTerm",
    "HistoryRepository",
    "JobFailedError",
    "JobRunner",
    "NewsBatchJob",
    "NewsJobResult",
    "NewsPayload",
    "NewsRecord",
    "NewsSummarizer",
    "NewsSummary",
    "SourceFetcher",
    "StepLog",
    "Storage",
    "Summary",
    "TermGenerator",
    "TermHistoryRecord",
    "TermRecord",
    "TermsBatchJob",
    "TermsJobResult",
    "http_status_for",
]

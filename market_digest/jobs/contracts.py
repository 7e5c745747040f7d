"""Collaborator interfaces consumed by the batch jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from .results import Article, GeneratedTerm, NewsRecord, Summary, TermHistoryRecord, TermRecord


class SourceFetcher(Protocol):
    async def fetch(self) -> list[Article]: ...


class NewsSummarizer(Protocol):
    async def summarize(self, articles: Sequence[Article], language: str) -> Summary: ...


class TermGenerator(Protocol):
    async def generate(self, difficulty: str, exclude: Sequence[str]) -> GeneratedTerm: ...


class HistoryRepository(Protocol):
    async def get_delivered_names(self, lookback_days: int = 30) -> list[str]: ...


class Storage(Protocol):
    async def upsert_news(self, record: NewsRecord) -> None: ...

    async def insert_terms(self, records: Sequence[TermRecord]) -> None: ...

    async def insert_term_history(self, records: Sequence[TermHistoryRecord]) -> None: ...

    async def update_metadata(self, field: str, timestamp: datetime) -> None: ...


class FailureLog(Protocol):
    async def record(self, entry: dict[str, Any]) -> None: ...


__all__ = [
    "FailureLog",
    "HistoryRepository",
    "NewsSummarizer",
    "SourceFetcher",
    "Storage",
    "TermGenerator",
]

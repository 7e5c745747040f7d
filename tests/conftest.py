"""Shared fixtures: fake collaborators for the batch jobs and a temp config home."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from market_digest.config import ConfigLocator, ConfigRepository, GlobalConfig
from market_digest.errors import BatchError
from market_digest.jobs.results import (
    Article,
    GeneratedTerm,
    NewsRecord,
    Summary,
    TermHistoryRecord,
    TermRecord,
)

FIXED_NOW = datetime(2024, 5, 20, 23, 30, tzinfo=timezone.utc)


class FakeFetcher:
    """Returns queued article lists or raises queued errors, one per call."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses) or [[Article(title="headline")]]
        self.calls = 0

    async def fetch(self) -> list[Article]:
        self.calls += 1
        index = min(self.calls, len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return list(response)


class FakeSummarizer:
    def __init__(self, errors: dict[str, BaseException] | None = None) -> None:
        self.errors = errors or {}
        self.calls: list[tuple[int, str]] = []

    async def summarize(self, articles: Sequence[Article], language: str) -> Summary:
        self.calls.append((len(articles), language))
        if language in self.errors:
            raise self.errors[language]
        return Summary(text=f"{language} summary of {len(articles)} articles")


class FakeGenerator:
    """Yields queued names per difficulty; an exception in the queue is raised."""

    def __init__(self, names: dict[str, list[Any]] | None = None) -> None:
        self.names = {key: list(value) for key, value in (names or {}).items()}
        self.calls: list[tuple[str, list[str]]] = []

    async def generate(self, difficulty: str, exclude: Sequence[str]) -> GeneratedTerm:
        self.calls.append((difficulty, list(exclude)))
        queue = self.names.get(difficulty)
        if queue:
            item = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            item = f"{difficulty}-term-{len(self.calls)}"
        if isinstance(item, BaseException):
            raise item
        return GeneratedTerm(name=item, description=f"about {item}", difficulty=difficulty)


class FakeHistory:
    def __init__(self, names: Iterable[str] = (), error: BaseException | None = None) -> None:
        self.names = list(names)
        self.error = error
        self.requested: list[int] = []

    async def get_delivered_names(self, lookback_days: int = 30) -> list[str]:
        self.requested.append(lookback_days)
        if self.error is not None:
            raise self.error
        return list(self.names)


class FakeStorage:
    """In-memory storage; ``fail`` names the operations that should raise."""

    def __init__(self, fail: Iterable[str] = ()) -> None:
        self.fail = set(fail)
        self.news: list[NewsRecord] = []
        self.terms: list[TermRecord] = []
        self.history: list[TermHistoryRecord] = []
        self.metadata: dict[str, datetime] = {}
        self.failures: list[dict[str, Any]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail:
            raise BatchError.storage(f"{operation} failed", operation="write")

    async def upsert_news(self, record: NewsRecord) -> None:
        self._maybe_fail("upsert_news")
        self.news.append(record)

    async def insert_terms(self, records: Sequence[TermRecord]) -> None:
        self._maybe_fail("insert_terms")
        self.terms.extend(records)

    async def insert_term_history(self, records: Sequence[TermHistoryRecord]) -> None:
        self._maybe_fail("insert_term_history")
        self.history.extend(records)

    async def update_metadata(self, field: str, timestamp: datetime) -> None:
        self._maybe_fail("update_metadata")
        self.metadata[field] = timestamp

    async def record(self, entry: dict[str, Any]) -> None:
        self._maybe_fail("record")
        self.failures.append(entry)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(database_path=tmp_path / "digest.db")


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("MARKET_DIGEST_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MARKET_DIGEST_HOME", str(tmp_path))

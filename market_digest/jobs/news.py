"""Daily news job: fetch world and Japanese headlines, summarise, persist."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

import structlog

from ..engine.deadline import DeadlineGuard
from ..engine.fanout import gather_sources
from ..errors import BatchError, ErrorEntry, as_batch_error, utcnow
from .contracts import NewsSummarizer, SourceFetcher, Storage
from .results import (
    JAPAN_NEWS_TITLE,
    WORLD_NEWS_TITLE,
    Article,
    NewsJobResult,
    NewsPayload,
    NewsRecord,
    NewsSummary,
    jst_date,
)
from .steps import BatchStep, StepLog

NEWS_METADATA_FIELD = "news_last_updated"

_SOURCES = {
    "world": (WORLD_NEWS_TITLE, "en", BatchStep.WORLD_NEWS_FETCH, BatchStep.WORLD_NEWS_SUMMARY),
    "japan": (JAPAN_NEWS_TITLE, "ja", BatchStep.JAPAN_NEWS_FETCH, BatchStep.JAPAN_NEWS_SUMMARY),
}


class NewsBatchJob:
    """Fetch both sources concurrently, summarise each and store the day's record."""

    name = "news"

    def __init__(
        self,
        world_fetcher: SourceFetcher,
        japan_fetcher: SourceFetcher,
        summarizer: NewsSummarizer,
        storage: Storage,
        *,
        timeout_ms: int = 300000,
        cancel_on_timeout: bool = True,
        save_to_database: bool = True,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.world_fetcher = world_fetcher
        self.japan_fetcher = japan_fetcher
        self.summarizer = summarizer
        self.storage = storage
        self.timeout_ms = timeout_ms
        self.cancel_on_timeout = cancel_on_timeout
        self.save_to_database = save_to_database
        self._clock = clock
        self.logger = logger or structlog.get_logger("market_digest.jobs.news")
        self.steps = StepLog(self.logger)

    def error_result(self, entry: ErrorEntry) -> NewsJobResult:
        return NewsJobResult(date=jst_date(self._clock()), errors=[entry])

    async def execute(self) -> NewsJobResult:
        started = time.monotonic()
        result = NewsJobResult(date=jst_date(self._clock()))
        self.steps = StepLog(self.logger)
        guard = DeadlineGuard(self.timeout_ms, cancel_on_timeout=self.cancel_on_timeout)
        # a detached task may outlive this call, so it never touches ``result``
        draft = NewsJobResult(date=result.date)
        draft_steps = StepLog(self.logger)

        try:
            outcome = await guard.run(lambda: self._collect(draft, draft_steps))
        except Exception as exc:
            self._absorb(result, draft, draft_steps)
            self._record(result, as_batch_error(exc).to_entry(source=BatchStep.UNKNOWN.value))
        else:
            if outcome.timed_out:
                error = BatchError.timeout(
                    f"News job did not finish within {self.timeout_ms}ms",
                    timeout_ms=self.timeout_ms,
                )
                self._record(result, error.to_entry())
            else:
                self._absorb(result, draft, draft_steps)
                result.payload = outcome.value
                await self._persist(result)

        self._classify(result)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        self.logger.info(
            "news_job_completed",
            date=result.date,
            success=result.success,
            partial_success=result.partial_success,
            persisted=result.persisted,
            metadata_updated=result.metadata_updated,
            duration_ms=result.duration_ms,
            errors=len(result.errors),
        )
        return result

    # ------------------------------------------------------------------
    async def _collect(self, draft: NewsJobResult, steps: StepLog) -> NewsPayload:
        report = await gather_sources(
            {"world": self.world_fetcher.fetch, "japan": self.japan_fetcher.fetch}
        )
        payload = NewsPayload()
        for name, outcome in report.outcomes.items():
            title, language, fetch_step, summary_step = _SOURCES[name]
            if not outcome.succeeded:
                entry = as_batch_error(outcome.error).to_entry(source=fetch_step.value)
                draft.add_error(entry)
                steps.record_error(entry)
                continue
            articles: list[Article] = list(outcome.value or [])
            steps.success(fetch_step, articles=len(articles))
            if not articles:
                self.logger.warning("news_source_empty", source=name)
                continue
            try:
                summary = await self.summarizer.summarize(articles, language)
            except Exception as exc:
                entry = as_batch_error(exc).to_entry(source=summary_step.value)
                draft.add_error(entry)
                steps.record_error(entry)
                continue
            steps.success(summary_step, characters=summary.character_count)
            setattr(
                payload,
                name,
                NewsSummary(
                    title=title,
                    summary=summary.text,
                    character_count=summary.character_count,
                    updated_at=self._clock(),
                ),
            )
        return payload

    async def _persist(self, result: NewsJobResult) -> None:
        payload = result.payload
        if not self.save_to_database or payload is None or not (payload.world or payload.japan):
            return
        now = self._clock()
        record = NewsRecord(
            date=result.date,
            world_news_title=payload.world.title if payload.world else "",
            world_news_summary=payload.world.summary if payload.world else "",
            japan_news_title=payload.japan.title if payload.japan else "",
            japan_news_summary=payload.japan.summary if payload.japan else "",
            updated_at=now,
        )
        try:
            await self.storage.upsert_news(record)
        except Exception as exc:
            self._record(result, as_batch_error(exc).to_entry(source=BatchStep.DATABASE_SAVE.value))
        else:
            result.persisted = True
            self.steps.success(BatchStep.DATABASE_SAVE, date=result.date)

        try:
            await self.storage.update_metadata(NEWS_METADATA_FIELD, now)
        except Exception as exc:
            self._record(
                result, as_batch_error(exc).to_entry(source=BatchStep.METADATA_UPDATE.value)
            )
        else:
            result.metadata_updated = True
            self.steps.success(BatchStep.METADATA_UPDATE, field=NEWS_METADATA_FIELD)

    def _absorb(self, result: NewsJobResult, draft: NewsJobResult, steps: StepLog) -> None:
        result.errors.extend(draft.errors)
        self.steps.extend(steps)

    def _record(self, result: NewsJobResult, entry: ErrorEntry) -> None:
        result.add_error(entry)
        self.steps.record_error(entry)

    @staticmethod
    def _classify(result: NewsJobResult) -> None:
        payload = result.payload
        has_world = bool(payload and payload.world)
        has_japan = bool(payload and payload.japan)
        result.success = has_world and has_japan and not result.errors
        result.partial_success = (has_world or has_japan) and not result.success


__all__ = ["NEWS_METADATA_FIELD", "NewsBatchJob"]

"""Daily terms job: three unique investment terms, one per difficulty."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

import structlog

from ..engine.deadline import DeadlineGuard
from ..engine.dedup import DuplicateCheckMode, DuplicateIndex
from ..engine.regenerator import TermRegenerator
from ..errors import BatchError, DuplicateCheckFailure, ErrorEntry, as_batch_error, utcnow
from .contracts import HistoryRepository, Storage, TermGenerator
from .results import (
    DIFFICULTIES,
    GeneratedTerm,
    TermHistoryRecord,
    TermRecord,
    TermsJobResult,
    jst_date,
)
from .steps import BatchStep, StepLog

TERMS_METADATA_FIELD = "terms_last_updated"


class TermsBatchJob:
    """Generate beginner, intermediate and advanced terms unseen in recent history."""

    name = "terms"

    def __init__(
        self,
        generator: TermGenerator,
        history: HistoryRepository,
        storage: Storage,
        *,
        timeout_ms: int = 300000,
        cancel_on_timeout: bool = True,
        save_to_database: bool = True,
        lookback_days: int = 30,
        max_regenerations: int = 5,
        duplicate_mode: DuplicateCheckMode | str = DuplicateCheckMode.EXACT,
        similarity_threshold: float = 0.7,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.generator = generator
        self.history = history
        self.storage = storage
        self.timeout_ms = timeout_ms
        self.cancel_on_timeout = cancel_on_timeout
        self.save_to_database = save_to_database
        self.lookback_days = lookback_days
        self.max_regenerations = max_regenerations
        self.duplicate_mode = DuplicateCheckMode(duplicate_mode)
        self.similarity_threshold = similarity_threshold
        self._clock = clock
        self.logger = logger or structlog.get_logger("market_digest.jobs.terms")
        self.steps = StepLog(self.logger)

    def error_result(self, entry: ErrorEntry) -> TermsJobResult:
        return TermsJobResult(date=jst_date(self._clock()), errors=[entry])

    async def execute(self) -> TermsJobResult:
        started = time.monotonic()
        result = TermsJobResult(date=jst_date(self._clock()))
        self.steps = StepLog(self.logger)
        guard = DeadlineGuard(self.timeout_ms, cancel_on_timeout=self.cancel_on_timeout)
        # a detached task may outlive this call, so it never touches ``result``
        draft = TermsJobResult(date=result.date)
        draft_steps = StepLog(self.logger)

        try:
            outcome = await guard.run(lambda: self._generate(draft, draft_steps))
        except BatchError as exc:
            self._absorb(result, draft, draft_steps)
            if exc.sub_kind is not DuplicateCheckFailure.REGENERATION_FAILED:
                self._record(result, exc.to_entry(source=BatchStep.UNKNOWN.value))
            else:
                source = f"{BatchStep.TERM_GENERATION.value}-{exc.context.get('difficulty', '')}"
                self.steps.record_error(exc.to_entry(source=source))
                self.logger.error(
                    "terms_job_aborted",
                    date=result.date,
                    accepted=len(draft.payload or []),
                    **exc.log_fields(),
                )
                raise
        except Exception as exc:
            self._absorb(result, draft, draft_steps)
            self._record(result, as_batch_error(exc).to_entry(source=BatchStep.UNKNOWN.value))
        else:
            if outcome.timed_out:
                error = BatchError.timeout(
                    f"Terms job did not finish within {self.timeout_ms}ms",
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
            "terms_job_completed",
            date=result.date,
            success=result.success,
            partial_success=result.partial_success,
            terms=len(result.payload or []),
            regenerations=result.regenerations,
            duration_ms=result.duration_ms,
            errors=len(result.errors),
        )
        return result

    # ------------------------------------------------------------------
    async def _load_index(self, draft: TermsJobResult, steps: StepLog) -> DuplicateIndex:
        try:
            delivered = await self.history.get_delivered_names(self.lookback_days)
        except Exception as exc:
            cause = as_batch_error(exc)
            error = BatchError.duplicate_check(
                f"Failed to read term history: {cause.message}",
                sub_kind=DuplicateCheckFailure.HISTORY_FETCH_FAILED,
                context={"lookback_days": self.lookback_days, "cause_kind": cause.kind.value},
            )
            entry = error.to_entry(source=BatchStep.HISTORY_FETCH.value)
            draft.add_error(entry)
            steps.record_error(entry)
            delivered = []
        else:
            steps.success(BatchStep.HISTORY_FETCH, delivered=len(delivered))
        return DuplicateIndex(
            delivered, mode=self.duplicate_mode, similarity_threshold=self.similarity_threshold
        )

    async def _generate(self, draft: TermsJobResult, steps: StepLog) -> list[GeneratedTerm]:
        """Run the regeneration loop per difficulty.

        Generation errors raised by the loop are not caught here; they end
        the run before anything is persisted.
        """

        index = await self._load_index(draft, steps)
        regenerator = TermRegenerator(
            self.generator, index, max_regenerations=self.max_regenerations
        )
        accepted: list[GeneratedTerm] = []
        draft.payload = accepted
        for difficulty in DIFFICULTIES:
            outcome = await regenerator.generate_unique(
                difficulty, exclude=[term.name for term in accepted]
            )
            draft.regenerations[difficulty] = outcome.regenerated_count
            if not outcome.success:
                error = BatchError.duplicate_check(
                    f"No unique {difficulty} term after {outcome.attempts} attempts",
                    sub_kind=DuplicateCheckFailure.MAX_REGENERATION_EXCEEDED,
                    context={"difficulty": difficulty, "attempts": outcome.attempts},
                )
                entry = error.to_entry(source=f"{BatchStep.TERM_GENERATION.value}-{difficulty}")
                draft.add_error(entry)
                steps.record_error(entry)
                continue
            term = outcome.item
            accepted.append(term)
            index.add(term.name)
            steps.success(
                BatchStep.TERM_GENERATION,
                difficulty=difficulty,
                name=term.name,
                attempts=outcome.attempts,
            )
        return accepted

    async def _persist(self, result: TermsJobResult) -> None:
        terms = result.payload or []
        if not self.save_to_database or not terms:
            return
        now = self._clock()
        try:
            await self.storage.insert_terms(
                [
                    TermRecord(
                        date=result.date,
                        name=term.name,
                        description=term.description,
                        difficulty=term.difficulty,
                    )
                    for term in terms
                ]
            )
        except Exception as exc:
            self._record(result, as_batch_error(exc).to_entry(source=BatchStep.DATABASE_SAVE.value))
        else:
            result.persisted = True
            self.steps.success(BatchStep.DATABASE_SAVE, terms=len(terms))

        try:
            await self.storage.insert_term_history(
                [
                    TermHistoryRecord(
                        term_name=term.name, delivered_at=now, difficulty=term.difficulty
                    )
                    for term in terms
                ]
            )
        except Exception as exc:
            self._record(
                result, as_batch_error(exc).to_entry(source=BatchStep.HISTORY_UPDATE.value)
            )
        else:
            result.history_updated = True
            self.steps.success(BatchStep.HISTORY_UPDATE, terms=len(terms))

        try:
            await self.storage.update_metadata(TERMS_METADATA_FIELD, now)
        except Exception as exc:
            self._record(
                result, as_batch_error(exc).to_entry(source=BatchStep.METADATA_UPDATE.value)
            )
        else:
            result.metadata_updated = True
            self.steps.success(BatchStep.METADATA_UPDATE, field=TERMS_METADATA_FIELD)

    def _absorb(self, result: TermsJobResult, draft: TermsJobResult, steps: StepLog) -> None:
        result.errors.extend(draft.errors)
        result.regenerations.update(draft.regenerations)
        self.steps.extend(steps)

    def _record(self, result: TermsJobResult, entry: ErrorEntry) -> None:
        result.add_error(entry)
        self.steps.record_error(entry)

    @staticmethod
    def _classify(result: TermsJobResult) -> None:
        count = len(result.payload or [])
        result.success = count == len(DIFFICULTIES) and not result.errors
        result.partial_success = count > 0 and not result.success


__all__ = ["TERMS_METADATA_FIELD", "TermsBatchJob"]

"""Bounded regenerate-until-unique loop for generated terms."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

import structlog

from ..errors import BatchError, DuplicateCheckFailure, as_batch_error, utcnow
from .dedup import DuplicateIndex

MAX_REGENERATIONS_EXCEEDED = "max-regenerations-exceeded"


@dataclass(slots=True)
class RegenerationAttempt:
    rejected_name: str
    reason: str
    attempt_number: int
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class RegenerationResult:
    success: bool
    attempts: int
    regenerated_count: int
    item: Any = None
    error: str | None = None
    history: list[RegenerationAttempt] = field(default_factory=list)


class TermRegenerator:
    """Ask the generator for a term until the duplicate index accepts one.

    The generator is called at most ``1 + max_regenerations`` times. Every
    rejected name is added to the exclusion list handed to the next call.
    A generation failure ends the loop at once and is raised as a
    ``duplicate-check`` error with sub kind ``regeneration-failed``.
    """

    def __init__(
        self,
        generator: Any,
        index: DuplicateIndex,
        max_regenerations: int = 5,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if max_regenerations < 0:
            raise ValueError("max_regenerations must be >= 0")
        self.generator = generator
        self.index = index
        self.max_regenerations = max_regenerations
        self.logger = logger or structlog.get_logger("market_digest.regenerator")

    async def generate_unique(
        self, difficulty: str, exclude: Iterable[str] = ()
    ) -> RegenerationResult:
        excluded = dict.fromkeys(exclude)
        history: list[RegenerationAttempt] = []
        max_attempts = 1 + self.max_regenerations
        attempts = 0
        regenerated = 0

        while attempts < max_attempts:
            attempts += 1
            try:
                item = await self.generator.generate(difficulty, list(excluded))
            except Exception as exc:
                history.append(
                    RegenerationAttempt(rejected_name="unknown", reason="error", attempt_number=attempts)
                )
                cause = as_batch_error(exc)
                self.logger.error(
                    "term_generation_failed",
                    difficulty=difficulty,
                    attempt=attempts,
                    **cause.log_fields(),
                )
                raise BatchError.duplicate_check(
                    f"Term generation failed: {cause.message}",
                    sub_kind=DuplicateCheckFailure.REGENERATION_FAILED,
                    context={
                        "difficulty": difficulty,
                        "attempts": attempts,
                        "regenerated_count": regenerated,
                        "cause_kind": cause.kind.value,
                        "history": [entry.rejected_name for entry in history],
                    },
                ) from exc

            check = self.index.check(item.name)
            if not check.is_duplicate:
                self.logger.info(
                    "term_accepted",
                    difficulty=difficulty,
                    name=item.name,
                    attempts=attempts,
                )
                return RegenerationResult(
                    success=True,
                    attempts=attempts,
                    regenerated_count=regenerated,
                    item=item,
                    history=history,
                )

            # the final duplicate does not trigger another generation
            if attempts < max_attempts:
                regenerated += 1
            self.logger.info(
                "term_duplicate",
                difficulty=difficulty,
                name=item.name,
                matched=check.matched_item,
                match_kind=check.match_kind,
                attempt=attempts,
            )
            history.append(
                RegenerationAttempt(rejected_name=item.name, reason="duplicate", attempt_number=attempts)
            )
            excluded[item.name] = None

        self.logger.warning(
            "max_regenerations_exceeded",
            difficulty=difficulty,
            max_regenerations=self.max_regenerations,
        )
        return RegenerationResult(
            success=False,
            attempts=attempts,
            regenerated_count=regenerated,
            error=MAX_REGENERATIONS_EXCEEDED,
            history=history,
        )


__all__ = [
    "MAX_REGENERATIONS_EXCEEDED",
    "RegenerationAttempt",
    "RegenerationResult",
    "TermRegenerator",
]

"""Concurrent fan-out over independent upstream sources."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping

import structlog

from ..errors import ErrorEntry, as_batch_error

FULL_SUCCESS = "FULL_SUCCESS"
FULL_FAILURE = "FULL_FAILURE"
PARTIAL = "PARTIAL"

logger = structlog.get_logger("market_digest.fanout")


@dataclass(slots=True)
class SourceOutcome:
    name: str
    value: Any = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def classify_outcome(names: Iterable[str], succeeded: Iterable[str]) -> str:
    """Label the combined outcome of a set of sources.

    Two-source runs yield ``FULL_SUCCESS``, ``<NAME>_ONLY`` or
    ``FULL_FAILURE``. With three or more sources a mixed result where more
    than one source succeeded is labelled ``PARTIAL``.
    """

    ordered = list(names)
    ok = [name for name in ordered if name in set(succeeded)]
    if not ordered or not ok:
        return FULL_FAILURE
    if len(ok) == len(ordered):
        return FULL_SUCCESS
    if len(ok) == 1:
        return f"{ok[0].upper()}_ONLY"
    return PARTIAL


@dataclass(slots=True)
class FanOutReport:
    outcomes: dict[str, SourceOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.succeeded]

    @property
    def failed(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if not outcome.succeeded]

    @property
    def classification(self) -> str:
        return classify_outcome(self.outcomes.keys(), self.succeeded)

    @property
    def should_save(self) -> bool:
        return bool(self.succeeded)

    @property
    def should_retry_whole_job(self) -> bool:
        return self.classification == FULL_FAILURE

    def value(self, name: str) -> Any:
        return self.outcomes[name].value

    def error_entries(self) -> list[ErrorEntry]:
        entries: list[ErrorEntry] = []
        for name, outcome in self.outcomes.items():
            if outcome.error is not None:
                entries.append(as_batch_error(outcome.error).to_entry(source=name))
        return entries


async def gather_sources(
    operations: Mapping[str, Callable[[], Awaitable[Any]]],
) -> FanOutReport:
    """Run every source concurrently and settle all of them.

    One source failing never cancels the others; each failure is captured on
    its :class:`SourceOutcome`.
    """

    names = list(operations)
    results = await asyncio.gather(
        *(operations[name]() for name in names), return_exceptions=True
    )
    report = FanOutReport()
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            report.outcomes[name] = SourceOutcome(name=name, error=result)
        else:
            report.outcomes[name] = SourceOutcome(name=name, value=result)
    logger.info(
        "fanout_completed",
        succeeded=report.succeeded,
        failed=report.failed,
        classification=report.classification,
    )
    return report


__all__ = [
    "FULL_FAILURE",
    "FULL_SUCCESS",
    "FanOutReport",
    "PARTIAL",
    "SourceOutcome",
    "classify_outcome",
    "gather_sources",
]

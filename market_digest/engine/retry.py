"""Generic exponential-backoff retry executor for async operations."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

import structlog

from ..errors import BatchError

T = TypeVar("T")

RetryCallback = Callable[[BaseException | None, int, int], None]
SleepFunc = Callable[[float], Awaitable[None]]


def compute_backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Delay before retry number ``attempt`` (1-based): ``min(base * 2**(attempt-1), max)``."""

    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return min(base_delay_ms * 2 ** (attempt - 1), max_delay_ms)


@dataclass(slots=True)
class RetryConfig:
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    on_retry: RetryCallback | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be non-negative")


@dataclass(slots=True)
class RetryOutcome(Generic[T]):
    result: T | None
    attempt_count: int
    total_elapsed_ms: int
    exception_occurred: bool = False

    @property
    def retry_count(self) -> int:
        return self.attempt_count - 1


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, BatchError):
        return exc.retryable
    return True


class RetryExecutor:
    """Run an async operation, retrying failures with exponential backoff.

    Exceptions are retried unless they are a :class:`BatchError` created with
    ``retryable=False``. ``retry_on_result`` additionally lets callers treat a
    returned value as a failure; when retries run out the last value is
    returned instead of raising.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("market_digest.retry")

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on_result: Callable[[T], bool] | None = None,
    ) -> RetryOutcome[T]:
        cfg = self.config
        started = time.monotonic()
        attempt = 0
        exception_occurred = False
        while True:
            attempt += 1
            failure: BaseException | None = None
            try:
                result = await operation()
            except Exception as exc:
                exception_occurred = True
                if not _is_retryable(exc) or attempt > cfg.max_retries:
                    self.logger.warning(
                        "retry_gave_up",
                        attempt=attempt,
                        retryable=_is_retryable(exc),
                        error=str(exc),
                    )
                    raise
                failure = exc
            else:
                if retry_on_result is None or not retry_on_result(result):
                    return RetryOutcome(
                        result=result,
                        attempt_count=attempt,
                        total_elapsed_ms=_elapsed_ms(started),
                        exception_occurred=exception_occurred,
                    )
                if attempt > cfg.max_retries:
                    return RetryOutcome(
                        result=result,
                        attempt_count=attempt,
                        total_elapsed_ms=_elapsed_ms(started),
                        exception_occurred=exception_occurred,
                    )

            delay_ms = compute_backoff_delay(attempt, cfg.base_delay_ms, cfg.max_delay_ms)
            self.logger.info(
                "retry_scheduled",
                attempt=attempt,
                max_retries=cfg.max_retries,
                delay_ms=delay_ms,
                error=str(failure) if failure is not None else None,
            )
            if cfg.on_retry is not None:
                cfg.on_retry(failure, attempt, delay_ms)
            await self._sleep(delay_ms / 1000)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


__all__ = ["RetryConfig", "RetryExecutor", "RetryOutcome", "compute_backoff_delay"]

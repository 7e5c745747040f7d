"""Wall-clock budget for a whole job invocation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

T = TypeVar("T")


@dataclass(slots=True)
class DeadlineOutcome(Generic[T]):
    value: T | None
    timed_out: bool
    elapsed_ms: int


class DeadlineGuard:
    """Race a coroutine against a fixed timer.

    With ``cancel_on_timeout`` (the default) the unfinished task is cancelled
    and awaited, so collaborator I/O is released before the guard returns.
    Otherwise the guard only stops waiting; the task keeps running and is
    held in :attr:`detached` until it settles.
    """

    def __init__(
        self,
        timeout_ms: int = 300000,
        cancel_on_timeout: bool = True,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        self.timeout_ms = timeout_ms
        self.cancel_on_timeout = cancel_on_timeout
        self.detached: set[asyncio.Task[Any]] = set()
        self.logger = logger or structlog.get_logger("market_digest.deadline")

    async def run(self, coro_factory: Callable[[], Awaitable[T]]) -> DeadlineOutcome[T]:
        started = time.monotonic()
        task = asyncio.ensure_future(coro_factory())
        done, _ = await asyncio.wait({task}, timeout=self.timeout_ms / 1000)
        if task in done:
            return DeadlineOutcome(
                value=task.result(), timed_out=False, elapsed_ms=_elapsed_ms(started)
            )

        elapsed = _elapsed_ms(started)
        if self.cancel_on_timeout:
            task.cancel()
            await asyncio.wait({task})
        else:
            self.detached.add(task)
            task.add_done_callback(self._settle_detached)
        self.logger.error(
            "deadline_exceeded",
            timeout_ms=self.timeout_ms,
            elapsed_ms=elapsed,
            cancelled=self.cancel_on_timeout,
        )
        return DeadlineOutcome(value=None, timed_out=True, elapsed_ms=elapsed)

    def _settle_detached(self, task: asyncio.Task[Any]) -> None:
        self.detached.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.warning("detached_task_failed", error=str(exc))
        else:
            self.logger.info("detached_task_finished")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


__all__ = ["DeadlineGuard", "DeadlineOutcome"]

"""Retry wrapper honouring server rate-limit hints (HTTP 429 / retry-after)."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import structlog

from ..errors import BatchError, ErrorKind

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]
RateLimitCallback = Callable[[BatchError, int, int], None]


@dataclass(slots=True)
class RateLimitConfig:
    max_retries: int = 3
    default_wait_seconds: int = 60
    max_wait_seconds: int = 300


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, BatchError):
        return exc.kind is ErrorKind.RATE_LIMIT or exc.status_code == 429
    if "RateLimit" in type(exc).__name__:
        return True
    return _status_of(exc) == 429


def _coerce_seconds(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(seconds):
        return None
    return math.ceil(seconds)


def extract_retry_after(exc: BaseException) -> int | None:
    """Return the server wait hint in whole seconds, rounded up."""

    hint = _coerce_seconds(getattr(exc, "retry_after", None))
    if hint is not None:
        return hint
    headers = None
    if isinstance(exc, httpx.HTTPStatusError):
        headers = exc.response.headers
    else:
        headers = getattr(exc, "headers", None)
    if headers is None:
        return None
    try:
        raw = headers.get("retry-after")
    except AttributeError:
        return None
    return _coerce_seconds(raw)


class RateLimitExecutor:
    """Retry only rate-limit failures, waiting as long as the server asks."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("market_digest.rate_limit")

    def wait_seconds_for(self, exc: BaseException) -> int:
        hint = extract_retry_after(exc)
        wait = hint if hint is not None else self.config.default_wait_seconds
        return min(wait, self.config.max_wait_seconds)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: RateLimitCallback | None = None,
    ) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    raise
                attempt += 1
                provider = getattr(exc, "provider", None)
                if attempt > self.config.max_retries:
                    self.logger.error(
                        "rate_limit_exhausted",
                        max_retries=self.config.max_retries,
                        provider=provider,
                    )
                    raise BatchError.rate_limit(
                        f"Rate limit exceeded after {self.config.max_retries} retries",
                        retry_after=self.wait_seconds_for(exc),
                        provider=provider,
                    ) from exc
                wait_seconds = self.wait_seconds_for(exc)
                self.logger.warning(
                    "rate_limit_wait",
                    attempt=attempt,
                    wait_seconds=wait_seconds,
                    provider=provider,
                )
                if on_retry is not None:
                    on_retry(
                        BatchError.rate_limit(
                            "Rate limit exceeded, retrying",
                            retry_after=wait_seconds,
                            provider=provider,
                        ),
                        attempt,
                        wait_seconds,
                    )
                await self._sleep(wait_seconds)

    def wrap(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: RateLimitCallback | None = None,
    ) -> Callable[[], Awaitable[T]]:
        async def _wrapped() -> T:
            return await self.execute(operation, on_retry)

        return _wrapped


__all__ = [
    "RateLimitConfig",
    "RateLimitExecutor",
    "extract_retry_after",
    "is_rate_limit_error",
]

"""Error taxonomy shared by collectors, generators, storage and job controllers.

Every failure is a :class:`BatchError` tagged with an :class:`ErrorKind`.
Kind-specific details (provider, status code, retry-after hint, storage
operation, duplicate-check sub kind) travel as optional attributes, so
handling code switches on ``error.kind`` instead of on exception subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Discriminant for every failure the batch engine reports."""

    NETWORK = "network"
    UPSTREAM_API = "upstream-api"
    RATE_LIMIT = "rate-limit"
    AI_TIMEOUT = "ai-timeout"
    AI_UNAVAILABLE = "ai-unavailable"
    STORAGE = "storage"
    DUPLICATE_CHECK = "duplicate-check"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class DuplicateCheckFailure(str, Enum):
    """Sub kinds carried by ``duplicate-check`` errors."""

    HISTORY_FETCH_FAILED = "history-fetch-failed"
    CHECK_FAILED = "check-failed"
    REGENERATION_FAILED = "regeneration-failed"
    MAX_REGENERATION_EXCEEDED = "max-regeneration-exceeded"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ErrorEntry:
    """One recorded failure inside a job result."""

    kind: str
    message: str
    occurred_at: datetime = field(default_factory=utcnow)
    source: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "occurred_at": self.occurred_at.isoformat(),
        }
        if self.source:
            payload["source"] = self.source
        return payload


class BatchError(Exception):
    """Tagged failure raised by collaborators and engine components."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool = True,
        provider: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
        operation: str | None = None,
        sub_kind: DuplicateCheckFailure | None = None,
        timeout_ms: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.retryable = retryable
        self.provider = provider
        self.status_code = status_code
        self.retry_after = retry_after
        self.operation = operation
        self.sub_kind = sub_kind
        self.timeout_ms = timeout_ms
        self.context = dict(context or {})
        self.occurred_at = utcnow()

    def __repr__(self) -> str:
        return f"BatchError(kind={self.kind.value!r}, message={self.message!r})"

    # ------------------------------------------------------------------
    # Constructors per kind
    # ------------------------------------------------------------------
    @classmethod
    def network(cls, message: str, *, provider: str | None = None) -> "BatchError":
        return cls(ErrorKind.NETWORK, message, provider=provider)

    @classmethod
    def upstream(
        cls, message: str, *, provider: str, status_code: int | None = None, retryable: bool = True
    ) -> "BatchError":
        return cls(
            ErrorKind.UPSTREAM_API,
            message,
            provider=provider,
            status_code=status_code,
            retryable=retryable,
        )

    @classmethod
    def rate_limit(
        cls, message: str, *, retry_after: float | None = None, provider: str | None = None
    ) -> "BatchError":
        return cls(
            ErrorKind.RATE_LIMIT,
            message,
            provider=provider,
            status_code=429,
            retry_after=retry_after,
        )

    @classmethod
    def ai_timeout(cls, message: str, *, timeout_ms: int, operation: str | None = None) -> "BatchError":
        return cls(ErrorKind.AI_TIMEOUT, message, timeout_ms=timeout_ms, operation=operation)

    @classmethod
    def ai_unavailable(
        cls, message: str, *, status_code: int, operation: str | None = None
    ) -> "BatchError":
        return cls(
            ErrorKind.AI_UNAVAILABLE, message, status_code=status_code, operation=operation
        )

    @classmethod
    def storage(cls, message: str, *, operation: str) -> "BatchError":
        if operation not in {"read", "write", "delete"}:
            raise ValueError(f"Unsupported storage operation: {operation}")
        return cls(ErrorKind.STORAGE, message, operation=operation)

    @classmethod
    def duplicate_check(
        cls,
        message: str,
        *,
        sub_kind: DuplicateCheckFailure,
        context: dict[str, Any] | None = None,
    ) -> "BatchError":
        return cls(ErrorKind.DUPLICATE_CHECK, message, sub_kind=sub_kind, context=context)

    @classmethod
    def timeout(cls, message: str, *, timeout_ms: int) -> "BatchError":
        return cls(ErrorKind.TIMEOUT, message, timeout_ms=timeout_ms)

    @classmethod
    def unknown(cls, message: str, *, retryable: bool = True) -> "BatchError":
        return cls(ErrorKind.UNKNOWN, message, retryable=retryable)

    # ------------------------------------------------------------------
    def to_entry(self, source: str | None = None) -> ErrorEntry:
        return ErrorEntry(
            kind=self.kind.value,
            message=self.message,
            occurred_at=self.occurred_at,
            source=source,
        )

    def log_fields(self) -> dict[str, Any]:
        """Flatten populated attributes for structured logging."""

        fields: dict[str, Any] = {"error_kind": self.kind.value, "error": self.message}
        if self.kind is ErrorKind.UPSTREAM_API:
            fields.update(provider=self.provider, status_code=self.status_code)
        elif self.kind is ErrorKind.RATE_LIMIT:
            fields.update(provider=self.provider, retry_after=self.retry_after)
        elif self.kind in (ErrorKind.AI_TIMEOUT, ErrorKind.TIMEOUT):
            fields.update(timeout_ms=self.timeout_ms, operation=self.operation)
        elif self.kind is ErrorKind.AI_UNAVAILABLE:
            fields.update(status_code=self.status_code, operation=self.operation)
        elif self.kind is ErrorKind.STORAGE:
            fields.update(operation=self.operation)
        elif self.kind is ErrorKind.DUPLICATE_CHECK and self.sub_kind is not None:
            fields.update(sub_kind=self.sub_kind.value)
        if self.context:
            fields["context"] = self.context
        return fields


def header_retry_after(headers: Any) -> float | None:
    if headers is None:
        return None
    try:
        raw = headers.get("retry-after")
    except AttributeError:
        return None
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def as_batch_error(exc: BaseException, *, provider: str | None = None) -> BatchError:
    """Classify an arbitrary exception into the tagged taxonomy."""

    if isinstance(exc, BatchError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return BatchError.network(f"Request timed out: {exc}", provider=provider)
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return BatchError.rate_limit(
                str(exc),
                retry_after=header_retry_after(exc.response.headers),
                provider=provider,
            )
        return BatchError.upstream(str(exc), provider=provider or "http", status_code=status)
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return BatchError.network(str(exc) or exc.__class__.__name__, provider=provider)
    message = str(exc) or exc.__class__.__name__
    return BatchError.unknown(message)


__all__ = [
    "BatchError",
    "DuplicateCheckFailure",
    "ErrorEntry",
    "ErrorKind",
    "as_batch_error",
    "header_retry_after",
    "utcnow",
]

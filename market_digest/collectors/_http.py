"""Shared httpx error translation for collectors."""

from __future__ import annotations

import httpx

from ..errors import BatchError


def translate_transport_error(exc: httpx.HTTPError, *, provider: str, timeout_seconds: float) -> BatchError:
    if isinstance(exc, httpx.TimeoutException):
        return BatchError.timeout(
            f"{provider} request timed out after {timeout_seconds}s",
            timeout_ms=int(timeout_seconds * 1000),
        )
    return BatchError.network(f"{provider} request failed: {exc}", provider=provider)


__all__ = ["translate_transport_error"]

"""Minimal async client for the Anthropic messages API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..config.models import ClaudeSettings
from ..errors import BatchError, header_retry_after

PROVIDER = "anthropic"


@dataclass(slots=True)
class ClaudeResponse:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class ClaudeClient:
    """POST single-turn prompts to ``/v1/messages`` and classify failures.

    429 becomes ``rate-limit`` (with the ``retry-after`` hint), 5xx and 529
    become ``ai-unavailable``, timeouts become ``ai-timeout``.
    """

    def __init__(
        self,
        settings: ClaudeSettings,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Anthropic API key is required")
        self.settings = settings
        self.api_key = api_key
        self._client = client
        self.logger = logger or structlog.get_logger("market_digest.ai.claude")

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.settings.api_version,
            "content-type": "application/json",
        }

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        operation: str = "completion",
    ) -> ClaudeResponse:
        body: dict[str, Any] = {
            "model": self.settings.model,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            body["system"] = system
        timeout = self.settings.timeout_seconds
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.settings.base_url, json=body, headers=self._headers(), timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(
                        self.settings.base_url, json=body, headers=self._headers()
                    )
        except httpx.TimeoutException as exc:
            raise BatchError.ai_timeout(
                f"Claude {operation} timed out after {timeout}s",
                timeout_ms=int(timeout * 1000),
                operation=operation,
            ) from exc
        except httpx.HTTPError as exc:
            raise BatchError.network(f"Claude request failed: {exc}", provider=PROVIDER) from exc

        if response.status_code >= 400:
            raise self._error_for(response, operation)

        try:
            data = response.json()
        except ValueError as exc:
            raise BatchError.upstream(
                "Claude returned a non-JSON body", provider=PROVIDER, status_code=response.status_code
            ) from exc
        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        self.logger.info(
            "claude_completed",
            operation=operation,
            model=data.get("model", self.settings.model),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )
        return ClaudeResponse(
            text=text,
            model=data.get("model", self.settings.model),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )

    def _error_for(self, response: httpx.Response, operation: str) -> BatchError:
        status = response.status_code
        detail = _error_message(response)
        self.logger.warning("claude_error", operation=operation, status_code=status, error=detail)
        if status == 429:
            return BatchError.rate_limit(
                f"Claude rate limited: {detail}",
                retry_after=header_retry_after(response.headers),
                provider=PROVIDER,
            )
        if status >= 500:
            return BatchError.ai_unavailable(
                f"Claude unavailable ({status}): {detail}", status_code=status, operation=operation
            )
        return BatchError.upstream(
            f"Claude rejected request ({status}): {detail}",
            provider=PROVIDER,
            status_code=status,
            retryable=False,
        )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.text[:200]


__all__ = ["ClaudeClient", "ClaudeResponse"]

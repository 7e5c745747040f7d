"""World business headlines from NewsAPI v2."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import httpx
import structlog

from ..config.models import NewsApiSettings
from ..engine.usage import RequestUsage, is_near_limit, record_request
from ..errors import BatchError, header_retry_after, utcnow
from ..jobs.results import Article
from ._http import translate_transport_error

PROVIDER = "newsapi"


class NewsApiFetcher:
    """Fetch ``top-headlines`` for one category.

    ``usage`` is the request budget for the current day. It is updated after
    every request and can be read back by the caller once the job is done.
    """

    def __init__(
        self,
        settings: NewsApiSettings,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        usage: RequestUsage | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("NewsAPI key is required")
        self.settings = settings
        self.api_key = api_key
        self._client = client
        self.usage = usage or RequestUsage()
        self._clock = clock
        self.logger = logger or structlog.get_logger("market_digest.collectors.newsapi")

    def build_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"pageSize": self.settings.page_size}
        if self.settings.category:
            params["category"] = self.settings.category
        if self.settings.country:
            params["country"] = self.settings.country
        return params

    async def fetch(self) -> list[Article]:
        url = f"{self.settings.base_url.rstrip('/')}/top-headlines"
        headers = {"X-Api-Key": self.api_key}
        try:
            if self._client is not None:
                response = await self._client.get(
                    url,
                    params=self.build_params(),
                    headers=headers,
                    timeout=self.settings.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                    response = await client.get(url, params=self.build_params(), headers=headers)
        except httpx.HTTPError as exc:
            raise translate_transport_error(
                exc, provider=PROVIDER, timeout_seconds=self.settings.timeout_seconds
            ) from exc

        self.usage = record_request(self.usage, self._clock())
        if is_near_limit(self.usage, self.settings.daily_request_limit):
            self.logger.warning(
                "newsapi_near_daily_limit",
                requests=self.usage.count,
                limit=self.settings.daily_request_limit,
            )

        payload = _json_or_empty(response)
        if response.status_code >= 400 or payload.get("status") == "error":
            raise self._error_for(response, payload)

        articles = [self._to_article(item) for item in payload.get("articles") or []]
        self.logger.info("newsapi_fetched", articles=len(articles))
        return articles

    def _error_for(self, response: httpx.Response, payload: dict[str, Any]) -> BatchError:
        code = payload.get("code")
        message = payload.get("message") or f"NewsAPI returned HTTP {response.status_code}"
        self.logger.error(
            "newsapi_error", status_code=response.status_code, code=code, message=message
        )
        if response.status_code == 429 or code == "rateLimited":
            return BatchError.rate_limit(
                message,
                retry_after=header_retry_after(response.headers),
                provider=PROVIDER,
            )
        return BatchError.upstream(
            message,
            provider=PROVIDER,
            status_code=response.status_code,
            retryable=response.status_code >= 500,
        )

    @staticmethod
    def _to_article(item: dict[str, Any]) -> Article:
        source = item.get("source") or {}
        return Article(
            title=item.get("title") or "",
            description=item.get("description") or "",
            content=item.get("content") or "",
            source=source.get("name") or "",
            url=item.get("url"),
            published_at=item.get("publishedAt"),
        )


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


__all__ = ["NewsApiFetcher"]

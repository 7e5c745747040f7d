"""Japanese market headlines from the Google News RSS search feed."""

from __future__ import annotations

from typing import Any

import feedparser
import httpx
import structlog

from ..config.models import GoogleNewsSettings
from ..errors import BatchError, header_retry_after
from ..jobs.results import Article
from ._http import translate_transport_error

PROVIDER = "google-news-rss"


class GoogleNewsRssFetcher:
    """Download the RSS search feed with httpx and parse it with feedparser."""

    def __init__(
        self,
        settings: GoogleNewsSettings,
        *,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self._client = client
        self.logger = logger or structlog.get_logger("market_digest.collectors.google_rss")

    def build_params(self) -> dict[str, str]:
        lang = self.settings.language
        region = self.settings.region
        return {
            "q": self.settings.query,
            "hl": lang,
            "gl": region,
            "ceid": f"{region}:{lang}",
        }

    async def fetch(self) -> list[Article]:
        try:
            if self._client is not None:
                response = await self._client.get(
                    self.settings.base_url,
                    params=self.build_params(),
                    timeout=self.settings.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.timeout_seconds, follow_redirects=True
                ) as client:
                    response = await client.get(self.settings.base_url, params=self.build_params())
        except httpx.HTTPError as exc:
            raise translate_transport_error(
                exc, provider=PROVIDER, timeout_seconds=self.settings.timeout_seconds
            ) from exc

        if response.status_code == 429:
            raise BatchError.rate_limit(
                "Google News RSS rate limited",
                retry_after=header_retry_after(response.headers),
                provider=PROVIDER,
            )
        if response.status_code >= 400:
            raise BatchError.upstream(
                f"Google News RSS returned HTTP {response.status_code}",
                provider=PROVIDER,
                status_code=response.status_code,
                retryable=response.status_code >= 500,
            )

        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries:
            raise BatchError.upstream(
                f"Malformed RSS feed: {getattr(feed, 'bozo_exception', 'unknown error')}",
                provider=PROVIDER,
                status_code=response.status_code,
            )
        if feed.bozo:
            self.logger.warning(
                "rss_parse_warning", error=str(getattr(feed, "bozo_exception", ""))
            )

        articles = [
            self._to_article(entry) for entry in feed.entries[: self.settings.max_items]
        ]
        self.logger.info("google_rss_fetched", articles=len(articles))
        return articles

    @staticmethod
    def _to_article(entry: Any) -> Article:
        source = entry.get("source") or {}
        return Article(
            title=entry.get("title") or "",
            description=entry.get("summary") or entry.get("description") or "",
            content="",
            source=source.get("title") or "Google News",
            url=entry.get("link"),
            published_at=entry.get("published"),
        )


__all__ = ["GoogleNewsRssFetcher"]

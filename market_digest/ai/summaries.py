"""News summarisation on top of the Claude client."""

from __future__ import annotations

from typing import Sequence

import structlog

from ..engine.rate_limit import RateLimitExecutor
from ..errors import BatchError
from ..jobs.results import Article, Summary
from .claude import ClaudeClient, PROVIDER

_SYSTEM_PROMPT = (
    "You write concise Japanese market briefings for retail investors. "
    "Answer in Japanese plain text without headings."
)


def build_summary_prompt(articles: Sequence[Article], language: str) -> str:
    origin = "English-language" if language == "en" else "Japanese-language"
    lines = [f"Summarise the following {origin} business headlines in about 2000 characters."]
    for number, article in enumerate(articles, start=1):
        lines.append(f"{number}. {article.title}")
        if article.description:
            lines.append(f"   {article.description}")
        if article.source:
            lines.append(f"   ({article.source})")
    return "\n".join(lines)


class ClaudeNewsSummarizer:
    """Summarise a batch of articles, retrying rate-limited calls."""

    def __init__(
        self,
        client: ClaudeClient,
        rate_limiter: RateLimitExecutor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.rate_limiter = rate_limiter or RateLimitExecutor()
        self.logger = logger or structlog.get_logger("market_digest.ai.summaries")

    async def summarize(self, articles: Sequence[Article], language: str) -> Summary:
        prompt = build_summary_prompt(articles, language)

        async def _call():
            return await self.client.complete(
                prompt, system=_SYSTEM_PROMPT, operation=f"news-summary-{language}"
            )

        response = await self.rate_limiter.execute(_call)
        text = response.text.strip()
        if not text:
            raise BatchError.upstream(
                "Claude returned an empty summary", provider=PROVIDER, retryable=True
            )
        self.logger.info("news_summarized", language=language, characters=len(text))
        return Summary(text=text, character_count=len(text))


__all__ = ["ClaudeNewsSummarizer", "build_summary_prompt"]

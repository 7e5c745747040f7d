from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from market_digest.ai import ClaudeClient, ClaudeNewsSummarizer, ClaudeTermGenerator
from market_digest.ai.terms import build_term_prompt, parse_term
from market_digest.config import ClaudeSettings
from market_digest.engine.rate_limit import RateLimitConfig, RateLimitExecutor
from market_digest.errors import BatchError, ErrorKind
from market_digest.jobs.results import Article


def _reply(text: str) -> dict:
    return {
        "model": "claude-test",
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": 10, "output_tokens": 20},
    }


def _client(handler) -> ClaudeClient:
    transport = httpx.MockTransport(handler)
    return ClaudeClient(ClaudeSettings(), "sk-test", client=httpx.AsyncClient(transport=transport))


def test_complete_sends_messages_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_reply("こんにちは"))

    response = asyncio.run(_client(handler).complete("hello", system="be brief"))
    assert response.text == "こんにちは"
    assert response.output_tokens == 20
    request = seen[0]
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["messages"] == [{"role": "user", "content": "hello"}]
    assert body["system"] == "be brief"


@pytest.mark.parametrize(
    ("status", "kind", "retryable"),
    [
        (429, ErrorKind.RATE_LIMIT, True),
        (529, ErrorKind.AI_UNAVAILABLE, True),
        (500, ErrorKind.AI_UNAVAILABLE, True),
        (400, ErrorKind.UPSTREAM_API, False),
    ],
)
def test_status_mapping(status: int, kind: ErrorKind, retryable: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"message": "nope"}}, headers={"retry-after": "4"})

    with pytest.raises(BatchError) as excinfo:
        asyncio.run(_client(handler).complete("hi"))
    assert excinfo.value.kind is kind
    assert excinfo.value.retryable is retryable


def test_timeout_maps_to_ai_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(BatchError) as excinfo:
        asyncio.run(_client(handler).complete("hi", operation="news-summary-en"))
    assert excinfo.value.kind is ErrorKind.AI_TIMEOUT
    assert excinfo.value.timeout_ms == 120000


def test_parse_term_accepts_fenced_json() -> None:
    payload = parse_term('```json\n{"name": " PER ", "description": "株価収益率", "difficulty": "beginner"}\n```')
    assert payload.name == "PER"
    with pytest.raises(BatchError):
        parse_term("not json")
    with pytest.raises(BatchError):
        parse_term('{"name": "", "description": "x", "difficulty": "beginner"}')


def test_term_prompt_lists_exclusions() -> None:
    assert "PER, PBR" in build_term_prompt("beginner", ["PER", "PBR"])
    assert "Do not use" not in build_term_prompt("beginner", [])


def test_term_generator_keeps_requested_difficulty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json=_reply('{"name": "VIX", "description": "恐怖指数", "difficulty": "advanced"}')
        )

    generator = ClaudeTermGenerator(_client(handler))
    term = asyncio.run(generator.generate("intermediate", []))
    assert term.name == "VIX"
    assert term.difficulty == "intermediate"


def test_summarizer_retries_rate_limits(sleep_recorder) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(429, headers={"retry-after": "3"}, json={})
        return httpx.Response(200, json=_reply("  市場は落ち着いた動き。  "))

    limiter = RateLimitExecutor(RateLimitConfig(max_retries=2), sleep=sleep_recorder)
    summarizer = ClaudeNewsSummarizer(_client(handler), limiter)
    summary = asyncio.run(summarizer.summarize([Article(title="Fed holds rates")], "en"))
    assert summary.text == "市場は落ち着いた動き。"
    assert summary.character_count == len("市場は落ち着いた動き。")
    assert sleep_recorder.calls == [3]


def test_summarizer_rejects_empty_reply() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_reply("   "))

    with pytest.raises(BatchError) as excinfo:
        asyncio.run(ClaudeNewsSummarizer(_client(handler)).summarize([Article(title="x")], "ja"))
    assert excinfo.value.kind is ErrorKind.UPSTREAM_API

"""Investment-term generation on top of the Claude client."""

from __future__ import annotations

import json
import re
from typing import Literal, Sequence

import structlog
from pydantic import BaseModel, ValidationError, field_validator

from ..engine.rate_limit import RateLimitExecutor
from ..errors import BatchError
from ..jobs.results import GeneratedTerm
from .claude import ClaudeClient, PROVIDER

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

_SYSTEM_PROMPT = (
    "You explain investment terminology to Japanese readers. "
    'Reply with JSON only: {"name": ..., "description": ..., "difficulty": ...}.'
)


class TermPayload(BaseModel):
    name: str
    description: str
    difficulty: Literal["beginner", "intermediate", "advanced"]

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value


def build_term_prompt(difficulty: str, exclude: Sequence[str]) -> str:
    prompt = f"Pick one {difficulty} investment term and explain it in about 500 characters."
    if exclude:
        prompt += "\nDo not use any of these terms: " + ", ".join(exclude)
    return prompt


def parse_term(text: str) -> TermPayload:
    """Extract the JSON object from a reply, tolerating a fenced code block."""

    raw = text.strip()
    match = _CODE_BLOCK.search(raw)
    if match:
        raw = match.group(1).strip()
    try:
        return TermPayload.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise BatchError.upstream(
            f"Unparseable term response: {exc}", provider=PROVIDER, retryable=True
        ) from exc


class ClaudeTermGenerator:
    """Generate a single term for a difficulty, avoiding excluded names."""

    def __init__(
        self,
        client: ClaudeClient,
        rate_limiter: RateLimitExecutor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client
        self.rate_limiter = rate_limiter or RateLimitExecutor()
        self.logger = logger or structlog.get_logger("market_digest.ai.terms")

    async def generate(self, difficulty: str, exclude: Sequence[str]) -> GeneratedTerm:
        prompt = build_term_prompt(difficulty, exclude)

        async def _call():
            return await self.client.complete(
                prompt, system=_SYSTEM_PROMPT, operation=f"term-generation-{difficulty}"
            )

        response = await self.rate_limiter.execute(_call)
        payload = parse_term(response.text)
        self.logger.info("term_generated", difficulty=difficulty, name=payload.name)
        return GeneratedTerm(
            name=payload.name, description=payload.description, difficulty=difficulty
        )


__all__ = ["ClaudeTermGenerator", "TermPayload", "build_term_prompt", "parse_term"]

"""Records flowing through the news and terms jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..errors import ErrorEntry, utcnow

WORLD_NEWS_TITLE = "世界の投資・金融ニュース"
JAPAN_NEWS_TITLE = "日本の投資・金融ニュース"

DIFFICULTIES = ("beginner", "intermediate", "advanced")

JST = timezone(timedelta(hours=9), "JST")


def jst_date(now: datetime | None = None) -> str:
    """Return the calendar day in Japan for ``now`` as ``YYYY-MM-DD``."""

    moment = now or utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(JST).date().isoformat()


@dataclass(slots=True)
class Article:
    title: str
    description: str = ""
    content: str = ""
    source: str = ""
    url: str | None = None
    published_at: str | None = None


@dataclass(slots=True)
class Summary:
    text: str
    character_count: int = 0

    def __post_init__(self) -> None:
        if not self.character_count:
            self.character_count = len(self.text)


@dataclass(slots=True)
class NewsSummary:
    title: str
    summary: str
    character_count: int
    updated_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "character_count": self.character_count,
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class NewsRecord:
    """Row upserted once per calendar day."""

    date: str
    world_news_title: str = ""
    world_news_summary: str = ""
    japan_news_title: str = ""
    japan_news_summary: str = ""
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class GeneratedTerm:
    name: str
    description: str
    difficulty: str

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "difficulty": self.difficulty}


@dataclass(slots=True)
class TermRecord:
    date: str
    name: str
    description: str
    difficulty: str


@dataclass(slots=True)
class TermHistoryRecord:
    term_name: str
    delivered_at: datetime
    difficulty: str


@dataclass(slots=True)
class NewsPayload:
    world: NewsSummary | None = None
    japan: NewsSummary | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "world": self.world.as_dict() if self.world else None,
            "japan": self.japan.as_dict() if self.japan else None,
        }


@dataclass(slots=True)
class JobResult:
    date: str
    success: bool = False
    partial_success: bool = False
    persisted: bool = False
    metadata_updated: bool = False
    duration_ms: int = 0
    errors: list[ErrorEntry] = field(default_factory=list)

    @property
    def is_full_failure(self) -> bool:
        return not self.success and not self.partial_success

    def add_error(self, entry: ErrorEntry) -> None:
        self.errors.append(entry)

    def base_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "success": self.success,
            "partial_success": self.partial_success,
            "persisted": self.persisted,
            "metadata_updated": self.metadata_updated,
            "duration_ms": self.duration_ms,
            "errors": [entry.as_dict() for entry in self.errors],
        }


@dataclass(slots=True)
class NewsJobResult(JobResult):
    payload: NewsPayload | None = None

    def as_dict(self) -> dict[str, Any]:
        data = self.base_dict()
        data["payload"] = self.payload.as_dict() if self.payload else None
        return data


@dataclass(slots=True)
class TermsJobResult(JobResult):
    payload: list[GeneratedTerm] | None = None
    history_updated: bool = False
    regenerations: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        data = self.base_dict()
        data["payload"] = [term.as_dict() for term in self.payload] if self.payload else None
        data["history_updated"] = self.history_updated
        data["regenerations"] = dict(self.regenerations)
        return data


__all__ = [
    "Article",
    "DIFFICULTIES",
    "GeneratedTerm",
    "JAPAN_NEWS_TITLE",
    "JST",
    "JobResult",
    "NewsJobResult",
    "NewsPayload",
    "NewsRecord",
    "NewsSummary",
    "Summary",
    "TermHistoryRecord",
    "TermRecord",
    "TermsJobResult",
    "WORLD_NEWS_TITLE",
    "jst_date",
]

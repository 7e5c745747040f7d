from __future__ import annotations

import asyncio

import pytest
from conftest import FakeGenerator

from market_digest.engine.dedup import DuplicateIndex
from market_digest.engine.regenerator import MAX_REGENERATIONS_EXCEEDED, TermRegenerator
from market_digest.errors import BatchError, DuplicateCheckFailure, ErrorKind


def test_accepts_after_regenerating_duplicates() -> None:
    generator = FakeGenerator({"beginner": ["PER", "PBR", "ROE"]})
    index = DuplicateIndex(["PER", "PBR"])
    outcome = asyncio.run(TermRegenerator(generator, index).generate_unique("beginner"))
    assert outcome.success
    assert outcome.item.name == "ROE"
    assert outcome.attempts == 3
    assert outcome.regenerated_count == 2
    assert [entry.rejected_name for entry in outcome.history] == ["PER", "PBR"]
    assert generator.calls[-1] == ("beginner", ["PER", "PBR"])


def test_gives_up_after_max_regenerations() -> None:
    generator = FakeGenerator({"advanced": ["PER"]})
    index = DuplicateIndex(["PER"])
    outcome = asyncio.run(
        TermRegenerator(generator, index, max_regenerations=5).generate_unique("advanced")
    )
    assert not outcome.success
    assert outcome.attempts == 6
    assert outcome.regenerated_count == 5
    assert outcome.error == MAX_REGENERATIONS_EXCEEDED
    assert len(generator.calls) == 6


def test_exclusions_are_passed_through() -> None:
    generator = FakeGenerator({"intermediate": ["VIX"]})
    index = DuplicateIndex()
    asyncio.run(
        TermRegenerator(generator, index).generate_unique("intermediate", exclude=["PER", "PBR"])
    )
    assert generator.calls == [("intermediate", ["PER", "PBR"])]


def test_generation_error_aborts_with_duplicate_check_error() -> None:
    generator = FakeGenerator({"beginner": ["PER", ConnectionError("down")]})
    index = DuplicateIndex(["PER"])
    with pytest.raises(BatchError) as excinfo:
        asyncio.run(TermRegenerator(generator, index).generate_unique("beginner"))
    error = excinfo.value
    assert error.kind is ErrorKind.DUPLICATE_CHECK
    assert error.sub_kind is DuplicateCheckFailure.REGENERATION_FAILED
    assert error.context["attempts"] == 2
    assert error.context["regenerated_count"] == 1
    assert error.context["history"] == ["PER", "unknown"]
    assert isinstance(error.__cause__, ConnectionError)


def test_unique_on_last_allowed_attempt() -> None:
    generator = FakeGenerator({"beginner": ["PER"] * 5 + ["ROE"]})
    index = DuplicateIndex(["PER"])
    outcome = asyncio.run(
        TermRegenerator(generator, index, max_regenerations=5).generate_unique("beginner")
    )
    assert outcome.success
    assert outcome.item.name == "ROE"
    assert outcome.attempts == 6
    assert outcome.regenerated_count == 5

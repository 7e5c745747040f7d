from __future__ import annotations

import asyncio

from market_digest.engine.fanout import (
    FULL_FAILURE,
    FULL_SUCCESS,
    PARTIAL,
    classify_outcome,
    gather_sources,
)
from market_digest.errors import BatchError


def test_classify_outcome_labels() -> None:
    names = ["world", "japan"]
    assert classify_outcome(names, ["world", "japan"]) == FULL_SUCCESS
    assert classify_outcome(names, ["world"]) == "WORLD_ONLY"
    assert classify_outcome(names, ["japan"]) == "JAPAN_ONLY"
    assert classify_outcome(names, []) == FULL_FAILURE
    assert classify_outcome(["a", "b", "c"], ["a", "b"]) == PARTIAL


def test_one_failure_does_not_cancel_the_other() -> None:
    finished: list[str] = []

    async def world() -> list[str]:
        await asyncio.sleep(0.01)
        finished.append("world")
        return ["w"]

    async def japan() -> list[str]:
        raise BatchError.network("offline", provider="rss")

    report = asyncio.run(gather_sources({"world": world, "japan": japan}))
    assert finished == ["world"]
    assert report.succeeded == ["world"]
    assert report.failed == ["japan"]
    assert report.classification == "WORLD_ONLY"
    assert report.should_save
    assert not report.should_retry_whole_job
    assert report.value("world") == ["w"]
    entries = report.error_entries()
    assert [(e.kind, e.source) for e in entries] == [("network", "japan")]


def test_full_failure_requests_whole_job_retry() -> None:
    async def down() -> None:
        raise ConnectionError("down")

    report = asyncio.run(gather_sources({"world": down, "japan": down}))
    assert report.classification == FULL_FAILURE
    assert not report.should_save
    assert report.should_retry_whole_job

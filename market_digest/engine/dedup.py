"""In-memory duplicate index used to keep delivered terms unique."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .normalizer import calculate_similarity, normalize


class DuplicateCheckMode(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    SIMILARITY = "similarity"


@dataclass(slots=True)
class DuplicateCheckResult:
    candidate: str
    is_duplicate: bool
    matched_item: str | None = None
    match_kind: str | None = None
    similarity_score: float | None = None


class DuplicateIndex:
    """Normalised lookup over a snapshot of previously delivered names.

    The index is built once per job invocation from the history window and
    grows only through :meth:`add`. Entries keep insertion order, which
    decides ties in similarity mode.
    """

    def __init__(
        self,
        items: Iterable[str] = (),
        mode: DuplicateCheckMode | str = DuplicateCheckMode.EXACT,
        similarity_threshold: float = 0.7,
    ) -> None:
        self.mode = DuplicateCheckMode(mode)
        self.similarity_threshold = similarity_threshold
        self._items: list[str] = []
        self._normalized: dict[str, str] = {}
        self._total_checks = 0
        self._duplicates_found = 0
        for item in items:
            self.add(item)

    def check(
        self, candidate: str, mode: DuplicateCheckMode | str | None = None
    ) -> DuplicateCheckResult:
        active = DuplicateCheckMode(mode) if mode is not None else self.mode
        self._total_checks += 1
        key = normalize(candidate)
        if active is DuplicateCheckMode.PARTIAL:
            result = self._check_partial(candidate, key)
        elif active is DuplicateCheckMode.SIMILARITY:
            result = self._check_similarity(candidate, key)
        else:
            result = self._check_exact(candidate, key)
        if result.is_duplicate:
            self._duplicates_found += 1
        return result

    def _check_exact(self, candidate: str, key: str) -> DuplicateCheckResult:
        matched = self._normalized.get(key)
        if matched is None:
            return DuplicateCheckResult(candidate=candidate, is_duplicate=False)
        return DuplicateCheckResult(
            candidate=candidate, is_duplicate=True, matched_item=matched, match_kind="exact"
        )

    def _check_partial(self, candidate: str, key: str) -> DuplicateCheckResult:
        matched = self._normalized.get(key)
        if matched is None and key:
            for normalized, original in self._normalized.items():
                if normalized and (normalized in key or key in normalized):
                    matched = original
                    break
        if matched is None:
            return DuplicateCheckResult(candidate=candidate, is_duplicate=False)
        return DuplicateCheckResult(
            candidate=candidate, is_duplicate=True, matched_item=matched, match_kind="partial"
        )

    def _check_similarity(self, candidate: str, key: str) -> DuplicateCheckResult:
        matched = self._normalized.get(key)
        if matched is not None:
            return DuplicateCheckResult(
                candidate=candidate,
                is_duplicate=True,
                matched_item=matched,
                match_kind="similarity",
                similarity_score=1.0,
            )
        best_item: str | None = None
        best_score = 0.0
        for normalized, original in self._normalized.items():
            score = calculate_similarity(key, normalized)
            if score >= self.similarity_threshold and (best_item is None or score > best_score):
                best_item = original
                best_score = score
        if best_item is None:
            return DuplicateCheckResult(candidate=candidate, is_duplicate=False)
        return DuplicateCheckResult(
            candidate=candidate,
            is_duplicate=True,
            matched_item=best_item,
            match_kind="similarity",
            similarity_score=best_score,
        )

    def check_many(self, candidates: Iterable[str]) -> list[DuplicateCheckResult]:
        return [self.check(candidate) for candidate in candidates]

    def filter_duplicates(self, candidates: Iterable[str]) -> list[str]:
        return [candidate for candidate in candidates if self.check(candidate).is_duplicate]

    def filter_non_duplicates(self, candidates: Iterable[str]) -> list[str]:
        return [candidate for candidate in candidates if not self.check(candidate).is_duplicate]

    def add(self, item: str) -> None:
        self._items.append(item)
        # the first spelling delivered stays the reported match
        self._normalized.setdefault(normalize(item), item)

    def items(self) -> list[str]:
        return list(self._items)

    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return self.size()

    def stats(self) -> dict[str, int]:
        return {"total_checks": self._total_checks, "duplicates_found": self._duplicates_found}

    def reset_stats(self) -> None:
        self._total_checks = 0
        self._duplicates_found = 0


__all__ = ["DuplicateCheckMode", "DuplicateCheckResult", "DuplicateIndex"]

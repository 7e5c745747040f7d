from __future__ import annotations

from market_digest.engine.dedup import DuplicateCheckMode, DuplicateIndex
from market_digest.engine.normalizer import normalize


def test_exact_mode_matches_normalised_names() -> None:
    index = DuplicateIndex(["PER", "配当利回り"])
    result = index.check(" ｐｅｒ ")
    assert result.is_duplicate
    assert result.matched_item == "PER"
    assert result.match_kind == "exact"
    assert not index.check("PBR").is_duplicate


def test_partial_mode_matches_substrings_both_ways() -> None:
    index = DuplicateIndex(["株価収益率"], mode=DuplicateCheckMode.PARTIAL)
    assert index.check("株価").is_duplicate
    assert index.check("予想株価収益率").is_duplicate
    assert not index.check("自己資本比率").is_duplicate


def test_partial_mode_ignores_empty_candidate() -> None:
    index = DuplicateIndex(["ETF"], mode="partial")
    assert not index.check("   ").is_duplicate


def test_similarity_mode_reports_best_score() -> None:
    index = DuplicateIndex(["dividend", "leverage"], mode="similarity", similarity_threshold=0.7)
    result = index.check("dividends")
    assert result.is_duplicate
    assert result.matched_item == "dividend"
    assert result.similarity_score is not None and result.similarity_score >= 0.7
    assert not index.check("hedge").is_duplicate


def test_similarity_tie_keeps_first_entry() -> None:
    index = DuplicateIndex(["abcx", "abcy"], mode="similarity", similarity_threshold=0.7)
    result = index.check("abcz")
    assert result.matched_item == "abcx"


def test_first_spelling_of_a_name_is_reported() -> None:
    index = DuplicateIndex(["PER", "ＰＥＲ"])
    index.add(" per ")
    assert index.size() == 3
    assert index.check("Per").matched_item == "PER"


def test_mode_override_per_call() -> None:
    index = DuplicateIndex(["bond yield"])
    assert not index.check("bond").is_duplicate
    assert index.check("bond", mode=DuplicateCheckMode.PARTIAL).is_duplicate


def test_batch_helpers_and_stats() -> None:
    index = DuplicateIndex(["PER"])
    assert index.filter_duplicates(["PER", "PBR", "per"]) == ["PER", "per"]
    assert index.filter_non_duplicates(["PER", "PBR"]) == ["PBR"]
    assert [r.is_duplicate for r in index.check_many(["PBR", "PER"])] == [False, True]
    assert index.stats() == {"total_checks": 7, "duplicates_found": 4}
    index.reset_stats()
    assert index.stats() == {"total_checks": 0, "duplicates_found": 0}


def test_add_grows_index() -> None:
    index = DuplicateIndex()
    assert len(index) == 0
    index.add("ROE")
    assert index.size() == 1
    assert index.items() == ["ROE"]
    assert index.check("roe").is_duplicate


def test_exact_mode_agrees_with_normalised_membership() -> None:
    history = ["PER", " ＲＯＥ ", "配当利回り"]
    index = DuplicateIndex(history)
    normalised = {normalize(item) for item in history}
    for candidate in ["per", "roe", "ＰＥＲ ", "PBR", "配当利回り", "配当"]:
        assert index.check(candidate).is_duplicate == (normalize(candidate) in normalised)


def test_empty_index_never_reports_duplicates() -> None:
    for mode in DuplicateCheckMode:
        assert not DuplicateIndex(mode=mode).check("anything").is_duplicate

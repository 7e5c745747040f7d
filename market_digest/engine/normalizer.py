"""Term-name normalisation and string similarity helpers."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

_FULLWIDTH_OFFSET = 0xFEE0
_FULLWIDTH_RANGES = (
    (0xFF21, 0xFF3A),  # Ａ-Ｚ
    (0xFF41, 0xFF5A),  # ａ-ｚ
    (0xFF10, 0xFF19),  # ０-９
)
_FULLWIDTH_TABLE = {
    code: code - _FULLWIDTH_OFFSET
    for start, end in _FULLWIDTH_RANGES
    for code in range(start, end + 1)
}


def normalize(value: str) -> str:
    """Trim, fold full-width Latin letters and digits to ASCII, lower-case.

    Internal whitespace is preserved and other full-width characters (kana,
    kanji, punctuation) are left untouched, so ``normalize`` is idempotent.
    """

    return value.strip().translate(_FULLWIDTH_TABLE).lower()


def levenshtein_distance(left: str, right: str) -> int:
    return Levenshtein.distance(left, right)


def calculate_similarity(left: str, right: str) -> float:
    """Return ``1 - distance / max_len`` over the normalised strings."""

    a = normalize(left)
    b = normalize(right)
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    distance = levenshtein_distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


__all__ = ["calculate_similarity", "levenshtein_distance", "normalize"]

"""
Payee string similarity (Dice coefficient over character bigrams).
"""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass
class BestMatch:
    """Best scoring candidate; target is None when there were no candidates."""

    target: str | None = None
    rating: float = 0.0


def _bigrams(value: str) -> set[str]:
    return {value[i : i + 2] for i in range(len(value) - 1)}


def similarity(a: str | None, b: str | None) -> float:
    """
    Compute the similarity of two strings in [0, 1].

    Score = 2 * |shared bigrams| / (|bigrams a| + |bigrams b|), case-insensitive.
    Strings shorter than 2 characters have no bigrams and score 0 unless equal.
    """
    if not a or not b:
        return 0.0

    a = a.lower()
    b = b.lower()

    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    a_bigrams = _bigrams(a)
    b_bigrams = _bigrams(b)
    shared = a_bigrams & b_bigrams
    return (2 * len(shared)) / (len(a_bigrams) + len(b_bigrams))


def find_best_match(target: str, candidates: Iterable[str]) -> BestMatch:
    """Return the highest scoring candidate; the first one wins ties."""
    best = BestMatch()
    for candidate in candidates:
        rating = similarity(target, candidate)
        if rating > best.rating:
            best = BestMatch(target=candidate, rating=rating)
    return best

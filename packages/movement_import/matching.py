"""Pluggable matching strategies for catalog lookups.

Each strategy receives a normalized lookup key and a field index (normalized
text → identifier, in insertion order) and returns an identifier or ``None``.
The normalizer runs them in order: :class:`ExactMatch`,
:class:`SubstringMatch`, :class:`SimilarityMatch`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

SIMILARITY_THRESHOLD = 0.6
# Keys (and inputs) of this length or shorter never take part in similarity.
SIMILARITY_MIN_LENGTH = 3


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert/delete/substitute, unit costs)."""

    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``(len(longer) - distance) / len(longer)``; two empty strings score 1.0."""

    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein(a, b)) / longer


class MatchStrategy(Protocol):
    name: str

    def match(self, key: str, index: Mapping[str, str]) -> str | None: ...


@dataclass(frozen=True, slots=True)
class ExactMatch:
    name: str = "exact"

    def match(self, key: str, index: Mapping[str, str]) -> str | None:
        return index.get(key)


@dataclass(frozen=True, slots=True)
class SubstringMatch:
    """First index key (in insertion order) containing, or contained in, ``key``."""

    name: str = "substring"

    def match(self, key: str, index: Mapping[str, str]) -> str | None:
        if not key:
            return None
        for candidate, ident in index.items():
            if candidate and (candidate in key or key in candidate):
                return ident
        return None


@dataclass(frozen=True, slots=True)
class SimilarityMatch:
    """Best edit-distance similarity strictly above ``threshold``.

    Ties on score go to the shortest key, then the lexicographically smallest.
    """

    name: str = "similarity"
    threshold: float = SIMILARITY_THRESHOLD
    min_length: int = SIMILARITY_MIN_LENGTH

    def best(self, key: str, index: Mapping[str, str]) -> tuple[str, float] | None:
        if len(key) <= self.min_length:
            return None
        ranked: list[tuple[float, int, str]] = []
        for candidate in index:
            if len(candidate) <= self.min_length:
                continue
            score = similarity(key, candidate)
            if score > self.threshold:
                ranked.append((-score, len(candidate), candidate))
        if not ranked:
            return None
        neg_score, _, candidate = min(ranked)
        return candidate, -neg_score

    def match(self, key: str, index: Mapping[str, str]) -> str | None:
        hit = self.best(key, index)
        return index[hit[0]] if hit is not None else None


DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (
    ExactMatch(),
    SubstringMatch(),
    SimilarityMatch(),
)


__all__ = [
    "DEFAULT_STRATEGIES",
    "ExactMatch",
    "MatchStrategy",
    "SIMILARITY_MIN_LENGTH",
    "SIMILARITY_THRESHOLD",
    "SimilarityMatch",
    "SubstringMatch",
    "levenshtein",
    "similarity",
]

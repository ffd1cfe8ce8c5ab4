"""Fuzzy matching for typo-tolerant search.

This module provides edit distance calculation and spelling correction for
query terms that have no exact entry in the index.

Every correction request compares the query term against the whole
vocabulary, so cost grows as O(V * len(term) * len(candidate)). That is a
known scaling limit for very large vocabularies; callers bound it with a
deadline instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import time


DEFAULT_MAX_DISTANCE = 2
DEFAULT_MAX_CORRECTIONS = 5

# Deadline is only checked every N candidates
_DEADLINE_CHECK_INTERVAL = 256


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Full dynamic programming with unit costs for insertion, deletion and
    substitution. Only two rows are kept in memory.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("pian", "pain")
        2
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    # Use shorter string as columns for space efficiency
    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)
    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


@dataclass(frozen=True)
class CorrectionResult:
    """Spelling suggestions for one query term."""

    term: str
    suggestions: tuple[tuple[str, int], ...]
    truncated: bool = False

    @property
    def terms(self) -> list[str]:
        return [suggestion for suggestion, _ in self.suggestions]


def find_corrections(
    query_term: str,
    vocabulary: Iterable[str],
    *,
    max_distance: int = DEFAULT_MAX_DISTANCE,
    limit: int = DEFAULT_MAX_CORRECTIONS,
    deadline: float | None = None,
) -> CorrectionResult:
    """Find vocabulary terms within ``max_distance`` edits of ``query_term``.

    Args:
        query_term: The (possibly misspelled) term.
        vocabulary: Candidate terms, typically every term in the index.
        max_distance: Largest accepted edit distance (inclusive).
        limit: Maximum number of suggestions returned.
        deadline: Optional ``time.monotonic()`` value after which the scan
            stops and returns the candidates found so far.

    Returns:
        CorrectionResult whose suggestions are ``(term, distance)`` pairs with
        ``0 < distance <= max_distance``, sorted by ascending distance. Ties
        keep vocabulary order. Identical terms are never suggested.
    """
    query_lower = query_term.lower()
    if not query_lower or limit <= 0:
        return CorrectionResult(term=query_lower, suggestions=())

    matches: list[tuple[str, int]] = []
    truncated = False

    for scanned, candidate in enumerate(vocabulary):
        if deadline is not None and scanned % _DEADLINE_CHECK_INTERVAL == 0 and time.monotonic() > deadline:
            truncated = True
            break

        # Length difference is a lower bound on the distance
        if abs(len(query_lower) - len(candidate)) > max_distance:
            continue

        distance = levenshtein_distance(query_lower, candidate)
        if 0 < distance <= max_distance:
            matches.append((candidate, distance))

    # sort() is stable, so equal distances keep vocabulary order
    matches.sort(key=lambda match: match[1])

    return CorrectionResult(term=query_lower, suggestions=tuple(matches[:limit]), truncated=truncated)

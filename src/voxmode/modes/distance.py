#!/usr/bin/env python3
"""
Edit distance used to score keyphrases against transcripts.

Both functions compare Python strings item by item, i.e. by Unicode code
point. Command phrases are plain words, so this is equivalent to a byte-wise
comparison for the ASCII phrases users normally configure.
"""
from __future__ import annotations


def distance(a: str, b: str) -> int:
    """
    Levenshtein distance between ``a`` and ``b``.

    Insertions, deletions and substitutions each cost 1. Computed with the
    iterative dynamic-programming table, keeping only two rows alive.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            substitution = previous[j - 1] + (ca != cb)
            current[j] = min(previous[j] + 1, current[j - 1] + 1, substitution)
        previous = current
    return previous[-1]


def substring_distance(needle: str, haystack: str) -> int:
    """
    Minimum edit distance between ``needle`` and any substring of ``haystack``.

    The haystack base row is all zeros so the match may start anywhere, and
    the answer is the minimum over the final row so it may end anywhere.

    >>> substring_distance("day", "saturd by")
    2
    """
    if not needle:
        return 0

    previous = [0] * (len(haystack) + 1)
    for i, cn in enumerate(needle, start=1):
        current = [i] + [0] * len(haystack)
        for j, ch in enumerate(haystack, start=1):
            substitution = previous[j - 1] + (cn != ch)
            current[j] = min(previous[j] + 1, current[j - 1] + 1, substitution)
        previous = current
    return min(previous)

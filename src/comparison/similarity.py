"""Edit-distance similarity used for fuzzy transcript matching."""

from typing import List


def levenshtein_distance(a: str, b: str) -> int:
    """
    Classic dynamic-programming edit distance over code points.

    Insertion, deletion and substitution each cost 1. Uses two rows so
    memory stays proportional to the shorter string.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous: List[int] = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current

    return previous[len(b)]


def similarity(a: str, b: str) -> float:
    """Return ``1 - distance / max(len)``; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest

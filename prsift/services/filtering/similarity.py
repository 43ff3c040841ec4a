"""Edit-distance based string similarity."""

from Levenshtein import distance


def levenshtein_distance(a: str, b: str) -> int:
    """Return the minimum number of single-character insertions, deletions or substitutions turning a into b."""
    return distance(a, b)


def similarity_score(a: str, b: str) -> float:
    """Return similarity in [0, 1], where 1.0 means identical.

    Computed as 1 - distance / max(len(a), len(b)); two empty strings are
    identical.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - distance(a, b) / longest

"""Artist name normalization for folder/name comparison.

Hey future me - library folders rarely match the stored artist name byte for byte.
"Beatles, The", "The Beatles" and "The Beatles (UK)" all name the same artist, so
both sides are normalized before comparing and only real differences count.

Examples:
    >>> normalize_artist_name("The Beatles (UK)")
    'beatles'
    >>> normalize_artist_name("Beatles, The")
    'beatles'
    >>> normalize_artist_name("AC/DC")
    'acdc'
"""

import re

from rapidfuzz.distance import Levenshtein

_PAREN_SUFFIX = re.compile(r"\s*\(.*\)\s*$")
# \w also matches "_", which counts as punctuation here
_PUNCTUATION = re.compile(r"[^\w\s]|_")
_MULTI_SPACE = re.compile(r"\s+")


def normalize_artist_name(name: str) -> str:
    """Normalize an artist name for comparison.

    Lowercases, drops a trailing parenthetical, strips a leading "the " or a
    trailing ", the" (sort-name form), removes punctuation and collapses
    whitespace.
    """
    if not name:
        return ""

    normalized = name.strip().lower()
    normalized = _PAREN_SUFFIX.sub("", normalized)
    if normalized.startswith("the "):
        normalized = normalized[len("the ") :]
    if normalized.endswith(", the"):
        normalized = normalized[: -len(", the")]
    normalized = _PUNCTUATION.sub("", normalized)
    normalized = _MULTI_SPACE.sub(" ", normalized)
    return normalized.strip()


def name_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] based on normalized Levenshtein distance.

    1 - distance / max(len(a), len(b)); two empty strings are identical.
    """
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)

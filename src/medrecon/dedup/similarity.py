"""
String Similarity

Normalized Levenshtein similarity (1 - distance / longer length) on
case-folded, trimmed text.
"""

from rapidfuzz.distance import Levenshtein


def similarity_ratio(first: str | None, second: str | None) -> float:
    """Similarity in [0, 1]; 0 when either side is missing."""
    if not first or not second:
        return 0.0
    s1 = first.strip().lower()
    s2 = second.strip().lower()
    if s1 == s2:
        return 1.0
    return Levenshtein.normalized_similarity(s1, s2)


def is_placeholder_name(name: str | None) -> bool:
    """Fallback names like "Unknown Test" never take part in fuzzy matching."""
    if not name:
        return True
    lowered = name.strip().lower()
    return lowered == "unknown" or lowered.startswith("unknown ")

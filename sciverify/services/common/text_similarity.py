import re
from typing import Set

_NON_WORD_RE = re.compile(r"[^\w\s]")


def word_set(text: str) -> Set[str]:
    """Lowercased words longer than two characters, punctuation stripped."""
    cleaned = _NON_WORD_RE.sub("", (text or "").lower())
    return {word for word in cleaned.split() if len(word) > 2}


def jaccard_similarity(a: str, b: str) -> float:
    """
    Word-level Jaccard similarity between two strings.

    Two empty inputs are identical (1.0); one empty input shares nothing (0.0).
    """
    set_a = word_set(a)
    set_b = word_set(b)
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0

    intersection = len(set_a & set_b)
    union = len(set_a | set_b)
    return intersection / union if union else 0.0

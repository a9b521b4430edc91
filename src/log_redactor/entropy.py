"""
Shannon entropy scoring for log values.

High-entropy strings (API keys, session tokens, random secrets) look very
different from prose or identifiers when measured by the spread of their
character distribution.
"""

from __future__ import annotations

import math
from collections import Counter


def calculate_entropy(s: str) -> float:
    """
    Calculate Shannon entropy of a string.

    Higher entropy = more random = more likely to be a secret.
    Returns value between 0 and log2(number of distinct characters).
    For alphanumeric (62 chars), max is ~5.95 bits.

    Args:
        s: String to analyze

    Returns:
        Shannon entropy in bits per character
    """
    length = len(s)
    if length <= 1:
        return 0.0

    entropy = 0.0
    for count in Counter(s).values():
        p = count / length
        entropy -= p * math.log2(p)

    # A single repeated character yields -0.0
    return entropy if entropy > 0 else 0.0


class EntropyScorer:
    """
    Entropy calculator with a result cache.

    Log contexts often repeat the same values (ids, hosts, headers), so one
    scorer is created per redaction call and thrown away with it.
    """

    def __init__(self) -> None:
        self._cache: dict[str, float] = {}

    def score(self, s: str) -> float:
        cached = self._cache.get(s)
        if cached is None:
            cached = self._cache[s] = calculate_entropy(s)
        return cached

    def __len__(self) -> int:
        return len(self._cache)

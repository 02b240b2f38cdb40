"""
Wildcard matching of stat names against glob-like patterns.

Only ``*`` (any run of characters, including none) and ``?`` (exactly one
character) are special; everything else matches literally.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

import numpy as np


def glob_match(pattern: str, name: str) -> bool:
    return _match(pattern, 0, name, 0)


def _match(pattern: str, pi: int, name: str, ni: int) -> bool:
    while pi < len(pattern):
        token = pattern[pi]
        if token == "*":
            while pi < len(pattern) and pattern[pi] == "*":
                pi += 1
            if pi == len(pattern):
                return True
            for start in range(ni, len(name) + 1):
                if _match(pattern, pi, name, start):
                    return True
            return False
        if ni >= len(name):
            return False
        if token != "?" and token != name[ni]:
            return False
        pi += 1
        ni += 1
    return ni == len(name)


def match_any(name: str, patterns: Sequence[str]) -> bool:
    """OR across patterns; an empty pattern set matches every name."""
    if not patterns:
        return True
    return any(glob_match(pattern, name) for pattern in patterns)


def filter_mask(names: Iterable[str], patterns: Sequence[str]) -> np.ndarray:
    """Boolean mask over catalog ``names`` selecting those matching ``patterns``."""
    keep: List[bool] = [match_any(name, patterns) for name in names]
    return np.asarray(keep, dtype=bool)


__all__ = ["glob_match", "match_any", "filter_mask"]

"""
Confidence Scoring — dish-level confidence for heuristically parsed items.

Base 0.4 for an unrecognized dish; a fuzzy match against a reference dish adds
0.2 to 0.4 depending on match strength. Scores are on the 0..1 scale here and
scaled to 0..100 by the validator.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from ..parsers.menu_vocab import REFERENCE_DISHES

BASE_CONFIDENCE = 0.4
MATCH_THRESHOLD = 0.5
MIN_MATCH_BONUS = 0.2
MAX_MATCH_BONUS = 0.4

_PUNCT_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def _normalize(name: str) -> str:
    n = _PUNCT_RE.sub(" ", (name or "").lower())
    return _WHITESPACE_RE.sub(" ", n).strip()


def fuzzy_match(a: str, b: str) -> float:
    """
    Symmetric similarity in 0..1.

    max(substring score, word overlap):
      - substring: 0.5 + 0.5 * len(shorter) / len(longer) when one contains the other
      - word overlap: |A & B| / |A | B| over whitespace tokens
    Both terms are symmetric in (a, b), so the result is too.
    """
    na, nb = _normalize(a), _normalize(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0

    short, long_ = (na, nb) if len(na) <= len(nb) else (nb, na)
    substring = 0.0
    if short in long_:
        substring = 0.5 + 0.5 * (len(short) / len(long_))

    wa, wb = set(na.split()), set(nb.split())
    overlap = len(wa & wb) / len(wa | wb)

    return round(max(substring, overlap), 4)


def is_fuzzy_match(a: str, b: str) -> bool:
    return fuzzy_match(a, b) >= MATCH_THRESHOLD


def best_reference_match(
    name: str,
    references: Optional[List[Dict[str, str]]] = None,
) -> Tuple[Optional[Dict[str, str]], float]:
    """Return (reference dish, strength) for the strongest match at or above threshold."""
    best: Optional[Dict[str, str]] = None
    best_score = 0.0
    for dish in references if references is not None else REFERENCE_DISHES:
        score = max(fuzzy_match(name, dish.get("english", "")), fuzzy_match(name, dish.get("tamil", "")))
        if score > best_score:
            best, best_score = dish, score
    if best_score < MATCH_THRESHOLD:
        return None, 0.0
    return best, best_score


def match_bonus(strength: float) -> float:
    if strength < MATCH_THRESHOLD:
        return 0.0
    span = (min(strength, 1.0) - MATCH_THRESHOLD) / (1.0 - MATCH_THRESHOLD)
    return MIN_MATCH_BONUS + (MAX_MATCH_BONUS - MIN_MATCH_BONUS) * span


def dish_confidence(name: str, references: Optional[List[Dict[str, str]]] = None) -> float:
    _, strength = best_reference_match(name, references)
    score = BASE_CONFIDENCE + match_bonus(strength)
    return min(round(score, 2), 1.0)

"""
Price Parser — multi-currency price cascade.

An ordered, declarative list of (name, pattern) pairs, most specific first:
currency-prefixed, currency-suffixed, "/-" suffixed, "only"/"per" suffixed,
then a bare number. The first pattern producing an in-bounds value wins.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

# 1,250 | 1,250.50 | 950 | 12.5
_NUM = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"

PRICE_MIN = 0.0      # exclusive
PRICE_MAX = 10000.0  # exclusive; page numbers, phone fragments, years live above this


@dataclass(frozen=True)
class PricePattern:
    name: str
    regex: "re.Pattern[str]"
    pick: str = "first"  # "last" for the bare fallback: menu prices trail the name


def _p(name: str, rx: str, pick: str = "first") -> PricePattern:
    return PricePattern(name, re.compile(rx, re.IGNORECASE), pick)


PRICE_PATTERNS: List[PricePattern] = [
    # symbol-prefixed
    _p("lkr_prefix", r"\bLKR\.?\s*[:\-]?\s*" + _NUM),
    _p("rs_dot_prefix", r"\bRs\.\s*" + _NUM),
    _p("rs_prefix", r"\bRs\s*[:\-]?\s*" + _NUM),
    _p("rupee_sign_prefix", r"₹\s*" + _NUM),
    _p("sinhala_rupee_prefix", r"රු\.?\s*" + _NUM),
    _p("dollar_prefix", r"\$\s*" + _NUM),
    # symbol-suffixed
    _p("lkr_suffix", _NUM + r"\s*LKR\b"),
    _p("rs_suffix", _NUM + r"\s*Rs\b\.?"),
    _p("rupee_sign_suffix", _NUM + r"\s*₹"),
    _p("dollar_suffix", _NUM + r"\s*\$"),
    # "/-" suffixed (common on South Asian menus: 450/-)
    _p("slash_dash_suffix", _NUM + r"\s*/-"),
    # word suffixed
    _p("only_suffix", _NUM + r"\s*only\b"),
    _p("per_suffix", _NUM + r"\s*per\b"),
    # bare numeric fallback
    _p("bare_numeric", r"(?<![\d.,])" + _NUM + r"(?![\d])", pick="last"),
]


@dataclass(frozen=True)
class PriceMatch:
    value: float
    start: int
    end: int
    pattern: str


def _to_number(raw: str) -> Optional[float]:
    try:
        v = float(raw.replace(",", ""))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v):
        return None
    return round(v, 2)


def in_bounds(value: Optional[float]) -> bool:
    return value is not None and PRICE_MIN < value < PRICE_MAX


def find_price(text: str) -> Optional[PriceMatch]:
    """Run the cascade over `text` and return the winning match (or None)."""
    if not text:
        return None
    for pat in PRICE_PATTERNS:
        matches = list(pat.regex.finditer(text))
        if pat.pick == "last":
            matches.reverse()
        for m in matches:
            value = _to_number(m.group(1))
            if in_bounds(value):
                return PriceMatch(value=value, start=m.start(), end=m.end(), pattern=pat.name)
    return None


def extract_price(text: str) -> Optional[float]:
    m = find_price(text)
    return m.value if m else None


def has_price(text: str) -> bool:
    return find_price(text) is not None


def matches_price_pattern(text: str) -> bool:
    """True if any cascade pattern matches, in bounds or not ("Est. 1998" counts)."""
    return any(p.regex.search(text or "") for p in PRICE_PATTERNS)


def strip_price(text: str, match: Optional[PriceMatch] = None) -> Tuple[str, Optional[PriceMatch]]:
    """Return (`text` without the price substring, the match used)."""
    m = match if match is not None else find_price(text)
    if m is None:
        return text, None
    return (text[: m.start] + " " + text[m.end:]), m


_FIRST_NUM_RX = re.compile(_NUM)


def coerce_price(value: Any) -> float:
    """
    Best-effort numeric price from whatever a model or markup handed us:
    1200, "1,200.00", "Rs. 1200", "LKR 950/-". Non-finite or unreadable -> 0.0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        v = float(value)
        return round(v, 2) if math.isfinite(v) else 0.0
    m = _FIRST_NUM_RX.search(str(value))
    if not m:
        return 0.0
    v = _to_number(m.group(1))
    return v if v is not None else 0.0

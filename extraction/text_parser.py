# extraction/text_parser.py
"""
Heuristic Text Parser — turns raw menu text (OCR output, flattened page text,
pasted text) into categorized ExtractedItems.

Per line:
- Category header: contains a category keyword and matches no price pattern.
  Becomes the current category until the next header.
- Price: multi-currency cascade (parsers/price_parser.py), bounded 0 < p < 10,000.
- Name: the line minus the price substring, trailing separators stripped.
  "Tamil (English)" and "English (Tamil)" lines are split into both names.
- Inference: veg / spicy / popular / ingredients / dietary tags from keywords.
- Confidence: 0.4 base, +0.2..0.4 for a fuzzy reference-dish match (0..1 scale).

A short plain line directly after an item is attached as its description.
Lines that cannot be parsed are skipped; parsing never raises for bad input.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from .menu_types import (
    CONFIDENCE_RATIO,
    DEFAULT_ITEM_CATEGORY,
    ExtractedCategory,
    ExtractedItem,
)
from .parsers import menu_vocab as vocab
from .parsers.price_parser import find_price, matches_price_pattern, strip_price
from .scoring.confidence import BASE_CONFIDENCE, best_reference_match, match_bonus

log = logging.getLogger(__name__)

DEFAULT_LANGUAGES = ("eng", "tam")

_HEADER_MAX_LEN = 50
_DESC_MIN_LEN = 10
_DESC_MAX_LEN = 100

# ---------- line cleanup ----------
_DOT_LEADER_RX = re.compile(r"(?:\s*[.·…_]){2,}\s*")
_NUMBERING_RX = re.compile(r"^\s*(?:\d{1,2}[.)]|[•*·\-–—])\s+")
_TRAILING_SEP_RX = re.compile(r"[\s\-–—:|.,·•…/=]+$")
_LEADING_SEP_RX = re.compile(r"^[\s\-–—:|.,·•…/=]+")
_BILINGUAL_RX = re.compile(r"^(?P<outer>[^()]+?)\s*\((?P<inner>[^()]+)\)\s*$")
_HAS_LETTER_RX = re.compile(r"[A-Za-z\u0B80-\u0BFF]")


def _basic_clean(s: str) -> str:
    s = (s or "").replace("\t", " ").strip()
    s = re.sub(r"\s{2,}", " ", s)
    return s.strip(" |,")


def _clean_item_name(s: str) -> str:
    s = _DOT_LEADER_RX.sub(" ", s or "")
    s = _NUMBERING_RX.sub("", s)
    s = _TRAILING_SEP_RX.sub("", s)
    s = _LEADING_SEP_RX.sub("", s)
    return re.sub(r"\s{2,}", " ", s).strip()


def clean_category_name(s: str) -> str:
    """Strip decoration from a header line; title-case Latin text, leave Tamil as-is."""
    s = re.sub(r"[^\w\s&'/\-\u0B80-\u0BFF]", " ", s or "")
    s = re.sub(r"\s{2,}", " ", s).strip(" -/")
    if not s:
        return ""
    if vocab.is_tamil(s):
        return s
    return " ".join(w[:1].upper() + w[1:].lower() if w.isalpha() else w for w in s.split())


# ---------- skip heuristics ----------
_DROP_RX = re.compile(
    r"(https?://|www\.|@[a-z0-9-]+\.|\btel[:.]|\bphone\b|\bhotline\b|\bopen daily\b"
    r"|\bservice charge\b|\bprices? (?:are )?subject to\b|\bvat\b"
    r"|\+?\d{2,3}[\s-]?\d{2,3}[\s-]?\d{3}[\s-]?\d{3,4})",
    re.IGNORECASE,
)


def _is_drop_line(s: str) -> bool:
    return bool(_DROP_RX.search(s or ""))


def _alpha_ratio(s: str) -> float:
    if not s:
        return 0.0
    a = sum(c.isalpha() for c in s)
    return a / max(1, len(s))


def _passes_name_gate(name: str) -> bool:
    if not name or len(name) < 2:
        return False
    if not _HAS_LETTER_RX.search(name):
        return False
    # Tamil vowel signs are not isalpha(); only gate Latin names on letter density.
    if not vocab.is_tamil(name) and _alpha_ratio(name) < 0.5:
        return False
    return True


def is_category_header(line: str) -> bool:
    if not line or len(line) > _HEADER_MAX_LEN:
        return False
    if matches_price_pattern(line):
        return False
    return vocab.is_category_header_text(line)


# ---------- names ----------
def _split_names(name: str, use_tamil: bool) -> Dict[str, Optional[str]]:
    """Return display/tamil/english names for a cleaned item name."""
    tamil: Optional[str] = None
    english: Optional[str] = None

    m = _BILINGUAL_RX.match(name)
    if use_tamil and m:
        outer, inner = m.group("outer").strip(), m.group("inner").strip()
        if vocab.is_tamil(outer) and not vocab.is_tamil(inner):
            tamil, english = outer, inner
        elif vocab.is_tamil(inner) and not vocab.is_tamil(outer):
            tamil, english = inner, outer
    if tamil is None and english is None:
        if use_tamil and vocab.is_tamil(name):
            tamil = vocab.extract_tamil_text(name)
            english = vocab.strip_tamil_text(name) or None
            if english and not re.search(r"[A-Za-z]", english):
                english = None
        else:
            english = name

    return {"name": english or tamil or name, "tamil": tamil, "english": english}


# ---------- item construction ----------
def build_item(
    name: str,
    price: Optional[float],
    *,
    category: str,
    source: str = "ocr",
    languages: Sequence[str] = DEFAULT_LANGUAGES,
    provenance: Optional[Dict[str, object]] = None,
) -> ExtractedItem:
    names = _split_names(name, "tam" in languages)
    text = " ".join(x for x in (names["name"], names["tamil"], names["english"]) if x)

    ref, strength = None, 0.0
    for candidate in (names["english"], names["tamil"]):
        if not candidate:
            continue
        r, s = best_reference_match(candidate)
        if s > strength:
            ref, strength = r, s
    confidence = min(round(BASE_CONFIDENCE + match_bonus(strength), 2), 1.0)

    if ref is not None:
        names["tamil"] = names["tamil"] or ref.get("tamil")
        names["english"] = names["english"] or ref.get("english")

    is_veg = vocab.infer_is_veg(text)
    is_spicy = vocab.infer_is_spicy(text)
    prov = dict(provenance or {})
    if ref is not None:
        prov["reference_dish"] = ref.get("english")
        prov["match_strength"] = strength

    return ExtractedItem(
        source=source,
        name=names["name"],
        price=price,
        tamil_name=names["tamil"],
        english_name=names["english"],
        category=category,
        ingredients=vocab.extract_ingredients(text),
        is_veg=is_veg,
        is_spicy=is_spicy,
        is_popular=vocab.infer_is_popular(text),
        dietary_tags=vocab.dietary_tags(text, is_veg=is_veg, is_spicy=is_spicy),
        confidence=confidence,
        confidence_scale=CONFIDENCE_RATIO,
        provenance=prov,
    )


def _looks_like_description(line: str) -> bool:
    if not (_DESC_MIN_LEN <= len(line) <= _DESC_MAX_LEN):
        return False
    if matches_price_pattern(line):
        return False
    return not vocab.is_category_header_text(line)


def _is_description_prose(line: str) -> bool:
    """Sentence-case prose ("Served with rice and curry"), as opposed to a Title/UPPER header."""
    if not (_DESC_MIN_LEN <= len(line) <= _DESC_MAX_LEN):
        return False
    if matches_price_pattern(line) or vocab.is_tamil(line):
        return False
    lower_words = [w for w in line.split()[1:] if w[:1].isalpha() and w[:1].islower()]
    return len(lower_words) >= 2


# ---------- main API ----------
def parse_lines(
    lines: Iterable[str],
    *,
    languages: Sequence[str] = DEFAULT_LANGUAGES,
    default_category: str = DEFAULT_ITEM_CATEGORY,
    source: str = "ocr",
) -> List[ExtractedCategory]:
    categories: Dict[str, ExtractedCategory] = {}
    current: Optional[str] = None
    last_item: Optional[ExtractedItem] = None
    skipped = 0

    for line_no, raw in enumerate(lines):
        line = _basic_clean(raw)
        if not line:
            last_item = None
            continue
        if _is_drop_line(line):
            skipped += 1
            continue

        if last_item is not None and not last_item.description and _is_description_prose(line):
            last_item.description = line
            last_item = None
            continue

        if is_category_header(line):
            name = clean_category_name(line)
            if name:
                current = name
                last_item = None
                continue

        match = find_price(line)
        if match is None:
            if last_item is not None and not last_item.description and _looks_like_description(line):
                last_item.description = line
            else:
                skipped += 1
            last_item = None
            continue

        remainder, _ = strip_price(line, match)
        name = _clean_item_name(remainder)
        if not _passes_name_gate(name):
            skipped += 1
            last_item = None
            continue

        cat_name = current or default_category
        item = build_item(
            name,
            match.value,
            category=cat_name,
            source=source,
            languages=languages,
            provenance={"line_no": line_no, "line": raw, "matched_rule": match.pattern},
        )
        categories.setdefault(cat_name, ExtractedCategory(name=cat_name)).items.append(item)
        last_item = item

    out = [c for c in categories.values() if c.items]
    log.debug("parse_lines: %d categories, %d items, %d lines skipped",
              len(out), sum(len(c.items) for c in out), skipped)
    return out


def parse_menu_text(
    text: str,
    *,
    languages: Sequence[str] = DEFAULT_LANGUAGES,
    default_category: str = DEFAULT_ITEM_CATEGORY,
    source: str = "ocr",
) -> List[ExtractedCategory]:
    """Parse a multi-line text blob into categories of ExtractedItems."""
    return parse_lines(
        (text or "").splitlines(),
        languages=languages,
        default_category=default_category,
        source=source,
    )


def languages_from_hint(hint: Optional[str]) -> List[str]:
    """'eng+tam' / 'tam,eng' / None -> ['eng', 'tam']"""
    if not hint:
        return list(DEFAULT_LANGUAGES)
    parts = [p.strip().lower() for p in re.split(r"[+,\s]+", hint) if p.strip()]
    return parts or list(DEFAULT_LANGUAGES)

# extraction/markup_extractor.py
"""
Markup Extractor — menu extraction from restaurant web pages.

Four independent strategies, each run on its own parse tree:

  1. structured data  JSON-LD Restaurant / FoodEstablishment / Menu      conf 95
  2. selectors        first "menu item" selector with > 2 matches        min(80, n*10)
  3. tables           any <table> with > 3 rows                          min(70, n*8)
  4. free text        body text through the line heuristics              min(50, n*5)

The winner is the highest-confidence non-empty result; on ties the earlier
(higher-trust) strategy is kept.

Usage:
    from extraction.markup_extractor import extract_from_html

    result = extract_from_html(html, "https://example.lk/menu")
    result.categories, result.confidence, result.method, result.raw_text
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .menu_types import (
    CONFIDENCE_PERCENT,
    METHOD_FAILED,
    METHOD_HTML_TEXT,
    METHOD_SELECTORS,
    METHOD_STRUCTURED_DATA,
    METHOD_TABLE,
    ExtractedCategory,
    ExtractedItem,
)
from .parsers import menu_vocab as vocab
from .parsers.price_parser import coerce_price, extract_price
from .text_parser import parse_lines

log = logging.getLogger(__name__)

_PARSER = "html.parser"
_RAW_TEXT_LIMIT = 20000

STRUCTURED_DATA_CONFIDENCE = 95

# ---------------------------------------------------------------------------
# Selector vocabularies
# ---------------------------------------------------------------------------
MENU_ITEM_SELECTORS: List[str] = [
    ".menu-item", ".food-item", ".dish", ".product", ".menu-product",
    ".restaurant-menu-item", ".menu-entry", ".menu-list-item", ".food-menu-item",
    ".menu-dish", ".menu-food", ".menu-product-item", ".food-item-card",
    ".menu-item-card", ".dish-card", ".food-card", ".menu-card", ".card-menu",
    ".cuisine-item", ".restaurant-item", ".restaurant-food-item", ".dish-menu-item",
    "li[class*='menu']", "article[class*='menu']",
    "[class*='menu-item']", "[class*='food-item']", "[class*='dish']",
    ".menu-block", ".food-block", ".card", ".card-body", ".col-md-4", ".col-lg-3",
    "[class*='item']",
]

NAME_SELECTORS: List[str] = [
    "h1", "h2", "h3", "h4", "h5", ".name", ".title", ".dish-name", ".item-name",
    ".food-name", ".product-name", "[class*='name']", "[class*='title']",
]

PRICE_SELECTORS: List[str] = [
    ".price", ".cost", ".amount", ".value", ".money", ".menu-price", ".food-price",
    ".dish-price", ".item-price", ".product-price", ".price-tag",
    "[class*='price']", "[class*='cost']", "[class*='amount']",
]

DESCRIPTION_SELECTORS: List[str] = [
    ".description", ".desc", ".details", ".info", "[class*='desc']", "p",
]

_HEADER_WORDS = {"name", "item", "items", "dish", "dishes", "price", "prices", "cost", "description", "menu"}
_STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer"]
_MENU_SCHEMA_TYPES = {"restaurant", "foodestablishment", "menu", "menusection"}

_DESC_MIN_LEN = 10
_DESC_MAX_LEN = 200
_NAME_MAX_LEN = 120


@dataclass
class StrategyResult:
    strategy: str
    method: str
    categories: List[ExtractedCategory] = field(default_factory=list)
    confidence: int = 0

    @property
    def item_count(self) -> int:
        return sum(len(c.items) for c in self.categories)

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0


@dataclass
class MarkupResult:
    categories: List[ExtractedCategory]
    raw_text: str
    confidence: int
    method: str
    url: str = ""
    attempts: List[Dict[str, Any]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------

def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", _PARSER)


def _text(el: Any) -> str:
    if el is None:
        return ""
    return re.sub(r"\s+", " ", el.get_text(" ", strip=True)).strip()


def _html_item(name: str, price: float, *, category: str, confidence: int,
               description: str = "", image: Optional[str] = None,
               provenance: Optional[Dict[str, Any]] = None) -> ExtractedItem:
    tamil = vocab.extract_tamil_text(name) or None
    english = vocab.strip_tamil_text(name) if tamil else name
    text = f"{name} {description}"
    is_veg = vocab.infer_is_veg(text)
    is_spicy = vocab.infer_is_spicy(text)
    return ExtractedItem(
        source="html",
        name=english or name,
        price=price,
        description=description,
        tamil_name=tamil,
        english_name=english or None,
        category=category,
        ingredients=vocab.extract_ingredients(text),
        is_veg=is_veg,
        is_spicy=is_spicy,
        is_popular=vocab.infer_is_popular(text),
        dietary_tags=vocab.dietary_tags(text, is_veg=is_veg, is_spicy=is_spicy),
        confidence=confidence,
        confidence_scale=CONFIDENCE_PERCENT,
        image=image or None,
        provenance=dict(provenance or {}),
    )


def _restamp_confidence(categories: List[ExtractedCategory], confidence: int) -> None:
    for cat in categories:
        for it in cat.items:
            it.confidence = confidence


def extract_all_text(html: str) -> str:
    soup = _soup(html)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()
    return text[:_RAW_TEXT_LIMIT]


def resolve_image_url(src: Optional[str], base_url: str) -> Optional[str]:
    src = (src or "").strip()
    if not src or src.startswith("data:"):
        return None
    if base_url:
        return urljoin(base_url, src)
    return src


# ---------------------------------------------------------------------------
# 1. Structured data (JSON-LD)
# ---------------------------------------------------------------------------

def _as_list(v: Any) -> List[Any]:
    if v is None:
        return []
    return v if isinstance(v, list) else [v]


def _types(node: Dict[str, Any]) -> List[str]:
    return [str(t).lower() for t in _as_list(node.get("@type"))]


def _ld_nodes(data: Any) -> Iterable[Dict[str, Any]]:
    for node in _as_list(data):
        if not isinstance(node, dict):
            continue
        if "@graph" in node:
            yield from _ld_nodes(node["@graph"])
        yield node


def _ld_price(item: Dict[str, Any]) -> float:
    for offer in _as_list(item.get("offers")):
        if isinstance(offer, dict) and offer.get("price") is not None:
            return coerce_price(offer.get("price"))
    if item.get("price") is not None:
        return coerce_price(item.get("price"))
    return 0.0


def _ld_image(item: Dict[str, Any], base_url: str) -> Optional[str]:
    for img in _as_list(item.get("image")):
        if isinstance(img, dict):
            img = img.get("url") or img.get("contentUrl")
        if isinstance(img, str) and img.strip():
            return resolve_image_url(img, base_url)
    return None


def _ld_section(section: Dict[str, Any], base_url: str, out: List[ExtractedCategory], fallback: str) -> None:
    name = str(section.get("name") or fallback).strip() or fallback
    items: List[ExtractedItem] = []
    for raw in _as_list(section.get("hasMenuItem")):
        if not isinstance(raw, dict):
            continue
        item_name = str(raw.get("name") or "").strip()
        if not item_name:
            continue
        items.append(_html_item(
            item_name,
            _ld_price(raw),
            category=name,
            confidence=STRUCTURED_DATA_CONFIDENCE,
            description=str(raw.get("description") or "").strip()[:_DESC_MAX_LEN * 2],
            image=_ld_image(raw, base_url),
            provenance={"strategy": "structured_data"},
        ))
    if items:
        out.append(ExtractedCategory(name=name, items=items))
    for sub in _as_list(section.get("hasMenuSection")):
        if isinstance(sub, dict):
            _ld_section(sub, base_url, out, fallback="Menu Section")


def extract_structured_data(html: str, url: str = "") -> StrategyResult:
    soup = _soup(html)
    categories: List[ExtractedCategory] = []
    for script in soup.find_all("script", attrs={"type": re.compile(r"ld\+json", re.I)}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            log.debug("JSON-LD block skipped: %s", e)
            continue
        for node in _ld_nodes(data):
            types = _types(node)
            if not set(types) & _MENU_SCHEMA_TYPES:
                continue
            if "menu" in types or "menusection" in types:
                menus = [node]
            else:
                menus = _as_list(node.get("hasMenu") or node.get("menu"))
            for menu in menus:
                if isinstance(menu, dict):
                    _ld_section(menu, url, categories, fallback="Menu")

    conf = STRUCTURED_DATA_CONFIDENCE if categories else 0
    return StrategyResult("structured_data", METHOD_STRUCTURED_DATA, categories, conf)


# ---------------------------------------------------------------------------
# 2. Selector heuristics
# ---------------------------------------------------------------------------

def _first_text(el: Any, selectors: List[str], min_len: int = 1) -> str:
    for sel in selectors:
        for found in el.select(sel):
            t = _text(found)
            if len(t) >= min_len:
                return t
    return ""


def _item_name(el: Any) -> str:
    name = _first_text(el, NAME_SELECTORS)
    if not name:
        lines = [ln.strip() for ln in el.get_text("\n", strip=True).splitlines() if ln.strip()]
        name = lines[0] if lines else ""
    return name[:_NAME_MAX_LEN]


def _item_price(el: Any) -> float:
    for sel in PRICE_SELECTORS:
        for found in el.select(sel):
            p = extract_price(_text(found))
            if p:
                return p
    return extract_price(_text(el)) or 0.0


def _item_description(el: Any, name: str) -> str:
    for sel in DESCRIPTION_SELECTORS:
        for found in el.select(sel):
            t = _text(found)
            if len(t) > _DESC_MIN_LEN and t != name:
                return t[:_DESC_MAX_LEN]
    return ""


def _item_image(el: Any, base_url: str) -> Optional[str]:
    img = el.find("img")
    if img is None:
        return None
    return resolve_image_url(img.get("src") or img.get("data-src"), base_url)


def _infer_section_name(el: Any) -> Optional[str]:
    heading = el.find_previous(["h1", "h2", "h3"])
    name = _text(heading)
    if name and len(name) <= 60:
        return name
    return None


def extract_with_selectors(html: str, url: str = "") -> StrategyResult:
    soup = _soup(html)
    for selector in MENU_ITEM_SELECTORS:
        matches = soup.select(selector)
        if len(matches) <= 2:
            continue
        cat_name = _infer_section_name(matches[0]) or "Menu Items"
        items: List[ExtractedItem] = []
        for el in matches:
            name = _item_name(el)
            price = _item_price(el)
            if not name or price <= 0:
                continue
            items.append(_html_item(
                name,
                price,
                category=cat_name,
                confidence=0,
                description=_item_description(el, name),
                image=_item_image(el, url),
                provenance={"strategy": "selectors", "selector": selector},
            ))
        if items:
            conf = min(80, len(items) * 10)
            categories = [ExtractedCategory(name=cat_name, items=items)]
            _restamp_confidence(categories, conf)
            return StrategyResult("selectors", METHOD_SELECTORS, categories, conf)
    return StrategyResult("selectors", METHOD_SELECTORS, [], 0)


# ---------------------------------------------------------------------------
# 3. Tables
# ---------------------------------------------------------------------------

def _is_header_row(cells: List[Any]) -> bool:
    if cells and all(c.name == "th" for c in cells):
        return True
    words = set(re.findall(r"[a-z]+", _text(cells[0]).lower())) if cells else set()
    return bool(words) and words <= _HEADER_WORDS


def _table_title(table: Any, index: int) -> str:
    caption = table.find("caption")
    if caption is not None and _text(caption):
        return _text(caption)
    heading = table.find_previous(["h1", "h2", "h3", "h4"])
    if heading is not None and _text(heading):
        return _text(heading)
    return f"Menu Table {index + 1}"


def extract_from_tables(html: str, url: str = "") -> StrategyResult:
    soup = _soup(html)
    categories: List[ExtractedCategory] = []
    for i, table in enumerate(soup.find_all("table")):
        rows = table.find_all("tr")
        if len(rows) <= 3:
            continue
        cat_name = _table_title(table, i)
        items: List[ExtractedItem] = []
        for row in rows:
            cells = row.find_all(["td", "th"])
            if len(cells) < 2 or _is_header_row(cells):
                continue
            name = _text(cells[0])
            price = extract_price(_text(cells[-1])) or 0.0
            description = _text(cells[1]) if len(cells) > 2 else ""
            if not name or price <= 0:
                continue
            items.append(_html_item(
                name[:_NAME_MAX_LEN],
                price,
                category=cat_name,
                confidence=0,
                description=description[:_DESC_MAX_LEN],
                image=_item_image(row, url),
                provenance={"strategy": "table", "table_index": i},
            ))
        if items:
            categories.append(ExtractedCategory(name=cat_name, items=items))

    total = sum(len(c.items) for c in categories)
    conf = min(70, total * 8) if total else 0
    _restamp_confidence(categories, conf)
    return StrategyResult("table", METHOD_TABLE, categories, conf)


# ---------------------------------------------------------------------------
# 4. Free text
# ---------------------------------------------------------------------------

def extract_from_text(html: str, url: str = "") -> StrategyResult:
    soup = _soup(html)
    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    body = soup.body or soup
    lines = body.get_text("\n", strip=True).splitlines()
    categories = parse_lines(lines, default_category="Menu Items", source="html")

    total = sum(len(c.items) for c in categories)
    conf = min(50, total * 5) if total else 0
    for cat in categories:
        for it in cat.items:
            it.confidence = conf
            it.confidence_scale = CONFIDENCE_PERCENT
            it.provenance["strategy"] = "text"
    return StrategyResult("text", METHOD_HTML_TEXT, categories, conf)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

Strategy = Callable[[str, str], StrategyResult]

STRATEGIES: List[Tuple[str, Strategy]] = [
    ("structured_data", extract_structured_data),
    ("selectors", extract_with_selectors),
    ("table", extract_from_tables),
    ("text", extract_from_text),
]


def run_strategies(html: str, url: str = "", strategies: Optional[List[Tuple[str, Strategy]]] = None) -> List[StrategyResult]:
    results: List[StrategyResult] = []
    for name, fn in strategies or STRATEGIES:
        try:
            res = fn(html, url)
        except Exception as e:
            log.warning("Markup strategy %s failed: %s", name, e)
            res = StrategyResult(name, METHOD_FAILED, [], 0)
        log.debug("Markup strategy %s: %d items, confidence %s", name, res.item_count, res.confidence)
        results.append(res)
    return results


def select_best(results: List[StrategyResult]) -> Optional[StrategyResult]:
    """Max by confidence over non-empty results; strict '>' keeps the earlier one on ties."""
    best: Optional[StrategyResult] = None
    for res in results:
        if res.is_empty:
            continue
        if best is None or res.confidence > best.confidence:
            best = res
    return best


def extract_from_html(html: str, url: str = "") -> MarkupResult:
    results = run_strategies(html, url)
    best = select_best(results)
    attempts = [
        {"strategy": r.strategy, "items": r.item_count, "confidence": r.confidence}
        for r in results
    ]
    raw_text = extract_all_text(html)
    if best is None:
        log.info("No markup strategy produced items for %s", url or "<html>")
        return MarkupResult([], raw_text, 0, METHOD_FAILED, url, attempts)
    log.info("Markup extraction for %s: %s won with %d items (confidence %s)",
             url or "<html>", best.strategy, best.item_count, best.confidence)
    return MarkupResult(best.categories, raw_text, best.confidence, best.method, url, attempts)

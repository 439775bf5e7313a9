# extraction/validator.py
"""
Menu Structure Validator — the single exit gate for extracted menus.

validate_menu_structure() turns whatever the strategies produced
(ExtractedCategory objects, MenuCategory objects or plain dicts in either
camelCase or snake_case) into canonical MenuCategory / MenuItem objects:

  category.name     -> non-empty, default "Uncategorized"
  item.name         -> default "Unnamed Item"
  item.price        -> float >= 0, 2 dp
  item.category     -> default "Main Course"
  item.isAvailable  -> true unless explicitly false
  item.confidence   -> ratio-scale values x100, then clamped to [0.1, 100]
  item.ingredients  -> trimmed, de-duplicated, at most 15

Categories left without items are dropped. The function is idempotent:
validating its own output returns an equal structure.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from .menu_types import (
    CONFIDENCE_RATIO,
    DEFAULT_CATEGORY_NAME,
    DEFAULT_ITEM_CATEGORY,
    DEFAULT_ITEM_NAME,
    STATUS_COMPLETED,
    STATUS_FAILED,
    MenuCategory,
    MenuDocument,
    MenuItem,
)
from .parsers.price_parser import coerce_price

log = logging.getLogger(__name__)

CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEIL = 100.0
MAX_INGREDIENTS = 15


def _as_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {}


def _pick(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return None


def _clean_str(v: Any) -> str:
    if v is None:
        return ""
    return " ".join(str(v).split())


def _opt_str(v: Any) -> Optional[str]:
    s = _clean_str(v)
    return s or None


def _bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("false", "0", "no", "n"):
            return False
        if low in ("true", "1", "yes", "y"):
            return True
        return default
    return bool(v)


def _confidence(raw: Any, scale: Optional[str]) -> float:
    try:
        v = float(raw)
    except (TypeError, ValueError):
        v = CONFIDENCE_FLOOR
    if not math.isfinite(v):
        v = CONFIDENCE_FLOOR
    if scale == CONFIDENCE_RATIO:
        v *= 100.0
    v = max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEIL, v))
    return round(v, 2)


def _ingredients(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = [raw]
    out: List[str] = []
    for v in raw or []:
        s = _clean_str(v)
        if s and s not in out:
            out.append(s)
    return out[:MAX_INGREDIENTS]


def _tags(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = [raw]
    out: List[str] = []
    for v in raw or []:
        s = _clean_str(v)
        if s and s not in out:
            out.append(s)
    return out


def validate_item(raw: Any, *, currency: str = "LKR") -> MenuItem:
    d = _as_dict(raw)
    price = coerce_price(_pick(d, "price"))
    return MenuItem(
        name=_clean_str(_pick(d, "name")) or DEFAULT_ITEM_NAME,
        price=max(0.0, round(price, 2)),
        currency=_clean_str(_pick(d, "currency")) or currency,
        description=_clean_str(_pick(d, "description")),
        tamil_name=_opt_str(_pick(d, "tamilName", "tamil_name")),
        english_name=_opt_str(_pick(d, "englishName", "english_name")),
        category=_clean_str(_pick(d, "category")) or DEFAULT_ITEM_CATEGORY,
        ingredients=_ingredients(_pick(d, "ingredients")),
        is_veg=_bool(_pick(d, "isVeg", "is_veg"), True),
        is_spicy=_bool(_pick(d, "isSpicy", "is_spicy"), False),
        is_popular=_bool(_pick(d, "isPopular", "is_popular"), False),
        is_available=_bool(_pick(d, "isAvailable", "is_available"), True),
        dietary_tags=_tags(_pick(d, "dietaryTags", "dietary_tags")),
        confidence=_confidence(_pick(d, "confidence"), _pick(d, "confidenceScale", "confidence_scale")),
        image=_opt_str(_pick(d, "image")),
    )


def validate_menu_structure(categories: Iterable[Any], *, currency: str = "LKR") -> List[MenuCategory]:
    out: List[MenuCategory] = []
    dropped = 0
    for raw_cat in categories or []:
        cat = _as_dict(raw_cat)
        name = _clean_str(_pick(cat, "name")) or DEFAULT_CATEGORY_NAME
        items = [validate_item(it, currency=currency) for it in (_pick(cat, "items") or [])]
        if not items:
            dropped += 1
            continue
        out.append(MenuCategory(name=name, items=items))
    if dropped:
        log.debug("validate_menu_structure: dropped %d empty categories", dropped)
    return out


def finalize_document(doc: MenuDocument, *, currency: str = "LKR") -> MenuDocument:
    """Validate the document's categories in place and settle its status/confidence."""
    doc.categories = validate_menu_structure(doc.categories, currency=currency)
    doc.processing_status = STATUS_COMPLETED if doc.categories else STATUS_FAILED
    try:
        conf = float(doc.confidence)
    except (TypeError, ValueError):
        conf = 0.0
    if not math.isfinite(conf):
        conf = 0.0
    doc.confidence = round(max(0.0, min(100.0, conf)), 2)
    if not doc.categories:
        doc.confidence = 0.0
    return doc

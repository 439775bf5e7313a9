# extraction/menu_types.py
"""
Menu extraction types.

Two layers:

- ExtractedItem / ExtractedCategory: what a strategy or provider emits. Fields
  vary by origin, so every item carries a `source` tag (ocr | html | vision |
  default) and the scale its confidence is expressed in.
- MenuItem / MenuCategory / MenuDocument: the canonical shapes produced by the
  validator. `to_dict()` is the serialization contract the portal returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# ---------------------------------------------------------------------------
# Enumerations (plain string constants, as stored in JSON / SQLite)
# ---------------------------------------------------------------------------

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# extractionMethod values
METHOD_STRUCTURED_DATA = "html-structured-data"
METHOD_SELECTORS = "html-selectors"
METHOD_TABLE = "html-table"
METHOD_HTML_TEXT = "html-text"
METHOD_VISION_ANTHROPIC = "vision-anthropic"
METHOD_VISION_OPENAI = "vision-openai"
METHOD_OCR_HEURISTIC = "ocr-heuristic"
METHOD_TEXT_HEURISTIC = "text-heuristic"
METHOD_DEFAULT = "default-fallback"
METHOD_FAILED = "failed"

CONFIDENCE_RATIO = "ratio"      # 0..1
CONFIDENCE_PERCENT = "percent"  # 0..100

DEFAULT_ITEM_CATEGORY = "Main Course"
DEFAULT_CATEGORY_NAME = "Uncategorized"
DEFAULT_ITEM_NAME = "Unnamed Item"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Strategy / provider output
# ---------------------------------------------------------------------------

@dataclass
class ExtractedItem:
    source: str
    name: str = ""
    price: Optional[float] = None
    currency: Optional[str] = None
    description: str = ""
    tamil_name: Optional[str] = None
    english_name: Optional[str] = None
    category: Optional[str] = None
    ingredients: List[str] = field(default_factory=list)
    is_veg: Optional[bool] = None
    is_spicy: Optional[bool] = None
    is_popular: bool = False
    dietary_tags: List[str] = field(default_factory=list)
    confidence: Optional[float] = None
    confidence_scale: str = CONFIDENCE_PERCENT
    image: Optional[str] = None
    # origin details (matched rule, selector, raw line, ...); never serialized to clients
    provenance: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "name": self.name,
            "tamilName": self.tamil_name,
            "englishName": self.english_name,
            "price": self.price,
            "currency": self.currency,
            "description": self.description,
            "category": self.category,
            "ingredients": list(self.ingredients),
            "isVeg": self.is_veg,
            "isSpicy": self.is_spicy,
            "isPopular": self.is_popular,
            "dietaryTags": list(self.dietary_tags),
            "confidence": self.confidence,
            "confidenceScale": self.confidence_scale,
            "image": self.image,
        }


@dataclass
class ExtractedCategory:
    name: str
    items: List[ExtractedItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "items": [it.to_dict() for it in self.items]}


# ---------------------------------------------------------------------------
# Canonical output
# ---------------------------------------------------------------------------

@dataclass
class MenuItem:
    name: str
    price: float = 0.0
    currency: str = "LKR"
    description: str = ""
    tamil_name: Optional[str] = None
    english_name: Optional[str] = None
    category: str = DEFAULT_ITEM_CATEGORY
    ingredients: List[str] = field(default_factory=list)
    is_veg: bool = True
    is_spicy: bool = False
    is_popular: bool = False
    is_available: bool = True
    dietary_tags: List[str] = field(default_factory=list)
    confidence: float = 0.1
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tamilName": self.tamil_name,
            "englishName": self.english_name,
            "price": self.price,
            "currency": self.currency,
            "description": self.description,
            "category": self.category,
            "ingredients": list(self.ingredients),
            "isVeg": self.is_veg,
            "isSpicy": self.is_spicy,
            "isPopular": self.is_popular,
            "isAvailable": self.is_available,
            "dietaryTags": list(self.dietary_tags),
            "confidence": self.confidence,
            "image": self.image,
        }


@dataclass
class MenuCategory:
    name: str
    items: List[MenuItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "items": [it.to_dict() for it in self.items]}


@dataclass
class MenuDocument:
    """
    One extraction request's result.

    processing_status stays "pending" until validator.finalize_document() runs;
    after that it is "completed" iff categories is non-empty.
    """
    source_type: str
    source_value: str
    categories: List[MenuCategory] = field(default_factory=list)
    raw_text: str = ""
    extraction_method: str = METHOD_FAILED
    confidence: float = 0.0
    processing_status: str = STATUS_PENDING
    image_id: Optional[str] = None
    extracted_at: str = field(default_factory=utc_now_iso)
    notes: List[str] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(len(c.items) for c in self.categories)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": {"type": self.source_type, "value": self.source_value},
            "categories": [c.to_dict() for c in self.categories],
            "rawText": self.raw_text,
            "extractionMethod": self.extraction_method,
            "confidence": self.confidence,
            "processingStatus": self.processing_status,
            "imageId": self.image_id,
            "extractedAt": self.extracted_at,
            "notes": list(self.notes),
            "totalCategories": len(self.categories),
            "totalItems": self.total_items,
        }

# extraction/fallback.py
"""
Provider Fallback Orchestrator.

A ProviderChain holds an explicit, ordered list of provider objects that all
expose `extract(request) -> ProviderResult`. Each provider is called once, in
order; an exception or an empty result is logged and the next provider runs.
When every provider fails the chain returns a deterministic default menu, so
callers always get a well-formed, non-error result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .ai_vision import VisionNormalizer
from .menu_types import (
    CONFIDENCE_PERCENT,
    DEFAULT_ITEM_CATEGORY,
    METHOD_DEFAULT,
    METHOD_OCR_HEURISTIC,
    METHOD_VISION_ANTHROPIC,
    METHOD_VISION_OPENAI,
    ExtractedCategory,
    ExtractedItem,
)
from .text_parser import languages_from_hint, parse_menu_text

log = logging.getLogger(__name__)

DEFAULT_MENU_CONFIDENCE = 25.0
DEFAULT_MENU_NOTE = "Automatic extraction was unavailable; these are placeholder dishes, please review and edit."
DEFAULT_MENU_CATEGORY = "Detected Items"


@dataclass
class ProviderRequest:
    image_bytes: Optional[bytes] = None
    mime_type: str = "image/jpeg"
    ocr_text: str = ""
    ocr_confidence: float = 0.0
    language_hint: Optional[str] = None


@dataclass
class ProviderResult:
    categories: List[ExtractedCategory] = field(default_factory=list)
    method: str = ""
    confidence: float = 0.0
    provider: str = ""
    notes: List[str] = field(default_factory=list)
    attempts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(len(c.items) for c in self.categories)

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0


class MenuProvider:
    """Capability interface for the chain."""

    name = "provider"

    def extract(self, request: ProviderRequest) -> ProviderResult:  # pragma: no cover
        raise NotImplementedError


def group_by_category(items: Sequence[ExtractedItem], default: str = DEFAULT_ITEM_CATEGORY) -> List[ExtractedCategory]:
    groups: Dict[str, ExtractedCategory] = {}
    for it in items:
        cat = (it.category or "").strip() or default
        it.category = cat
        groups.setdefault(cat, ExtractedCategory(name=cat)).items.append(it)
    return list(groups.values())


def mean_item_confidence(categories: Sequence[ExtractedCategory]) -> float:
    vals: List[float] = []
    for cat in categories:
        for it in cat.items:
            if it.confidence is None:
                continue
            c = float(it.confidence)
            vals.append(c * 100.0 if it.confidence_scale != CONFIDENCE_PERCENT else c)
    if not vals:
        return 0.0
    return round(sum(vals) / len(vals), 2)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
class VisionProvider(MenuProvider):
    def __init__(self, normalizer: VisionNormalizer, *, method: Optional[str] = None):
        self.normalizer = normalizer
        self.name = f"vision:{normalizer.name}"
        self.method = method or {
            "anthropic": METHOD_VISION_ANTHROPIC,
            "openai": METHOD_VISION_OPENAI,
        }.get(normalizer.name, f"vision-{normalizer.name}")

    def extract(self, request: ProviderRequest) -> ProviderResult:
        if not request.image_bytes:
            return ProviderResult(method=self.method, provider=self.name)
        items = self.normalizer.extract_items(request.image_bytes, request.mime_type, request.ocr_text or None)
        categories = group_by_category(items)
        return ProviderResult(
            categories=categories,
            method=self.method,
            confidence=mean_item_confidence(categories),
            provider=self.name,
        )


class OcrHeuristicProvider(MenuProvider):
    """Runs the line heuristics over the recognizer's text."""

    name = "ocr-heuristic"

    def extract(self, request: ProviderRequest) -> ProviderResult:
        text = request.ocr_text or ""
        if not text.strip():
            return ProviderResult(method=METHOD_OCR_HEURISTIC, provider=self.name)
        categories = parse_menu_text(text, languages=languages_from_hint(request.language_hint))
        item_conf = mean_item_confidence(categories)
        # weight parser confidence by how sure the recognizer was about the text
        conf = item_conf
        if request.ocr_confidence:
            conf = round((item_conf + float(request.ocr_confidence)) / 2.0, 2)
        return ProviderResult(
            categories=categories,
            method=METHOD_OCR_HEURISTIC,
            confidence=conf,
            provider=self.name,
        )


# Representative Jaffna dishes used when nothing could be extracted.
_DEFAULT_DISHES: List[Dict[str, Any]] = [
    {"english": "Hoppers", "tamil": "அப்பம்", "price": 250.0, "veg": True, "spicy": False,
     "ingredients": ["rice flour", "coconut milk"]},
    {"english": "String Hoppers", "tamil": "இடியாப்பம்", "price": 300.0, "veg": True, "spicy": False,
     "ingredients": ["rice flour"]},
    {"english": "Jaffna Crab Curry", "tamil": "நண்டு கறி", "price": 1200.0, "veg": False, "spicy": True,
     "ingredients": ["crab", "coconut", "spices"]},
]


def build_default_result(*, currency: str = "LKR", note: str = DEFAULT_MENU_NOTE) -> ProviderResult:
    """Deterministic, non-empty fallback menu."""
    items = [
        ExtractedItem(
            source="default",
            name=d["english"],
            english_name=d["english"],
            tamil_name=d["tamil"],
            price=d["price"],
            currency=currency,
            description=note,
            category=DEFAULT_MENU_CATEGORY,
            ingredients=list(d["ingredients"]),
            is_veg=d["veg"],
            is_spicy=d["spicy"],
            dietary_tags=(["Vegetarian"] if d["veg"] else ["Non-Veg"]) + (["Spicy"] if d["spicy"] else []),
            confidence=DEFAULT_MENU_CONFIDENCE,
            confidence_scale=CONFIDENCE_PERCENT,
        )
        for d in _DEFAULT_DISHES
    ]
    return ProviderResult(
        categories=[ExtractedCategory(name=DEFAULT_MENU_CATEGORY, items=items)],
        method=METHOD_DEFAULT,
        confidence=DEFAULT_MENU_CONFIDENCE,
        provider="default",
        notes=[note],
    )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------
class ProviderChain:
    def __init__(self, providers: Sequence[MenuProvider], *, currency: str = "LKR"):
        self.providers = list(providers)
        self.currency = currency

    def run(self, request: ProviderRequest) -> ProviderResult:
        attempts: List[Dict[str, Any]] = []
        for provider in self.providers:
            try:
                result = provider.extract(request)
            except Exception as e:
                log.warning("Provider %s failed: %s", provider.name, e)
                attempts.append({"provider": provider.name, "outcome": "error", "error": str(e)})
                continue
            if result is None or result.is_empty:
                log.info("Provider %s returned no items; falling back", provider.name)
                attempts.append({"provider": provider.name, "outcome": "empty"})
                continue
            attempts.append({"provider": provider.name, "outcome": "ok", "items": result.item_count})
            result.provider = result.provider or provider.name
            result.attempts = attempts
            return result

        log.info("All %d providers failed; returning default menu", len(self.providers))
        result = build_default_result(currency=self.currency)
        attempts.append({"provider": "default", "outcome": "ok", "items": result.item_count})
        result.attempts = attempts
        return result

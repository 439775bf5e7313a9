"""
Day 97 -- Menu structure validator and document finalization.

Covers:
  Item defaults:
  - missing name / price / category / availability filled
  - price coerced from strings, negatives floored at 0
  - camelCase and snake_case keys both accepted
  - ExtractedItem objects accepted

  Confidence:
  - ratio-scale values scaled x100
  - clamped to [0.1, 100]
  - unreadable values -> floor

  Lists:
  - ingredients trimmed, de-duplicated, max 15
  - dietary tags de-duplicated

  Structure:
  - empty categories dropped
  - unnamed category -> "Uncategorized"
  - validating twice gives the same structure

  finalize_document:
  - completed iff categories non-empty
  - confidence clamped 0..100, zero when nothing survived
"""

from __future__ import annotations

import pytest

from extraction.menu_types import (
    CONFIDENCE_RATIO,
    STATUS_COMPLETED,
    STATUS_FAILED,
    ExtractedCategory,
    ExtractedItem,
    MenuDocument,
)
from extraction.validator import finalize_document, validate_item, validate_menu_structure


class TestItemDefaults:
    def test_empty_item(self):
        item = validate_item({})
        assert item.name == "Unnamed Item"
        assert item.price == 0.0
        assert item.currency == "LKR"
        assert item.category == "Main Course"
        assert item.is_available is True
        assert item.is_veg is True
        assert item.is_spicy is False
        assert item.confidence == 0.1

    def test_price_coercion(self):
        assert validate_item({"name": "Kottu", "price": "Rs. 1,250.00"}).price == 1250.0
        assert validate_item({"name": "Kottu", "price": -20}).price == 0.0
        assert validate_item({"name": "Kottu", "price": "market price"}).price == 0.0

    def test_camel_and_snake_case(self):
        camel = validate_item({"name": "Idli", "tamilName": "இட்லி", "isVeg": False, "isAvailable": False})
        snake = validate_item({"name": "Idli", "tamil_name": "இட்லி", "is_veg": False, "is_available": False})
        assert camel == snake
        assert camel.tamil_name == "இட்லி"
        assert camel.is_available is False

    def test_string_booleans(self):
        item = validate_item({"name": "Idli", "isSpicy": "yes", "isAvailable": "false"})
        assert item.is_spicy is True
        assert item.is_available is False

    def test_extracted_item_object(self):
        src = ExtractedItem(source="ocr", name="  Hoppers ", price=250.0, confidence=0.8,
                            confidence_scale=CONFIDENCE_RATIO)
        item = validate_item(src, currency="USD")
        assert item.name == "Hoppers"
        assert item.currency == "USD"
        assert item.confidence == 80.0


class TestConfidence:
    @pytest.mark.parametrize("raw,scale,expected", [
        (0.4, CONFIDENCE_RATIO, 40.0),
        (1.0, CONFIDENCE_RATIO, 100.0),
        (95, "percent", 95.0),
        (250, "percent", 100.0),
        (0, "percent", 0.1),
        (-3, None, 0.1),
        ("n/a", None, 0.1),
        (float("nan"), None, 0.1),
    ])
    def test_confidence(self, raw, scale, expected):
        item = validate_item({"name": "x", "confidence": raw, "confidenceScale": scale})
        assert item.confidence == expected


class TestLists:
    def test_ingredients(self):
        raw = [" crab ", "crab", "", "coconut"] + [f"spice {i}" for i in range(20)]
        item = validate_item({"name": "x", "ingredients": raw})
        assert item.ingredients[:2] == ["crab", "coconut"]
        assert len(item.ingredients) == 15

    def test_tags(self):
        item = validate_item({"name": "x", "dietaryTags": ["Spicy", "Spicy", " Halal "]})
        assert item.dietary_tags == ["Spicy", "Halal"]


class TestStructure:
    def test_empty_categories_dropped(self):
        cats = validate_menu_structure([
            {"name": "Soups", "items": []},
            {"name": "", "items": [{"name": "Idli", "price": 180}]},
        ])
        assert [c.name for c in cats] == ["Uncategorized"]

    def test_idempotent(self):
        raw = [
            ExtractedCategory(name="Breakfast", items=[
                ExtractedItem(source="ocr", name="Hoppers", price=250.0, confidence=0.8,
                              confidence_scale=CONFIDENCE_RATIO, ingredients=["rice flour"]),
            ]),
            {"name": "Curries", "items": [{"name": "Crab Curry", "price": "1200", "confidence": 150}]},
        ]
        once = validate_menu_structure(raw)
        twice = validate_menu_structure(once)
        assert once == twice
        assert [c.to_dict() for c in once] == [c.to_dict() for c in twice]
        assert once[0].items[0].confidence == 80.0

    def test_none_input(self):
        assert validate_menu_structure(None) == []


class TestFinalizeDocument:
    def test_completed(self):
        doc = MenuDocument(
            source_type="text", source_value="x",
            categories=[{"name": "Breakfast", "items": [{"name": "Idli", "price": 180}]}],
            confidence=140.0,
        )
        finalize_document(doc)
        assert doc.processing_status == STATUS_COMPLETED
        assert doc.confidence == 100.0
        assert doc.total_items == 1

    def test_failed_when_empty(self):
        doc = MenuDocument(source_type="url", source_value="https://x.lk",
                           categories=[{"name": "Soups", "items": []}], confidence=55.0)
        finalize_document(doc)
        assert doc.processing_status == STATUS_FAILED
        assert doc.categories == []
        assert doc.confidence == 0.0

    def test_to_dict_shape(self):
        doc = finalize_document(MenuDocument(
            source_type="text", source_value="x",
            categories=[{"name": "Breakfast", "items": [{"name": "Idli", "price": 180}]}],
        ))
        d = doc.to_dict()
        assert d["source"] == {"type": "text", "value": "x"}
        assert d["processingStatus"] == "completed"
        assert d["totalItems"] == 1
        assert d["categories"][0]["items"][0]["isAvailable"] is True

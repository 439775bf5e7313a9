"""
Day 92 -- Heuristic text parser (OCR / pasted text -> categorized items).

Covers:
  Items:
  - "Chicken Biryani 950 LKR" / "Vegetable Curry Rs 450" end to end
  - price substring removed from the name
  - dot leaders and list numbering stripped
  - lines with a price but no usable name skipped
  - veg / spicy inference from keywords
  - meat or fish terms win over veg terms; "Non-Veg" is not a veg label

  Categories:
  - keyword headers start a new category (title-cased)
  - header-looking line with a price is an item, not a header
  - items before any header go to the default category
  - empty categories never emitted

  Bilingual:
  - "Tamil (English)" split into both names
  - reference dish fills the missing Tamil name

  Descriptions:
  - short plain line after an item becomes its description
  - sentence-case prose with a category word stays a description
  - contact / url lines dropped

  Robustness:
  - empty / None input returns []
  - languages_from_hint parsing
"""

from __future__ import annotations

import pytest

from extraction.menu_types import CONFIDENCE_RATIO
from extraction.parsers.menu_vocab import dietary_tags, infer_is_veg
from extraction.text_parser import (
    build_item,
    clean_category_name,
    is_category_header,
    languages_from_hint,
    parse_menu_text,
)


def _items(categories):
    return [it for c in categories for it in c.items]


class TestItems:
    def test_two_line_example(self):
        cats = parse_menu_text("Chicken Biryani 950 LKR\nVegetable Curry Rs 450")
        assert [c.name for c in cats] == ["Main Course"]
        biryani, curry = cats[0].items

        assert biryani.name == "Chicken Biryani"
        assert biryani.price == 950.0
        assert biryani.is_veg is False
        assert biryani.category == "Main Course"
        assert biryani.source == "ocr"

        assert curry.name == "Vegetable Curry"
        assert curry.price == 450.0
        assert curry.is_veg is True
        assert curry.is_spicy is True

    def test_confidence_is_ratio_scale(self):
        cats = parse_menu_text("Chicken Biryani 950 LKR\nVegetable Curry Rs 450")
        biryani, curry = cats[0].items
        assert biryani.confidence_scale == CONFIDENCE_RATIO
        # exact reference dish -> base + max bonus
        assert biryani.confidence == pytest.approx(0.8)
        # no reference dish -> base only
        assert curry.confidence == pytest.approx(0.4)

    def test_dot_leaders_and_numbering(self):
        items = _items(parse_menu_text("1. Idli 180\nMasala Dosa ........ 450"))
        assert [(i.name, i.price) for i in items] == [("Idli", 180.0), ("Masala Dosa", 450.0)]

    def test_price_only_line_skipped(self):
        items = _items(parse_menu_text("1200\nPuttu 350/-"))
        assert [i.name for i in items] == ["Puttu"]

    def test_provenance_records_rule(self):
        item = _items(parse_menu_text("Puttu 350/-"))[0]
        assert item.provenance["matched_rule"] == "slash_dash_suffix"
        assert item.provenance["line_no"] == 0


class TestVegInference:
    def test_non_veg_label(self):
        item = _items(parse_menu_text("Non-Veg Kottu 950"))[0]
        assert item.is_veg is False
        assert "Vegetarian" not in item.dietary_tags
        assert "Non-Veg" in item.dietary_tags

    def test_meat_beats_vegetable(self):
        item = _items(parse_menu_text("Chicken & Vegetable Fried Rice 1200"))[0]
        assert item.is_veg is False
        assert "Vegetarian" not in item.dietary_tags

    def test_vocab_helpers(self):
        assert infer_is_veg("Veg Kottu")
        assert not infer_is_veg("Egg Hoppers")
        assert not infer_is_veg("Non Vegetarian Platter")
        assert dietary_tags("Non-Veg Special") == []
        assert dietary_tags("Veg Kottu") == ["Vegetarian"]


class TestCategories:
    MENU = "\n".join([
        "BIRIYANI",
        "Chicken Biriyani Rs. 1100",
        "Mutton Biriyani Rs. 1300",
        "DESSERTS",
        "Watalappan 250",
    ])

    def test_headers_group_items(self):
        cats = parse_menu_text(self.MENU)
        assert [c.name for c in cats] == ["Biriyani", "Desserts"]
        assert [i.name for i in cats[0].items] == ["Chicken Biriyani", "Mutton Biriyani"]
        assert cats[1].items[0].category == "Desserts"

    def test_header_with_price_is_item(self):
        assert not is_category_header("Fried Rice 650")
        assert is_category_header("Fried Rice")

    def test_long_line_is_not_header(self):
        assert not is_category_header("Rice " * 20)

    def test_default_category_before_first_header(self):
        cats = parse_menu_text("Vadai 60\nSOUPS\nOdiyal Kool 400")
        assert [c.name for c in cats] == ["Main Course", "Soups"]

    def test_header_without_items_not_emitted(self):
        cats = parse_menu_text("SOUPS\nDESSERTS\nWatalappan 250")
        assert [c.name for c in cats] == ["Desserts"]

    def test_clean_category_name(self):
        assert clean_category_name("~~ SHORT EATS ~~") == "Short Eats"
        assert clean_category_name("கறி வகைகள்") == "கறி வகைகள்"


class TestBilingual:
    def test_tamil_english_pair(self):
        item = _items(parse_menu_text("நண்டு கறி (Crab Curry) Rs. 1200"))[0]
        assert item.tamil_name == "நண்டு கறி"
        assert item.english_name == "Crab Curry"
        assert item.name == "Crab Curry"
        assert item.is_veg is False
        assert item.confidence == pytest.approx(0.8)

    def test_reference_fills_tamil_name(self):
        item = build_item("Hoppers", 250.0, category="Breakfast")
        assert item.english_name == "Hoppers"
        assert item.tamil_name == "அப்பம்"
        assert item.provenance["reference_dish"] == "Hoppers"


class TestDescriptions:
    def test_description_attached(self):
        item = _items(parse_menu_text("Hoppers 250\nServed with coconut sambol"))[0]
        assert item.description == "Served with coconut sambol"

    def test_prose_with_category_word_is_description(self):
        cats = parse_menu_text("Hoppers 250\nServed with rice and curry\nIdli 180")
        assert [c.name for c in cats] == ["Main Course"]
        hoppers, idli = cats[0].items
        assert hoppers.description == "Served with rice and curry"
        assert idli.category == "Main Course"

    def test_title_case_header_after_item(self):
        cats = parse_menu_text("Hoppers 250\nRice and Curry\nChicken Curry 900")
        assert [c.name for c in cats] == ["Main Course", "Rice And Curry"]
        assert cats[0].items[0].description == ""

    def test_contact_lines_dropped(self):
        text = "Tel: 021 222 3333\nwww.jaffnakitchen.lk\nHoppers 250"
        items = _items(parse_menu_text(text))
        assert [i.name for i in items] == ["Hoppers"]


class TestRobustness:
    @pytest.mark.parametrize("text", ["", None, "\n\n  \n", "!!!! ???"])
    def test_garbage_returns_empty(self, text):
        assert parse_menu_text(text) == []

    def test_languages_from_hint(self):
        assert languages_from_hint("eng+tam") == ["eng", "tam"]
        assert languages_from_hint("TAM, eng") == ["tam", "eng"]
        assert languages_from_hint(None) == ["eng", "tam"]
        assert languages_from_hint("eng") == ["eng"]

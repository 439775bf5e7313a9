"""
Day 93 -- Fuzzy name matching and dish confidence.

Covers:
  fuzzy_match:
  - identical names (case / punctuation insensitive) -> 1.0
  - substring score 0.5 + 0.5 * len ratio
  - word overlap score
  - symmetric in its arguments
  - empty input -> 0.0

  Reference dishes:
  - English and Tamil names both match
  - below-threshold names return (None, 0.0)

  dish_confidence:
  - unknown dish -> base 0.4
  - exact reference dish -> 0.8
  - partial match lands between the two
  - match_bonus bounds
"""

from __future__ import annotations

import pytest

from extraction.scoring.confidence import (
    BASE_CONFIDENCE,
    best_reference_match,
    dish_confidence,
    fuzzy_match,
    is_fuzzy_match,
    match_bonus,
)


class TestFuzzyMatch:
    def test_identical_after_normalization(self):
        assert fuzzy_match("String-Hoppers!", "string hoppers") == 1.0

    def test_substring_score(self):
        # "hoppers" (7) inside "string hoppers" (14)
        assert fuzzy_match("Hoppers", "String Hoppers") == pytest.approx(0.75)

    def test_word_overlap(self):
        # {fish, curry} vs {prawn, curry} -> 1/3
        assert fuzzy_match("Fish Curry", "Prawn Curry") == pytest.approx(1 / 3, abs=1e-4)

    @pytest.mark.parametrize("a,b", [
        ("Hoppers", "Egg Hoppers"),
        ("Crab Curry", "Jaffna Crab Curry"),
        ("Kottu", "Chicken Kottu Roti"),
        ("அப்பம்", "முட்டை அப்பம்"),
    ])
    def test_symmetric(self, a, b):
        assert fuzzy_match(a, b) == fuzzy_match(b, a)

    @pytest.mark.parametrize("a,b", [("", "Hoppers"), ("Hoppers", ""), ("  ", "...")])
    def test_empty(self, a, b):
        assert fuzzy_match(a, b) == 0.0

    def test_threshold(self):
        assert is_fuzzy_match("Crab Curry", "Jaffna Crab Curry")
        assert not is_fuzzy_match("Pizza", "Hoppers")


class TestReferenceMatch:
    def test_english(self):
        dish, strength = best_reference_match("Jaffna Crab Curry")
        assert dish["tamil"] == "நண்டு கறி"
        assert strength == 1.0

    def test_tamil(self):
        dish, strength = best_reference_match("அப்பம்")
        assert dish["english"] == "Hoppers"
        assert strength == 1.0

    def test_no_match(self):
        assert best_reference_match("Margherita Pizza") == (None, 0.0)

    def test_custom_references(self):
        refs = [{"english": "Kool", "tamil": "", "category": "Soup"}]
        dish, _ = best_reference_match("Odiyal Kool", refs)
        assert dish is refs[0]


class TestDishConfidence:
    def test_unknown_dish_gets_base(self):
        assert dish_confidence("Margherita Pizza") == BASE_CONFIDENCE

    def test_exact_reference(self):
        assert dish_confidence("Watalappan") == pytest.approx(0.8)

    def test_partial_reference(self):
        c = dish_confidence("Egg Hoppers")
        assert BASE_CONFIDENCE + 0.2 <= c < 0.8

    def test_match_bonus_bounds(self):
        assert match_bonus(0.49) == 0.0
        assert match_bonus(0.5) == pytest.approx(0.2)
        assert match_bonus(1.0) == pytest.approx(0.4)
        assert match_bonus(1.5) == pytest.approx(0.4)

"""
Menu vocabulary — keyword lists (English + Tamil) shared by the text parser,
the markup extractor and the vision normalizer, plus the reference dish list
used for fuzzy-match confidence.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

# Tamil Unicode block
TAMIL_RX = re.compile(r"[\u0B80-\u0BFF]+(?:\s+[\u0B80-\u0BFF]+)*")
_NON_VEG_LABEL_RX = re.compile(r"\bnon[\s-]?veg(?:etarian)?\b", re.IGNORECASE)

CATEGORY_KEYWORDS: List[str] = [
    # generic
    "appetizer", "starter", "soup", "salad", "main", "entree", "pasta", "pizza",
    "dessert", "beverage", "drink", "coffee", "tea", "juice", "lassi",
    "breakfast", "lunch", "dinner", "special", "combo", "platter", "snacks",
    "sandwiches", "cakes", "short eats",
    # Sri Lankan / South Indian
    "biryani", "biriyani", "kottu", "koththu", "rice", "noodles", "curry",
    "curries", "grill", "fried", "seafood", "dosa", "thosai", "idiyappam",
    "puttu", "idli", "vada", "paratha", "naan", "gravy", "devilled",
    # Tamil script
    "உணவு", "சோறு", "கறி", "குழம்பு", "இனிப்பு", "பானம்", "சிற்றுண்டி",
]

NON_VEG_KEYWORDS: List[str] = [
    "non-veg", "non veg", "nonveg", "non-vegetarian", "non vegetarian",
    "chicken", "mutton", "lamb", "beef", "pork", "fish", "prawn", "prawns",
    "shrimp", "crab", "cuttlefish", "squid", "seer", "tuna", "egg", "meat",
    "kothu chicken", "seafood",
    "கோழி", "மட்டன்", "ஆட்டு", "மீன்", "இறால்", "நண்டு", "முட்டை", "இறைச்சி",
]

SPICY_KEYWORDS: List[str] = [
    "spicy", "hot", "chili", "chilli", "pepper", "devilled", "masala", "curry",
    "kari", "sambol",
    "காரம்", "கார", "கறி", "மிளகு",
]

POPULAR_KEYWORDS: List[str] = [
    "special", "chef", "chef's", "signature", "famous", "best", "popular",
    "house", "recommended", "must try", "favourite", "favorite",
    "சிறப்பு",
]

INGREDIENT_KEYWORDS: List[str] = [
    "chicken", "mutton", "fish", "prawn", "crab", "beef", "egg", "cuttlefish",
    "rice", "noodles", "kottu", "roti", "naan", "dosa", "coconut", "spices",
    "vegetables", "onion", "tomato", "potato", "paneer", "dhal", "brinjal",
    "cheese", "garlic", "mushroom", "tamarind", "curry leaves", "palmyra",
    "கோழி", "மட்டன்", "மீன்", "இறால்", "நண்டு", "தேங்காய்",
]

# tag -> keywords
DIETARY_TAG_KEYWORDS: Dict[str, List[str]] = {
    "Halal": ["halal", "ஹலால்"],
    "Spicy": ["spicy", "hot", "காரம்", "கார"],
    "Vegetarian": ["vegetarian", "veg", "vegan", "சைவ"],
    "Seafood": ["seafood", "fish", "prawn", "crab", "cuttlefish", "மீன்", "இறால்", "நண்டு"],
    "Gluten-Free": ["gluten free", "gluten-free"],
}

# Reference dishes for confidence scoring. English / Tamil / usual category.
REFERENCE_DISHES: List[Dict[str, str]] = [
    {"english": "Jaffna Crab Curry", "tamil": "நண்டு கறி", "category": "Seafood"},
    {"english": "Hoppers", "tamil": "அப்பம்", "category": "Breakfast"},
    {"english": "String Hoppers", "tamil": "இடியாப்பம்", "category": "Breakfast"},
    {"english": "Brinjal Curry", "tamil": "கத்தரிக்காய் கறி", "category": "Vegetarian"},
    {"english": "Mutton Curry", "tamil": "ஆட்டுக்கறி", "category": "Main Course"},
    {"english": "Fish Curry", "tamil": "மீன் கறி", "category": "Seafood"},
    {"english": "Odiyal Kool", "tamil": "ஒடியல் கூழ்", "category": "Soup"},
    {"english": "Puttu", "tamil": "புட்டு", "category": "Breakfast"},
    {"english": "Idli", "tamil": "இட்லி", "category": "Breakfast"},
    {"english": "Dosa", "tamil": "தோசை", "category": "Breakfast"},
    {"english": "Masala Dosa", "tamil": "மசாலா தோசை", "category": "Breakfast"},
    {"english": "Vadai", "tamil": "வடை", "category": "Snacks"},
    {"english": "Chicken Kottu", "tamil": "கோழி கொத்து", "category": "Main Course"},
    {"english": "Chicken Biryani", "tamil": "கோழி பிரியாணி", "category": "Main Course"},
    {"english": "Prawn Curry", "tamil": "இறால் கறி", "category": "Seafood"},
    {"english": "Dhal Curry", "tamil": "பருப்பு கறி", "category": "Vegetarian"},
    {"english": "Watalappan", "tamil": "வட்டிலப்பம்", "category": "Desserts"},
]


def is_tamil(text: str) -> bool:
    return bool(TAMIL_RX.search(text or ""))


def extract_tamil_text(text: str) -> str:
    return " ".join(TAMIL_RX.findall(text or "")).strip()


def strip_tamil_text(text: str) -> str:
    return re.sub(r"\s{2,}", " ", TAMIL_RX.sub(" ", text or "")).strip()


_KW_RX_CACHE: Dict[str, "re.Pattern[str]"] = {}


def _kw_rx(keyword: str) -> "re.Pattern[str]":
    rx = _KW_RX_CACHE.get(keyword)
    if rx is None:
        rx = re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE)
        _KW_RX_CACHE[keyword] = rx
    return rx


def contains_keyword(text: str, keyword: str) -> bool:
    """
    Whole-word match for Latin keywords ("egg" must not hit "eggplant").
    Tamil keywords use a plain substring test: vowel signs are not word
    characters for `re`, so \\b would split Tamil words apart.
    """
    if not text or not keyword:
        return False
    if keyword.isascii():
        return bool(_kw_rx(keyword).search(text))
    return keyword in text


def has_any_keyword(text: str, keywords: Iterable[str]) -> bool:
    return any(contains_keyword(text, kw) for kw in keywords)


def is_category_header_text(text: str) -> bool:
    """Any category keyword, or a substring hit for plural/compound headers ("Biriyanies")."""
    low = (text or "").lower()
    for kw in CATEGORY_KEYWORDS:
        if kw.isascii():
            if kw in low:
                return True
        elif kw in text:
            return True
    return False


def infer_is_veg(text: str) -> bool:
    """Vegetarian unless a meat, fish or egg term (or an explicit non-veg label) appears."""
    return not has_any_keyword(text, NON_VEG_KEYWORDS)


def infer_is_spicy(text: str) -> bool:
    return has_any_keyword(text, SPICY_KEYWORDS)


def infer_is_popular(text: str) -> bool:
    return has_any_keyword(text, POPULAR_KEYWORDS)


def extract_ingredients(text: str, limit: int = 15) -> List[str]:
    out: List[str] = []
    for kw in INGREDIENT_KEYWORDS:
        if contains_keyword(text, kw) and kw not in out:
            out.append(kw)
    return out[:limit]


def dietary_tags(text: str, *, is_veg: Optional[bool] = None, is_spicy: Optional[bool] = None) -> List[str]:
    tags: List[str] = []
    # "Non-Veg" must not count as a "veg" hit
    plain = _NON_VEG_LABEL_RX.sub(" ", text or "")
    for tag, kws in DIETARY_TAG_KEYWORDS.items():
        if has_any_keyword(plain, kws):
            tags.append(tag)
    if is_spicy and "Spicy" not in tags:
        tags.append("Spicy")
    if is_veg is True and "Vegetarian" not in tags:
        tags.append("Vegetarian")
    if is_veg is False:
        if "Vegetarian" in tags:
            tags.remove("Vegetarian")
        tags.append("Non-Veg")
    return tags

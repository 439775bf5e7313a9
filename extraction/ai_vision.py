# extraction/ai_vision.py
"""
Vision Normalizer — sends a menu image (plus optional OCR text as context) to a
vision-capable model and normalizes the JSON items it returns.

Backends:
    AnthropicVisionBackend   Claude messages API, base64 image block (primary)
    OpenAIVisionBackend      chat completions, data-URL image (secondary)

Usage:
    from extraction.ai_vision import AnthropicVisionBackend, VisionNormalizer

    normalizer = VisionNormalizer(AnthropicVisionBackend(api_key=...))
    items = normalizer.extract_items(image_bytes, "image/jpeg", ocr_text=text)
    # -> List[ExtractedItem] (source="vision"); [] when unconfigured or unparsable

Network failures surface as NetworkError / NetworkTimeoutError after the
shared retry helper gives up; the provider chain treats them as a failed
provider.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import re
import threading
from typing import Any, Callable, Dict, List, Optional

import anthropic
import openai

from .config import is_placeholder_key
from .errors import ConfigurationError, NetworkError, NetworkTimeoutError, ParseError
from .menu_types import CONFIDENCE_PERCENT, ExtractedItem
from .parsers import menu_vocab as vocab
from .parsers.price_parser import coerce_price
from .retry import call_with_retry

log = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 75.0
MAX_INGREDIENTS = 15
MAX_DESCRIPTION = 300
MAX_OCR_CONTEXT = 6000

# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------
_SYSTEM_PROMPT = """\
You are a restaurant menu digitizer for Sri Lankan and Jaffna Tamil menus. You \
receive a photo of a printed or handwritten menu, sometimes with noisy OCR text \
of the same page.

Rules:
1. Extract ONLY dishes a customer can order. Skip headings, phone numbers, \
addresses, opening hours and decorative text.
2. Give both names when possible: "name_tamil" in Tamil script, "name_english" \
in English. Transliterate if only one script is printed.
3. "price" is a number in {currency}, without currency symbols. Use 0 if no price \
is visible.
4. "ingredients" is an array of at most 15 main ingredients.
5. "isVeg" and "isSpicy" are booleans. "dietaryTags" uses labels such as \
"Vegetarian", "Non-Veg", "Spicy", "Halal", "Seafood", "Gluten-Free".
6. "confidence" is your certainty for the item from 0 to 100.
7. "category" is the menu section the dish is printed under, if any.

Output ONLY a JSON array. No markdown, no explanation.\
"""

_USER_PROMPT_TEMPLATE = """\
Extract every menu item from this image.
{ocr_context}
Return JSON like:
[
  {{"name_tamil": "நண்டு குழம்பு", "name_english": "Jaffna Crab Curry", "price": 1200,
    "description_english": "Crab cooked in roasted Jaffna curry powder",
    "ingredients": ["crab", "coconut", "tamarind"], "isVeg": false, "isSpicy": true,
    "dietaryTags": ["Non-Veg", "Spicy", "Seafood"], "confidence": 90, "category": "Seafood"}},
  {{"name_tamil": "அப்பம்", "name_english": "Hoppers", "price": 250,
    "description_english": "Rice flour and coconut milk pancakes",
    "ingredients": ["rice flour", "coconut milk"], "isVeg": true, "isSpicy": false,
    "dietaryTags": ["Vegetarian"], "confidence": 85, "category": "Breakfast"}}
]"""


def build_prompt(ocr_text: Optional[str] = None, *, currency: str = "LKR") -> Dict[str, str]:
    ctx = ""
    text = (ocr_text or "").strip()
    if text:
        if len(text) > MAX_OCR_CONTEXT:
            text = text[:MAX_OCR_CONTEXT] + "\n[... truncated ...]"
        ctx = f"\nOCR text of the same page (may contain errors):\n---\n{text}\n---\n"
    return {
        "system": _SYSTEM_PROMPT.format(currency=currency),
        "user": _USER_PROMPT_TEMPLATE.format(ocr_context=ctx),
    }


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------
def strip_code_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json|JSON)?\s*\n?", "", s)
        s = re.sub(r"\n?```\s*$", "", s)
    return s.strip()


def parse_items_json(text: str) -> List[Dict[str, Any]]:
    """JSON array (or {"items": [...]}) from a model reply. Raises ParseError."""
    s = strip_code_fences(text)
    if not s:
        raise ParseError("empty model response")
    try:
        data = json.loads(s)
    except json.JSONDecodeError:
        # tolerate a sentence before/after the array
        start, end = s.find("["), s.rfind("]")
        if start < 0 or end <= start:
            raise ParseError("model response is not JSON")
        try:
            data = json.loads(s[start:end + 1])
        except json.JSONDecodeError as e:
            raise ParseError(f"model response is not JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise ParseError("model response is not a JSON array")
    return [it for it in data if isinstance(it, dict)]


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------
def _str(v: Any) -> str:
    return " ".join(str(v).split()) if v is not None else ""


def _split_ingredients(raw: Any) -> List[str]:
    if isinstance(raw, str):
        parts = re.split(r"[,;|]", raw)
    elif isinstance(raw, list):
        parts = raw
    else:
        parts = []
    out: List[str] = []
    for p in parts:
        s = _str(p)
        if s:
            out.append(s)
    return out[:MAX_INGREDIENTS]


def _flag(raw: Dict[str, Any], key: str) -> Optional[bool]:
    v = raw.get(key)
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("true", "yes", "1"):
            return True
        if low in ("false", "no", "0"):
            return False
        return None
    if isinstance(v, (int, float)):
        return bool(v)
    return None


def _confidence(v: Any) -> float:
    if v is None or isinstance(v, bool):
        return DEFAULT_CONFIDENCE
    try:
        c = float(v)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(c):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(100.0, c))


def normalize_vision_item(raw: Dict[str, Any], *, currency: str = "LKR") -> Optional[ExtractedItem]:
    """Apply the field rules to one model item; None if it has no usable name."""
    tamil = _str(raw.get("name_tamil") or raw.get("tamilName")) or None
    english = _str(raw.get("name_english") or raw.get("englishName") or raw.get("name")) or None
    if not tamil and not english:
        return None

    serialized = json.dumps(raw, ensure_ascii=False)

    is_veg = _flag(raw, "isVeg")
    if is_veg is None:
        is_veg = not vocab.has_any_keyword(serialized, vocab.NON_VEG_KEYWORDS)
    is_spicy = _flag(raw, "isSpicy")
    if is_spicy is None:
        is_spicy = vocab.infer_is_spicy(serialized)

    tags_raw = raw.get("dietaryTags")
    if isinstance(tags_raw, list):
        tags = [t for t in (_str(x) for x in tags_raw) if t]
    else:
        tags = vocab.dietary_tags(serialized, is_veg=is_veg, is_spicy=is_spicy)

    description = _str(raw.get("description_english") or raw.get("description"))[:MAX_DESCRIPTION]

    return ExtractedItem(
        source="vision",
        name=english or tamil or "",
        price=coerce_price(raw.get("price")),
        currency=currency,
        description=description,
        tamil_name=tamil,
        english_name=english,
        category=_str(raw.get("category")) or None,
        ingredients=_split_ingredients(raw.get("ingredients")),
        is_veg=is_veg,
        is_spicy=is_spicy,
        is_popular=vocab.infer_is_popular(f"{english or ''} {description}"),
        dietary_tags=tags,
        confidence=_confidence(raw.get("confidence")),
        confidence_scale=CONFIDENCE_PERCENT,
    )


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
class VisionBackend:
    """One vision model endpoint. complete() returns the model's raw text reply."""

    name = "vision"

    def __init__(self, *, api_key: Optional[str], model: str, timeout: float = 10.0, max_tokens: int = 4000):
        self.api_key = (api_key or "").strip() or None
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = None
        self._client_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return not is_placeholder_key(self.api_key)

    def _get_client(self):
        if not self.configured:
            raise ConfigurationError(f"{self.name}: API key missing or placeholder")
        with self._client_lock:
            if self._client is None:
                self._client = self._make_client()
            return self._client

    def _make_client(self):  # pragma: no cover - overridden
        raise NotImplementedError

    def complete(self, image_bytes: bytes, mime_type: str, prompt: Dict[str, str]) -> str:  # pragma: no cover
        raise NotImplementedError


class AnthropicVisionBackend(VisionBackend):
    name = "anthropic"

    def _make_client(self):
        # retries are done by call_with_retry, not the SDK
        return anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    def complete(self, image_bytes: bytes, mime_type: str, prompt: Dict[str, str]) -> str:
        client = self._get_client()
        b64 = base64.standard_b64encode(image_bytes).decode("ascii")
        try:
            message = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=prompt["system"],
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "base64", "media_type": mime_type, "data": b64}},
                        {"type": "text", "text": prompt["user"]},
                    ],
                }],
            )
        except anthropic.APITimeoutError as e:
            raise NetworkTimeoutError(f"anthropic: timed out after {self.timeout}s", timeout=self.timeout) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise ConfigurationError(f"anthropic: credentials rejected ({e})") from e
        except anthropic.APIStatusError as e:
            status = getattr(e, "status_code", None)
            transient = status is not None and (status >= 500 or status == 429)
            raise NetworkError(f"anthropic: HTTP {status}", status=status, transient=transient) from e
        except anthropic.APIConnectionError as e:
            raise NetworkError(f"anthropic: connection failed ({e})") from e

        resp_text = ""
        for block in message.content:
            if hasattr(block, "text"):
                resp_text += block.text
        return resp_text


class OpenAIVisionBackend(VisionBackend):
    name = "openai"

    def __init__(self, *, api_key: Optional[str], model: str = "gpt-4o", timeout: float = 10.0,
                 max_tokens: int = 4000, temperature: float = 0.2):
        super().__init__(api_key=api_key, model=model, timeout=timeout, max_tokens=max_tokens)
        self.temperature = temperature

    def _make_client(self):
        return openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    def complete(self, image_bytes: bytes, mime_type: str, prompt: Dict[str, str]) -> str:
        client = self._get_client()
        b64 = base64.b64encode(image_bytes).decode("ascii")
        try:
            resp = client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": prompt["system"]},
                    {"role": "user", "content": [
                        {"type": "text", "text": prompt["user"]},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{b64}"}},
                    ]},
                ],
            )
        except openai.APITimeoutError as e:
            raise NetworkTimeoutError(f"openai: timed out after {self.timeout}s", timeout=self.timeout) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise ConfigurationError(f"openai: credentials rejected ({e})") from e
        except openai.APIStatusError as e:
            status = getattr(e, "status_code", None)
            transient = status is not None and (status >= 500 or status == 429)
            raise NetworkError(f"openai: HTTP {status}", status=status, transient=transient) from e
        except openai.APIConnectionError as e:
            raise NetworkError(f"openai: connection failed ({e})") from e

        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------
class VisionNormalizer:
    def __init__(
        self,
        backend: VisionBackend,
        *,
        currency: str = "LKR",
        attempts: int = 3,
        base_delay: float = 0.5,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.backend = backend
        self.currency = currency
        self.attempts = attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.backend.name

    def extract_items(self, image_bytes: bytes, mime_type: str = "image/jpeg",
                      ocr_text: Optional[str] = None) -> List[ExtractedItem]:
        if not self.backend.configured:
            log.info("No %s API key configured; skipping vision extraction", self.backend.name)
            return []
        if not image_bytes:
            return []

        prompt = build_prompt(ocr_text, currency=self.currency)
        try:
            reply = call_with_retry(
                lambda: self.backend.complete(image_bytes, mime_type, prompt),
                attempts=self.attempts,
                base_delay=self.base_delay,
                label=f"{self.backend.name} vision",
                sleep=self._sleep,
            )
        except ConfigurationError as e:
            log.warning("%s vision skipped: %s", self.backend.name, e)
            return []

        try:
            raw_items = parse_items_json(reply)
        except ParseError as e:
            log.warning("Failed to parse %s vision JSON: %s", self.backend.name, e)
            return []

        items = [it for it in (normalize_vision_item(r, currency=self.currency) for r in raw_items) if it]
        log.info("%s vision extracted %d menu items", self.backend.name, len(items))
        return items

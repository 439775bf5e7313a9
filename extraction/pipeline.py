# extraction/pipeline.py
"""
Menu extraction pipeline — the single ingestion entrypoint.

    pipeline = build_pipeline()
    doc = pipeline.extract(url="https://example.lk/menu")   # or image_bytes= / path= / text=
    doc.to_dict()  # {source, categories, rawText, extractionMethod, confidence, processingStatus, ...}

Exactly one input kind per call; anything else is a ValidationError. Every
other failure degrades into a MenuDocument (processingStatus "failed" when no
categories survive validation) instead of raising.

Flows:
    image bytes -> blob store -> OCR -> provider chain (vision, vision, OCR heuristics, default)
    path        -> PDF pages rasterized (pdf2image) or image file read -> image flow
    url         -> fetch (retry/backoff) -> image flow for image responses, else markup strategies
    text        -> heuristic text parser
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pdf2image import convert_from_path
from PIL import Image, UnidentifiedImageError

from .ai_vision import AnthropicVisionBackend, OpenAIVisionBackend, VisionNormalizer
from .blob_store import LocalBlobStore, content_type_for
from .config import Settings
from .errors import NetworkError, ValidationError
from .fallback import (
    OcrHeuristicProvider,
    ProviderChain,
    ProviderRequest,
    ProviderResult,
    VisionProvider,
    mean_item_confidence,
)
from .http_fetch import FetchResult, fetch_with_retry, looks_like_image_url, unwrap_image_redirect, validate_url
from .markup_extractor import extract_from_html
from .menu_types import METHOD_FAILED, METHOD_TEXT_HEURISTIC, MenuDocument
from .ocr_engine import RecognitionResult, TextRecognizer
from .text_parser import languages_from_hint, parse_menu_text
from .validator import finalize_document

log = logging.getLogger(__name__)

PIPELINE_VERSION = "menu-extract-v1+vision-chain+markup4"

ALLOWED_IMAGE_FORMATS = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",  # phone cameras
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}
_EXT_BY_MIME = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}

PDF_DPI = 280
PDF_MAX_PAGES = 10
PAGE_MAX_SIDE = 2400


def inspect_image(data: bytes, max_bytes: int) -> str:
    """Size + format gate for image payloads. Returns the mime type."""
    if not data:
        raise ValidationError("Image payload is empty")
    if max_bytes and len(data) > max_bytes:
        raise ValidationError(f"Image is too large ({len(data)} bytes; limit {max_bytes})")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = (img.format or "").upper()
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ValidationError(f"Unreadable image: {e}") from e
    mime = ALLOWED_IMAGE_FORMATS.get(fmt)
    if mime is None:
        raise ValidationError(f"Unsupported image format: {fmt or 'unknown'}")
    return mime


def _page_to_jpeg(page: Image.Image) -> bytes:
    img = page.convert("RGB")
    img.thumbnail((PAGE_MAX_SIDE, PAGE_MAX_SIDE))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=90)
    return buf.getvalue()


def build_provider_chain(settings: Settings) -> ProviderChain:
    """Anthropic vision -> OpenAI vision -> OCR heuristics -> (default menu)."""
    common: Dict[str, Any] = {
        "currency": settings.currency,
        "attempts": settings.retry_attempts,
        "base_delay": settings.retry_base_delay,
    }
    providers = [
        VisionProvider(VisionNormalizer(
            AnthropicVisionBackend(api_key=settings.anthropic_api_key, model=settings.anthropic_model,
                                   timeout=settings.ai_timeout),
            **common,
        )),
        VisionProvider(VisionNormalizer(
            OpenAIVisionBackend(api_key=settings.openai_api_key, model=settings.openai_model,
                                timeout=settings.ai_timeout),
            **common,
        )),
        OcrHeuristicProvider(),
    ]
    return ProviderChain(providers, currency=settings.currency)


class MenuExtractionPipeline:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        recognizer: Optional[TextRecognizer] = None,
        chain: Optional[ProviderChain] = None,
        blob_store: Optional[LocalBlobStore] = None,
        fetcher: Optional[Callable[[str], FetchResult]] = None,
        pdf_loader: Optional[Callable[[Path], List[Image.Image]]] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.recognizer = recognizer
        self.chain = chain or build_provider_chain(self.settings)
        self.blob_store = blob_store
        self._fetch = fetcher or self._default_fetch
        self._load_pdf = pdf_loader or self._default_pdf_loader

    # ----- collaborators -----
    def _default_fetch(self, url: str) -> FetchResult:
        return fetch_with_retry(
            url,
            timeout=self.settings.http_timeout,
            attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
        )

    def _default_pdf_loader(self, path: Path) -> List[Image.Image]:
        return convert_from_path(
            str(path),
            dpi=PDF_DPI,
            last_page=PDF_MAX_PAGES,
            poppler_path=self.settings.poppler_path,
        )

    # ----- entrypoint -----
    def extract(
        self,
        *,
        image_bytes: Optional[bytes] = None,
        path: Optional[str] = None,
        url: Optional[str] = None,
        text: Optional[str] = None,
        filename: Optional[str] = None,
        language_hint: Optional[str] = None,
    ) -> MenuDocument:
        given = {
            k: v for k, v in (("image", image_bytes), ("path", path), ("url", url), ("text", text))
            if v is not None and v != "" and v != b""
        }
        if len(given) != 1:
            raise ValidationError(
                "Provide exactly one of: image, path, url, text"
                + (f" (got {', '.join(sorted(given))})" if given else " (got none)")
            )
        kind = next(iter(given))
        hint = language_hint or self.settings.tesseract_lang
        log.info("Menu extraction requested: %s", kind)

        if kind == "image":
            return self._from_image(
                image_bytes or b"",
                source_type="image",
                source_value=filename or "upload",
                filename=filename,
                language_hint=hint,
            )
        if kind == "path":
            return self._from_path(str(path), language_hint=hint)
        if kind == "url":
            return self._from_url(str(url), language_hint=hint)
        return self._from_text(str(text), language_hint=hint)

    # ----- flows -----
    def _store_image(self, data: bytes, mime: str, filename: Optional[str], source_type: str,
                     notes: List[str]) -> Optional[str]:
        if self.blob_store is None:
            return None
        ext = _EXT_BY_MIME.get(mime, ".jpg")
        name = filename or f"menu{ext}"
        if content_type_for(name) != mime:
            name = f"{Path(name).stem or 'menu'}{ext}"
        try:
            return self.blob_store.upload(data, name, {"source": source_type, "contentType": mime})
        except OSError as e:
            log.warning("Could not store menu image: %s", e)
            notes.append(f"image not stored: {e}")
            return None

    def _from_image(
        self,
        data: bytes,
        *,
        source_type: str,
        source_value: str,
        filename: Optional[str] = None,
        language_hint: Optional[str] = None,
        ocr: Optional[RecognitionResult] = None,
    ) -> MenuDocument:
        mime = inspect_image(data, self.settings.max_image_bytes)
        notes: List[str] = []
        image_id = self._store_image(data, mime, filename, source_type, notes)

        if ocr is None:
            ocr = self.recognizer.recognize(data) if self.recognizer is not None else RecognitionResult.failed()
        if ocr.method == METHOD_FAILED:
            notes.append("OCR unavailable or failed")

        result = self.chain.run(ProviderRequest(
            image_bytes=data,
            mime_type=mime,
            ocr_text=ocr.text,
            ocr_confidence=ocr.confidence,
            language_hint=language_hint,
        ))
        if image_id:
            for cat in result.categories:
                for it in cat.items:
                    it.image = it.image or image_id

        raw_text = ocr.text or f"No OCR text ({ocr.method}); extracted by {result.provider or result.method}"
        doc = MenuDocument(
            source_type=source_type,
            source_value=source_value,
            categories=result.categories,
            raw_text=raw_text,
            extraction_method=result.method,
            confidence=result.confidence,
            image_id=image_id,
            notes=notes + result.notes + _attempt_notes(result),
        )
        return finalize_document(doc, currency=self.settings.currency)

    def _from_path(self, path: str, *, language_hint: Optional[str]) -> MenuDocument:
        p = Path(path)
        if not p.is_file():
            raise ValidationError(f"File not found: {path}")

        if p.suffix.lower() != ".pdf":
            return self._from_image(
                p.read_bytes(), source_type="path", source_value=str(p),
                filename=p.name, language_hint=language_hint,
            )

        try:
            pages = self._load_pdf(p)
        except Exception as e:
            log.warning("PDF rasterization failed for %s: %s", p, e)
            return self._failed("path", str(p), f"PDF processing failed: {e}")
        if not pages:
            return self._failed("path", str(p), "PDF has no pages")

        ocr = self.recognizer.recognize_pages(pages) if self.recognizer is not None else RecognitionResult.failed()
        first = _page_to_jpeg(pages[0])
        return self._from_image(
            first, source_type="path", source_value=str(p),
            filename=p.stem + ".jpg", language_hint=language_hint, ocr=ocr,
        )

    def _from_url(self, url: str, *, language_hint: Optional[str]) -> MenuDocument:
        url = unwrap_image_redirect(validate_url(url))
        try:
            fetched = self._fetch(url)
        except NetworkError as e:
            log.warning("URL fetch failed for %s: %s", url, e)
            return self._failed("url", url, f"URL processing failed: {e}")

        if fetched.is_image or looks_like_image_url(fetched.url):
            try:
                inspect_image(fetched.content, 0)
                is_image = True
            except ValidationError:
                is_image = fetched.is_image
            if is_image:
                name = Path(fetched.url.split("?")[0]).name or None
                return self._from_image(
                    fetched.content, source_type="url", source_value=url,
                    filename=name, language_hint=language_hint,
                )

        markup = extract_from_html(fetched.text, fetched.url or url)
        notes = [f"{a['strategy']}: {a['items']} items (confidence {a['confidence']})" for a in markup.attempts]
        raw_text = markup.raw_text or "No text content found on page"
        doc = MenuDocument(
            source_type="url",
            source_value=url,
            categories=markup.categories,
            raw_text=raw_text,
            extraction_method=markup.method,
            confidence=markup.confidence,
            notes=notes,
        )
        return finalize_document(doc, currency=self.settings.currency)

    def _from_text(self, text: str, *, language_hint: Optional[str]) -> MenuDocument:
        categories = parse_menu_text(text, languages=languages_from_hint(language_hint), source="ocr")
        doc = MenuDocument(
            source_type="text",
            source_value=text[:200],
            categories=categories,
            raw_text=text,
            extraction_method=METHOD_TEXT_HEURISTIC if categories else METHOD_FAILED,
            confidence=mean_item_confidence(categories),
            notes=[] if categories else ["No menu items recognized in text"],
        )
        return finalize_document(doc, currency=self.settings.currency)

    def _failed(self, source_type: str, source_value: str, reason: str) -> MenuDocument:
        doc = MenuDocument(
            source_type=source_type,
            source_value=source_value,
            categories=[],
            raw_text=reason,
            extraction_method=METHOD_FAILED,
            notes=[reason],
        )
        return finalize_document(doc, currency=self.settings.currency)

    # ----- diagnostics -----
    def health(self) -> Dict[str, Any]:
        poppler = self.settings.poppler_path or ""
        return {
            "pipeline_version": PIPELINE_VERSION,
            "ocr": self.recognizer.health() if self.recognizer is not None else {"ready": False},
            "providers": [getattr(p, "name", type(p).__name__) for p in self.chain.providers],
            "vision_configured": {
                "anthropic": bool(self.settings.anthropic_api_key),
                "openai": bool(self.settings.openai_api_key),
            },
            "poppler": {"path_env": poppler, "present": bool(poppler and Path(poppler).exists())},
        }


def _attempt_notes(result: ProviderResult) -> List[str]:
    out: List[str] = []
    for a in result.attempts:
        if a.get("outcome") == "error":
            out.append(f"{a['provider']} failed: {a.get('error')}")
        elif a.get("outcome") == "empty":
            out.append(f"{a['provider']} returned no items")
    return out


def build_pipeline(settings: Optional[Settings] = None) -> MenuExtractionPipeline:
    settings = settings or Settings.from_env()
    recognizer = TextRecognizer(
        lang=settings.tesseract_lang,
        config=settings.tesseract_config,
        tesseract_cmd=settings.tesseract_cmd,
        timeout=settings.ocr_timeout,
    )
    return MenuExtractionPipeline(
        settings=settings,
        recognizer=recognizer,
        blob_store=LocalBlobStore(settings.blob_dir),
    )

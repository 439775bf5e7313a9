# extraction/ocr_engine.py
"""
Text Recognizer — Tesseract wrapper for menu images.

- Multi-script (default "eng+tam"), psm 6: one uniform block of text.
- OpenCV cleanup before recognition (grayscale, median blur, adaptive
  threshold, deskew).
- The engine is resolved lazily, once per TextRecognizer, behind a lock
  (concurrent first callers wait for the single initialization).
- Tesseract calls on one handle are serialized with a second lock.
- recognize() never raises: any failure yields
  {"text": "", "confidence": 0, "method": "failed"}.
"""

from __future__ import annotations

import io
import logging
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np
import pytesseract
from pytesseract import Output
from PIL import Image, ImageOps

log = logging.getLogger(__name__)

ENGINE_NAME = "tesseract"
METHOD_FAILED = "failed"


@dataclass
class RecognitionResult:
    text: str = ""
    confidence: float = 0.0
    method: str = METHOD_FAILED
    pages: int = 0

    @classmethod
    def failed(cls) -> "RecognitionResult":
        return cls(text="", confidence=0.0, method=METHOD_FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "confidence": self.confidence, "method": self.method}


@dataclass
class EngineHandle:
    cmd: str
    version: str
    lang: str
    available_languages: List[str] = field(default_factory=list)


def _tesseract_cmd(configured: Optional[str] = None) -> str:
    """Locate the tesseract executable on disk."""
    if configured:
        return configured
    cmd = getattr(pytesseract.pytesseract, "tesseract_cmd", "") or ""
    if cmd and cmd != "tesseract":
        return cmd
    which = shutil.which("tesseract") or shutil.which("tesseract.exe") or ""
    if which:
        return which
    for p in (
        r"C:\Program Files\Tesseract-OCR\tesseract.exe",
        r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    ):
        if Path(p).exists():
            return p
    return ""


def choose_languages(requested: str, available: Iterable[str]) -> str:
    """Keep the requested languages that are installed; 'eng' if none are."""
    avail = set(available)
    keep = [lang for lang in (requested or "").split("+") if lang and lang in avail]
    if not keep:
        return "eng"
    return "+".join(keep)


# ---------------------------------------------------------------------------
# Image preparation
# ---------------------------------------------------------------------------
def preprocess_image(img_bgr: np.ndarray) -> np.ndarray:
    gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)
    gray = cv2.medianBlur(gray, 3)
    th = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY, 31, 9
    )
    coords = cv2.findNonZero(255 - th)
    if coords is not None:
        angle = cv2.minAreaRect(coords)[-1]
        if angle < -45:
            angle = 90 + angle
        elif angle > 45:
            angle = angle - 90
        M = cv2.getRotationMatrix2D((th.shape[1] / 2, th.shape[0] / 2), angle, 1.0)
        th = cv2.warpAffine(
            th, M, (th.shape[1], th.shape[0]),
            flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE
        )
    return cv2.cvtColor(th, cv2.COLOR_GRAY2BGR)


def _pil_to_bgr(img: Image.Image) -> np.ndarray:
    rgb = np.array(ImageOps.exif_transpose(img).convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def _data_to_text(data: Dict[str, List[Any]]) -> Tuple[str, float]:
    """Rebuild line text from image_to_data output; mean word confidence (0..100)."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    order: List[Tuple[int, int, int]] = []
    confs: List[float] = []
    for i, word in enumerate(data.get("text") or []):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue
        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        if key not in lines:
            lines[key] = []
            order.append(key)
        lines[key].append(word)
        confs.append(conf)
    text = "\n".join(" ".join(lines[k]) for k in order)
    mean = round(sum(confs) / len(confs), 2) if confs else 0.0
    return text, mean


# ---------------------------------------------------------------------------
# Recognizer
# ---------------------------------------------------------------------------
class TextRecognizer:
    def __init__(
        self,
        *,
        lang: str = "eng+tam",
        config: str = "--oem 1 --psm 6",
        tesseract_cmd: Optional[str] = None,
        timeout: float = 30.0,
        preprocess: bool = True,
    ):
        self.lang = lang
        self.config = config
        self.tesseract_cmd = tesseract_cmd
        self.timeout = timeout
        self.preprocess = preprocess
        self._engine: Optional[EngineHandle] = None
        self._init_error: Optional[str] = None
        self._init_lock = threading.Lock()
        self._use_lock = threading.Lock()
        self.init_count = 0

    # ----- lifecycle -----
    def _load_engine(self) -> EngineHandle:
        cmd = _tesseract_cmd(self.tesseract_cmd)
        if not cmd:
            raise RuntimeError("tesseract executable not found (set TESSERACT_CMD)")
        pytesseract.pytesseract.tesseract_cmd = cmd
        version = str(pytesseract.get_tesseract_version())
        try:
            available = list(pytesseract.get_languages(config=""))
        except pytesseract.TesseractError as e:
            log.warning("Could not list tesseract languages: %s", e)
            available = ["eng"]
        lang = choose_languages(self.lang, available)
        if lang != self.lang:
            log.warning("Tesseract languages %r not all installed; using %r", self.lang, lang)
        return EngineHandle(cmd=cmd, version=version, lang=lang, available_languages=available)

    def _ensure_engine(self) -> EngineHandle:
        engine = self._engine
        if engine is not None:
            return engine
        with self._init_lock:
            if self._engine is None and self._init_error is None:
                self.init_count += 1
                try:
                    self._engine = self._load_engine()
                    log.info("OCR engine ready: %s %s lang=%s",
                             self._engine.cmd, self._engine.version, self._engine.lang)
                except Exception as e:
                    self._init_error = str(e) or e.__class__.__name__
                    log.warning("OCR engine init failed: %s", self._init_error)
            if self._engine is None:
                raise RuntimeError(f"OCR engine unavailable: {self._init_error}")
            return self._engine

    def close(self) -> None:
        """Drop the engine handle; the next recognize() initializes again."""
        with self._init_lock:
            self._engine = None
            self._init_error = None

    @property
    def ready(self) -> bool:
        return self._engine is not None

    # ----- recognition -----
    def _recognize_pil(self, engine: EngineHandle, img: Image.Image) -> Tuple[str, float]:
        arr = _pil_to_bgr(img)
        if self.preprocess:
            arr = preprocess_image(arr)
        with self._use_lock:
            data = pytesseract.image_to_data(
                arr,
                lang=engine.lang,
                config=self.config,
                output_type=Output.DICT,
                timeout=self.timeout,
            )
        return _data_to_text(data)

    def recognize(self, image_bytes: bytes) -> RecognitionResult:
        try:
            engine = self._ensure_engine()
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.load()
                text, conf = self._recognize_pil(engine, img)
            return RecognitionResult(text=text, confidence=conf, method=ENGINE_NAME, pages=1)
        except Exception as e:
            log.warning("OCR recognize failed: %s", e)
            return RecognitionResult.failed()

    def recognize_pages(self, images: Iterable[Image.Image]) -> RecognitionResult:
        """OCR several page images (PDF input); text joined with blank lines."""
        try:
            engine = self._ensure_engine()
            texts: List[str] = []
            confs: List[float] = []
            for img in images:
                text, conf = self._recognize_pil(engine, img)
                if text.strip():
                    texts.append(text)
                    confs.append(conf)
            mean = round(sum(confs) / len(confs), 2) if confs else 0.0
            return RecognitionResult(text="\n\n".join(texts), confidence=mean, method=ENGINE_NAME, pages=len(confs))
        except Exception as e:
            log.warning("OCR recognize_pages failed: %s", e)
            return RecognitionResult.failed()

    def health(self) -> Dict[str, Any]:
        try:
            engine = self._ensure_engine()
        except RuntimeError:
            engine = None
        cmd = engine.cmd if engine else _tesseract_cmd(self.tesseract_cmd)
        return {
            "engine": ENGINE_NAME,
            "ready": engine is not None,
            "error": self._init_error,
            "tesseract": {
                "cmd": cmd,
                "version": engine.version if engine else None,
                "found_on_disk": bool(cmd and Path(cmd).exists()),
                "lang": engine.lang if engine else self.lang,
                "languages": engine.available_languages if engine else [],
            },
            "config": self.config,
        }

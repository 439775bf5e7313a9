# extraction/config.py
"""
Runtime settings for the extraction pipeline.

Values come from the process environment; a `.env` file at the project root is
loaded first so local development does not need exported variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")

# Values people leave in .env.example copies. Treated exactly like "unset".
_PLACEHOLDER_KEYS = {
    "",
    "changeme",
    "change-me",
    "your-api-key",
    "your_api_key",
    "your-api-key-here",
    "your_anthropic_api_key",
    "your_openai_api_key",
    "sk-...",
    "sk-xxx",
    "xxx",
    "none",
    "null",
}


def is_placeholder_key(value: Optional[str]) -> bool:
    v = (value or "").strip().lower()
    if v in _PLACEHOLDER_KEYS:
        return True
    return v.startswith("your") and v.endswith("key")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"

    tesseract_cmd: Optional[str] = None
    tesseract_lang: str = "eng+tam"
    tesseract_config: str = "--oem 1 --psm 6"
    poppler_path: Optional[str] = None
    ocr_timeout: float = 30.0

    http_timeout: float = 10.0
    ai_timeout: float = 10.0
    retry_attempts: int = 3
    retry_base_delay: float = 0.5

    max_image_bytes: int = 10 * 1024 * 1024
    currency: str = "LKR"

    blob_dir: Path = ROOT / "data" / "blobs"
    upload_dir: Path = ROOT / "data" / "uploads"
    db_path: Path = ROOT / "data" / "menus.sqlite3"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        def _key(name: str) -> Optional[str]:
            raw = (env.get(name) or "").strip()
            return None if is_placeholder_key(raw) else raw

        return cls(
            anthropic_api_key=_key("ANTHROPIC_API_KEY"),
            anthropic_model=(env.get("ANTHROPIC_VISION_MODEL") or cls.anthropic_model).strip(),
            openai_api_key=_key("OPENAI_API_KEY"),
            openai_model=(env.get("OPENAI_VISION_MODEL") or cls.openai_model).strip(),
            tesseract_cmd=(env.get("TESSERACT_CMD") or "").strip() or None,
            tesseract_lang=(env.get("TESSERACT_LANG") or cls.tesseract_lang).strip(),
            tesseract_config=(env.get("TESSERACT_CONFIG") or cls.tesseract_config).strip(),
            poppler_path=(env.get("POPPLER_PATH") or "").strip() or None,
            ocr_timeout=_env_float(env, "OCR_TIMEOUT", cls.ocr_timeout),
            http_timeout=_env_float(env, "HTTP_TIMEOUT", cls.http_timeout),
            ai_timeout=_env_float(env, "AI_TIMEOUT", cls.ai_timeout),
            retry_attempts=max(1, _env_int(env, "RETRY_ATTEMPTS", cls.retry_attempts)),
            retry_base_delay=_env_float(env, "RETRY_BASE_DELAY", cls.retry_base_delay),
            max_image_bytes=_env_int(env, "MAX_IMAGE_BYTES", cls.max_image_bytes),
            currency=(env.get("MENU_CURRENCY") or cls.currency).strip().upper(),
            blob_dir=Path(env.get("BLOB_DIR") or cls.blob_dir),
            upload_dir=Path(env.get("UPLOAD_DIR") or cls.upload_dir),
            db_path=Path(env.get("MENU_DB_PATH") or cls.db_path),
            log_level=(env.get("LOG_LEVEL") or cls.log_level).strip().upper(),
        )

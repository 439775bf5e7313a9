# extraction/http_fetch.py
"""
URL fetching for the markup path.

fetch_url() does one GET with an explicit timeout and maps requests'
exceptions onto the extraction error taxonomy; fetch_with_retry() wraps it in
the shared backoff helper.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, unquote, urlparse

import requests

from .errors import NetworkError, NetworkTimeoutError, ValidationError
from .retry import call_with_retry

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/*;q=0.8,*/*;q=0.7",
    "Accept-Language": "en-US,en;q=0.9,ta;q=0.8",
}

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff"}


@dataclass
class FetchResult:
    url: str
    status: int
    content_type: str
    content: bytes
    encoding: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


def validate_url(url: str) -> str:
    u = (url or "").strip()
    parsed = urlparse(u)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid URL (http/https only): {url!r}")
    return u


def unwrap_image_redirect(url: str) -> str:
    """Google Images result links carry the real image in ?imgurl=..."""
    parsed = urlparse(url)
    if "google." in parsed.netloc and parsed.path.startswith("/imgres"):
        target = parse_qs(parsed.query).get("imgurl")
        if target and target[0]:
            return unquote(target[0])
    return url


def looks_like_image_url(url: str) -> bool:
    path = urlparse(url).path.lower()
    return os.path.splitext(path)[1] in IMAGE_EXTENSIONS


def fetch_url(url: str, *, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None) -> FetchResult:
    url = validate_url(url)
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, headers=_HEADERS, timeout=timeout, allow_redirects=True)
    except requests.Timeout as e:
        raise NetworkTimeoutError(f"Timed out after {timeout}s fetching {url}", timeout=timeout) from e
    except requests.RequestException as e:
        raise NetworkError(f"Fetch failed for {url}: {e}") from e

    status = resp.status_code
    if status >= 500 or status == 429:
        raise NetworkError(f"HTTP {status} from {url}", status=status, transient=True)
    if status >= 400:
        raise NetworkError(f"HTTP {status} from {url}", status=status, transient=False)

    ctype = (resp.headers.get("Content-Type") or "").split(";")[0].strip().lower()
    if not ctype and looks_like_image_url(url):
        ext = os.path.splitext(urlparse(url).path)[1].lstrip(".").lower()
        ctype = "image/jpeg" if ext in ("jpg", "jpeg") else f"image/{ext}"
    log.debug("GET %s -> %d %s (%d bytes)", url, status, ctype or "?", len(resp.content or b""))
    return FetchResult(
        url=str(getattr(resp, "url", url) or url),
        status=status,
        content_type=ctype,
        content=resp.content or b"",
        encoding=resp.encoding,
    )


def fetch_with_retry(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    attempts: int = 3,
    base_delay: float = 0.5,
    session: Optional[requests.Session] = None,
) -> FetchResult:
    return call_with_retry(
        lambda: fetch_url(url, timeout=timeout, session=session),
        attempts=attempts,
        base_delay=base_delay,
        label=f"GET {url}",
    )

"""
Day 101 -- URL fetch error mapping and runtime settings defaults.

Covers:
  fetch_url (fake requests session, no network):
  - 200 HTML -> FetchResult with content type / encoding / final url
  - requests.Timeout -> NetworkTimeoutError (transient, carries timeout)
  - other RequestException -> transient NetworkError
  - 5xx / 429 -> transient NetworkError with status
  - 4xx -> non-transient NetworkError
  - missing Content-Type on an image URL -> image/* from the extension
  - non-http URL rejected before any request

  fetch_with_retry:
  - 503 retried until success
  - 404 not retried
  - timeout retried, last error re-raised

  Settings:
  - network and AI timeouts default to ~10 s
  - AI_TIMEOUT / UPLOAD_DIR read from the environment
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from extraction.config import Settings
from extraction.errors import NetworkError, NetworkTimeoutError, ValidationError
from extraction.http_fetch import fetch_url, fetch_with_retry


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", content_type: Optional[str] = "text/html",
                 url: str = "", encoding: Optional[str] = "utf-8"):
        self.status_code = status_code
        self.content = content
        self.headers: Dict[str, str] = {"Content-Type": content_type} if content_type else {}
        self.url = url
        self.encoding = encoding


class FakeSession:
    """Replays queued responses; exception instances are raised instead of returned."""

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        outcome.url = outcome.url or url
        return outcome


URL = "https://jaffnakitchen.lk/menu"


class TestFetchUrl:
    def test_html_page(self):
        session = FakeSession(FakeResponse(200, b"<html>Hoppers 250</html>", "text/html; charset=utf-8",
                                           url="https://jaffnakitchen.lk/menu/"))
        res = fetch_url(URL, timeout=7.5, session=session)
        assert res.status == 200
        assert res.content_type == "text/html"
        assert res.url == "https://jaffnakitchen.lk/menu/"
        assert res.text == "<html>Hoppers 250</html>"
        assert not res.is_image
        call = session.calls[0]
        assert call["timeout"] == 7.5
        assert call["allow_redirects"] is True
        assert "Mozilla" in call["headers"]["User-Agent"]

    def test_timeout(self):
        session = FakeSession(requests.Timeout("read timed out"))
        with pytest.raises(NetworkTimeoutError) as ei:
            fetch_url(URL, timeout=3.0, session=session)
        assert ei.value.transient is True
        assert ei.value.timeout == 3.0

    def test_connection_error(self):
        session = FakeSession(requests.ConnectionError("connection refused"))
        with pytest.raises(NetworkError) as ei:
            fetch_url(URL, session=session)
        assert not isinstance(ei.value, NetworkTimeoutError)
        assert ei.value.transient is True

    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    def test_server_errors_transient(self, status):
        with pytest.raises(NetworkError) as ei:
            fetch_url(URL, session=FakeSession(FakeResponse(status)))
        assert ei.value.status == status
        assert ei.value.transient is True

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_client_errors_not_transient(self, status):
        with pytest.raises(NetworkError) as ei:
            fetch_url(URL, session=FakeSession(FakeResponse(status)))
        assert ei.value.status == status
        assert ei.value.transient is False

    @pytest.mark.parametrize("url,expected", [
        ("https://cdn.example.lk/menu.JPG", "image/jpeg"),
        ("https://cdn.example.lk/menu.png?w=800", "image/png"),
    ])
    def test_image_content_type_from_extension(self, url, expected):
        res = fetch_url(url, session=FakeSession(FakeResponse(200, b"\x89PNG", content_type=None)))
        assert res.content_type == expected
        assert res.is_image

    def test_bad_scheme_never_requested(self):
        session = FakeSession()
        with pytest.raises(ValidationError):
            fetch_url("file:///etc/passwd", session=session)
        assert session.calls == []


class TestFetchWithRetry:
    def test_server_error_retried(self):
        session = FakeSession(FakeResponse(503), FakeResponse(502), FakeResponse(200, b"ok"))
        res = fetch_with_retry(URL, attempts=3, base_delay=0, session=session)
        assert res.status == 200
        assert len(session.calls) == 3

    def test_not_found_not_retried(self):
        session = FakeSession(FakeResponse(404), FakeResponse(200, b"ok"))
        with pytest.raises(NetworkError) as ei:
            fetch_with_retry(URL, attempts=3, base_delay=0, session=session)
        assert ei.value.status == 404
        assert len(session.calls) == 1

    def test_timeouts_exhaust_attempts(self):
        session = FakeSession(*(requests.Timeout("slow") for _ in range(3)))
        with pytest.raises(NetworkTimeoutError):
            fetch_with_retry(URL, attempts=3, base_delay=0, session=session)
        assert len(session.calls) == 3


class TestSettings:
    def test_timeout_defaults(self):
        settings = Settings.from_env({})
        assert settings.http_timeout == 10.0
        assert settings.ai_timeout == 10.0
        assert settings.retry_attempts == 3

    def test_env_overrides(self, tmp_path):
        settings = Settings.from_env({"AI_TIMEOUT": "25", "UPLOAD_DIR": str(tmp_path)})
        assert settings.ai_timeout == 25.0
        assert settings.upload_dir == Path(str(tmp_path))

    def test_bad_number_keeps_default(self):
        assert Settings.from_env({"AI_TIMEOUT": "soon"}).ai_timeout == 10.0

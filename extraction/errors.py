# extraction/errors.py
"""
Exception taxonomy for the menu extraction pipeline.

Only ValidationError is meant to reach an HTTP caller as an error response.
Everything else is caught somewhere inside the pipeline and turned into a
degraded (but well-formed) MenuDocument.
"""

from __future__ import annotations

from typing import Optional


class MenuExtractionError(Exception):
    """Base class for every error raised by the extraction package."""


class ConfigurationError(MenuExtractionError):
    """Missing or placeholder credentials / settings. Never retried."""


class NetworkError(MenuExtractionError):
    """Fetch or provider call failed at the transport level.

    `transient` marks failures worth retrying (connection resets, 5xx, 429).
    """

    def __init__(self, message: str, *, status: Optional[int] = None, transient: bool = True):
        super().__init__(message)
        self.status = status
        self.transient = transient


class NetworkTimeoutError(NetworkError):
    """A network-bound step exceeded its timeout."""

    def __init__(self, message: str, *, timeout: Optional[float] = None):
        super().__init__(message, transient=True)
        self.timeout = timeout


class ParseError(MenuExtractionError):
    """Malformed model JSON or markup. Strategies map this to an empty result."""


class ValidationError(MenuExtractionError):
    """Bad caller input: zero or several sources, oversized or unreadable image."""


def is_transient(exc: BaseException) -> bool:
    """True when `exc` is a failure the retry helper may try again."""
    return isinstance(exc, NetworkError) and exc.transient

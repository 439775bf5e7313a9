# extraction/retry.py
"""
Bounded retry with exponential backoff for network-bound calls.

Only transient NetworkErrors (timeouts, connection failures, 5xx, 429) are
retried. ConfigurationError, ValidationError, ParseError and non-transient
NetworkErrors (4xx) propagate on the first failure.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from .errors import is_transient

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_DELAY = 8.0


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY, max_delay: float = DEFAULT_MAX_DELAY) -> float:
    """Delay before retry number `attempt` (1-based): base, 2*base, 4*base, ..."""
    return min(max_delay, base_delay * (2 ** max(0, attempt - 1)))


def call_with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    label: str = "call",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    sleep = sleep or time.sleep
    attempts = max(1, int(attempts))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not is_transient(e) or attempt >= attempts:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            log.info("%s failed (%s); retry %d/%d in %.2fs", label, e, attempt, attempts - 1, delay)
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover

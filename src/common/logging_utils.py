"""Logging helpers shared by every kdep module.

Structured DEBUG events are emitted with ``extra=extra_context(...)`` so a
formatter can pick the fields up; callers guard them with
``is_debug_enabled(logger)`` to keep the hot paths cheap.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_SENSITIVE_QUERY_KEYS = ("token", "key", "secret", "password", "auth")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, honouring KDEP_LOG_LEVEL."""
    name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or Constants.LOG_LEVEL).upper()
    value = getattr(logging, name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=value, format=Constants.LOG_FORMAT)
    root.setLevel(value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when the logger would emit DEBUG records."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log record.

    None values are dropped so records only carry populated fields.
    """
    return {k: v for k, v in fields.items() if v is not None}


def safe_url(url: str) -> str:
    """Strip credentials and sensitive query parameters from a URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    query = "&".join(
        pair for pair in parts.query.split("&")
        if pair and not any(k in pair.split("=", 1)[0].lower() for k in _SENSITIVE_QUERY_KEYS)
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, ""))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

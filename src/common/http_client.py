"""Shared HTTP helpers used by network version sources.

Encapsulates timeout, retry and error handling so sources avoid
duplicating try/except blocks. Failures surface as FetchError; callers
decide whether a status code means "not found".
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple, Union

import requests

from constants import Constants
from common.errors import FetchError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

Body = Union[str, bytes]


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    binary: bool = False,
    session: Optional[requests.Session] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Body]:
    """GET with timeout and retries; returns (status, headers, body).

    Server errors (5xx), timeouts and connection errors are retried up to
    ``Constants.HTTP_RETRY_MAX`` times with exponential backoff.

    Raises:
        FetchError: when every attempt failed.
    """
    safe_target = safe_url(url)
    getter = session.get if session is not None else requests.get
    last_problem = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = getter(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )

                if response.status_code >= 500:
                    last_problem = f"HTTP {response.status_code}"
                    if is_debug_enabled(logger):
                        logger.debug(
                            "HTTP server error",
                            extra=extra_context(
                                event="http_response",
                                component="http_client",
                                action="GET",
                                outcome="server_error",
                                status_code=response.status_code,
                                attempt=attempt + 1,
                                target=safe_target
                            )
                        )
                    continue

                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response ok",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            outcome="success",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target
                        )
                    )
                body = response.content if binary else response.text
                return response.status_code, dict(response.headers), body

            except requests.Timeout:
                last_problem = "timeout"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue
            except requests.RequestException as exc:
                last_problem = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue

    logger.warning("GET %s failed after %d attempts: %s", safe_target, Constants.HTTP_RETRY_MAX, last_problem)
    raise FetchError(f"Request to {safe_target} failed after {Constants.HTTP_RETRY_MAX} attempts: {last_problem}")

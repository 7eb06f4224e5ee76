"""Shared HTTP helpers used by the IDE and plugin repository clients.

Encapsulates common request/timeout error handling so modules avoid
duplicating try/except blocks. Metadata lookups go through ``robust_get``
(retries plus a short in-memory cache); artifact downloads go through
``download_file`` which streams to disk and raises on failure.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from errors import ArtifactFetchError, ArtifactNotFoundError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Any, float]] = {}


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def _is_cache_valid(cache_entry: Tuple[Any, float]) -> bool:
    """Check if cache entry is still valid."""
    _, cached_time = cache_entry
    return time.time() - cached_time < Constants.HTTP_CACHE_TTL_SEC


def clear_cache() -> None:
    """Drop every cached response."""
    _http_cache.clear()


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Returns:
        Tuple of (status_code, headers_dict, text). A status code of 0 means
        every attempt failed; the text then carries the last error.
    """
    cache_key = _get_cache_key('GET', url, headers)
    safe_target = safe_url(url)

    if cache_key in _http_cache and _is_cache_valid(_http_cache[cache_key]):
        cached_data, _ = _http_cache[cache_key]
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return cached_data

    last_exception = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * attempt)
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

                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )

                if response.status_code < 500:  # Don't cache server errors
                    cache_data = (response.status_code, dict(response.headers), response.text)
                    _http_cache[cache_key] = (cache_data, time.time())

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
                return response.status_code, dict(response.headers), response.text

            except requests.Timeout:
                last_exception = "timeout"
                logger.debug("HTTP timeout for %s (attempt %d)", safe_target, attempt + 1)
                continue
            except requests.RequestException as exc:
                last_exception = str(exc)
                logger.debug("HTTP request exception for %s: %s", safe_target, exc)
                continue

    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"


def download_file(url: str, destination: Path, *, context: str) -> Path:
    """Stream ``url`` to ``destination``.

    The body is written to a temporary sibling first and moved into place
    once complete, so an interrupted download never looks like a cached file.

    Args:
        url: Artifact URL.
        destination: Final file path.
        context: Human-readable source tag for logs (e.g., "ide", "plugin").

    Raises:
        ArtifactNotFoundError: The repository answered 404.
        ArtifactFetchError: Any other HTTP or transport failure.
    """
    safe_target = safe_url(url)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")

    logger.info("Downloading %s", safe_target)
    with Timer() as t:
        try:
            with requests.get(url, stream=True, timeout=Constants.REQUEST_TIMEOUT) as response:
                if response.status_code == 404:
                    raise ArtifactNotFoundError(safe_target, "not found")
                if response.status_code != 200:
                    raise ArtifactFetchError(safe_target, f"HTTP {response.status_code}")
                with open(partial, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.Timeout as exc:
            _discard(partial)
            raise ArtifactFetchError(
                safe_target, f"{context} request timed out after {Constants.REQUEST_TIMEOUT} seconds"
            ) from exc
        except requests.RequestException as exc:
            _discard(partial)
            raise ArtifactFetchError(safe_target, f"{context} connection error: {exc}") from exc

    os.replace(partial, destination)
    if is_debug_enabled(logger):
        logger.debug(
            "Download complete",
            extra=extra_context(
                event="download",
                component="http_client",
                action="GET",
                outcome="success",
                duration_ms=t.duration_ms(),
                target=safe_target,
                context=context
            )
        )
    return destination


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()

"""
Fetch wrapper with timeout, JSON parsing and error handling.

Every adapter and verifier goes through here for external calls. Failures are
returned as data (``ok=False`` plus an ``error`` string), never raised.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp

from sciverify.core.config import settings
from sciverify.core.logger import get_logger
from sciverify.core.observability import external_calls_total

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    status: int
    data: Any
    error: Optional[str]


@dataclass(frozen=True)
class TextResult:
    ok: bool
    text: Optional[str]
    error: Optional[str]
    status: int = 0


def _provider(url: str) -> str:
    return urlparse(url).netloc or "unknown"


def github_headers() -> Dict[str, str]:
    """Headers for GitHub REST v3, with a bearer token when one is configured."""
    headers = {"Accept": "application/vnd.github.v3+json"}
    if settings.GITHUB_TOKEN:
        headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN}"
    return headers


def _timeout_seconds(timeout: Optional[float]) -> float:
    return settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout


async def fetch_json(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    timeout: Optional[float] = None,
) -> FetchResult:
    """
    Fetch a URL and decode the JSON body.

    Args:
        url: Absolute URL
        method: HTTP method
        headers: Extra headers, merged over ``Accept: application/json``
        body: Optional payload, sent as JSON
        timeout: Seconds before giving up (defaults to HTTP_TIMEOUT_SECONDS)

    Returns:
        FetchResult; ``status`` is 0 when no response was received
    """
    seconds = _timeout_seconds(timeout)
    provider = _provider(url)
    request_headers = {"Accept": "application/json", "User-Agent": settings.HTTP_USER_AGENT}
    request_headers.update(headers or {})

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=seconds)) as session:
            async with session.request(
                method,
                url,
                headers=request_headers,
                json=body,
            ) as resp:
                if not 200 <= resp.status < 300:
                    external_calls_total.labels(provider=provider, status="http_error").inc()
                    logger.debug(f"[HttpClient] {method} {url} -> HTTP {resp.status}")
                    return FetchResult(False, resp.status, None, f"HTTP {resp.status}: {resp.reason}")

                raw = await resp.text()
                data = json.loads(raw)
                external_calls_total.labels(provider=provider, status="ok").inc()
                return FetchResult(True, resp.status, data, None)

    except asyncio.TimeoutError:
        external_calls_total.labels(provider=provider, status="timeout").inc()
        logger.warning(f"[HttpClient] Timeout after {int(seconds * 1000)}ms: {url}")
        return FetchResult(False, 0, None, f"Timeout after {int(seconds * 1000)}ms")
    except (aiohttp.ClientError, ValueError) as e:
        external_calls_total.labels(provider=provider, status="error").inc()
        logger.warning(f"[HttpClient] {method} {url} failed: {e}")
        return FetchResult(False, 0, None, str(e) or type(e).__name__)


async def fetch_text(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    form: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> TextResult:
    """Fetch a plain-text body (XML, TSV). ``form`` is sent url-encoded."""
    seconds = _timeout_seconds(timeout)
    provider = _provider(url)
    request_headers = {"User-Agent": settings.HTTP_USER_AGENT}
    request_headers.update(headers or {})

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=seconds)) as session:
            async with session.request(method, url, headers=request_headers, data=form) as resp:
                if not 200 <= resp.status < 300:
                    external_calls_total.labels(provider=provider, status="http_error").inc()
                    return TextResult(False, None, f"HTTP {resp.status}", resp.status)

                text = await resp.text()
                external_calls_total.labels(provider=provider, status="ok").inc()
                return TextResult(True, text, None, resp.status)

    except asyncio.TimeoutError:
        external_calls_total.labels(provider=provider, status="timeout").inc()
        logger.warning(f"[HttpClient] Timeout after {int(seconds * 1000)}ms: {url}")
        return TextResult(False, None, f"Timeout after {int(seconds * 1000)}ms")
    except (aiohttp.ClientError, UnicodeDecodeError) as e:
        external_calls_total.labels(provider=provider, status="error").inc()
        logger.warning(f"[HttpClient] {method} {url} failed: {e}")
        return TextResult(False, None, str(e) or type(e).__name__)

"""
Pytest configuration and fixtures for test suite.

This module:
- Registers markers for tests that reach real external services
- Skips those tests unless RUN_INTEGRATION_TESTS is set
- Provides URL-routed fakes for ``fetch_json`` / ``fetch_text``
"""

import os
from typing import Any, Dict, Optional

import pytest

from sciverify.services.common.http_client import FetchResult, TextResult

RUN_INTEGRATION = bool(os.environ.get("RUN_INTEGRATION_TESTS"))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "network_required: mark test as requiring live external APIs")


def pytest_collection_modifyitems(config, items):
    """Skip network-bound tests unless explicitly enabled."""
    for item in items:
        if "integration" in item.keywords or "network_required" in item.keywords:
            if not RUN_INTEGRATION:
                item.add_marker(pytest.mark.skip(reason="Set RUN_INTEGRATION_TESTS to run"))


def ok_json(data: Any, status: int = 200) -> FetchResult:
    return FetchResult(True, status, data, None)


def http_error(status: int) -> FetchResult:
    return FetchResult(False, status, None, f"HTTP {status}: error")


def timeout_error() -> FetchResult:
    return FetchResult(False, 0, None, "Timeout after 15000ms")


def ok_text(text: str) -> TextResult:
    return TextResult(True, text, None, 200)


def text_error(status: int) -> TextResult:
    return TextResult(False, None, f"HTTP {status}", status)


class RoutedFetch:
    """
    Async stand-in for fetch_json/fetch_text.

    ``routes`` maps URL substrings to canned results; the first matching
    substring wins. Unmatched URLs get ``default`` (a timeout by default).
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None, default: Any = None) -> None:
        self.routes = routes or {}
        self.default = default if default is not None else timeout_error()
        self.calls = []

    async def __call__(self, url, method="GET", headers=None, body=None, timeout=None, form=None):  # noqa: ANN001
        self.calls.append({"url": url, "method": method, "headers": headers, "form": form})
        for fragment, result in self.routes.items():
            if fragment in url:
                return result
        return self.default


class ForbiddenFetch:
    """Fails the test if any external call is attempted."""

    async def __call__(self, url, *args, **kwargs):  # noqa: ANN001, ANN002, ANN003
        raise AssertionError(f"Unexpected external call: {url}")


@pytest.fixture
def routed_fetch():
    return RoutedFetch

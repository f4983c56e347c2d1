"""Pytest configuration and shared fixtures for the LandScout test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No browser is launched and no network request leaves the process
- Deterministic timing (zero pauses, injectable clock)
- Isolated state (fresh config singleton and cache per test)

Fetchers and the resolver receive a FakeSession instead of a real
SessionManager; it hands out one mocked Playwright page and records what
happened to it.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture

from config.settings import GlobalConfig
from landscout.cache import TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    """Stand-in for SessionManager exposing the same page/navigate surface."""

    def __init__(self, page: MagicMock) -> None:
        self._page = page
        self.pages_opened = 0
        self.navigated: list[str] = []

    @asynccontextmanager
    async def page(self) -> AsyncIterator[MagicMock]:
        self.pages_opened += 1
        try:
            yield self._page
        finally:
            await self._page.close()

    async def navigate(self, page: MagicMock, url: str, wait_until: str = "domcontentloaded") -> None:
        self.navigated.append(url)
        await page.goto(url, wait_until=wait_until)


def make_locator(count: int = 0, text: str = "") -> MagicMock:
    """Build a mocked Locator with ``count()``, ``first.click()`` and ``first.inner_text()``."""
    locator = MagicMock()
    locator.count = AsyncMock(return_value=count)
    locator.first.click = AsyncMock()
    locator.first.inner_text = AsyncMock(return_value=text)
    locator.inner_text = AsyncMock(return_value=text)
    return locator


def make_api_response(payload: Any = None, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.ok = 200 <= status < 300
    response.json = AsyncMock(return_value=payload)
    return response


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests
    and removes every pause so tests run instantly.

    Returns:
        GlobalConfig instance with test-safe defaults.
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    test_env = {
        "APP_NAME": "LandScout-Test",
        "ENVIRONMENT": "test",
        "DEBUG": "false",
        "HEADLESS": "true",
        "BROWSER_WS_ENDPOINT": "",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "MOBILE_BASE_URL": "https://m.land.example.com",
        "REQUEST_TIMEOUT_MS": "5000",
        "NAVIGATION_JITTER_MS": "[0, 0]",
        "LANDING_SETTLE_SEC": "0",
        "CATEGORY_DELAY_SEC": "0",
        "TARGET_DELAY_SEC": "0",
        "DELAY_JITTER_SEC": "0",
        "RETRY_MAX_ATTEMPTS": "3",
        "RETRY_BASE_DELAY_SEC": "0",
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(mock_config: GlobalConfig, clock: FakeClock) -> TTLCache:
    return TTLCache(mock_config.cache_ttls, clock=clock)


@pytest.fixture
def mock_page(mocker: MockerFixture) -> MagicMock:
    """Provide a mocked Playwright Page with benign defaults.

    Tests override ``url``, ``locator``, ``content`` or ``request.get`` to
    script a particular remote behaviour.
    """
    page = mocker.MagicMock()
    page.url = "https://m.land.example.com/"
    page.goto = mocker.AsyncMock(return_value=mocker.MagicMock(status=200))
    page.close = mocker.AsyncMock()
    page.content = mocker.AsyncMock(return_value="<html></html>")
    page.wait_for_load_state = mocker.AsyncMock()
    page.locator = mocker.MagicMock(side_effect=lambda selector: make_locator())
    page.request.get = mocker.AsyncMock(return_value=make_api_response({"result": {"list": []}}))
    return page


@pytest.fixture
def fake_session(mock_page: MagicMock) -> FakeSession:
    return FakeSession(mock_page)


@pytest.fixture
def article_factory() -> Callable[..., dict[str, Any]]:
    """Factory for raw articles shaped like the remote article-list payload."""

    def _article(index: int = 0, **overrides: Any) -> dict[str, Any]:
        article = {
            "atclNo": f"24{index:08d}",
            "atclNm": "포레나송파",
            "tradTpNm": "매매",
            "prcInfo": f"{10 + index}억 5,000",
            "rentPrc": 0,
            "spc1": "112",
            "spc2": "84.97",
            "flrInfo": f"{index + 3}/25",
            "direction": "남향",
            "cfmYmd": "24.05.01.",
            "rltrNm": "송파공인중개사",
            "tagList": ["25년이내", "대단지"],
        }
        article.update(overrides)
        return article

    return _article


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests that wire several components together",
    )

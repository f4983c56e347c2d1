"""Tests for the shared browser session.

Validates SessionManager including:
- Launch configuration (sandbox flags, fixed viewport, stealth script)
- Single-flight launch under concurrent acquisition
- Relaunch after disconnect
- Scoped pages closed on every exit path
- Idempotent, non-throwing teardown
- Navigation error wrapping

Testing Philosophy:
    Browser operations are I/O heavy. All Playwright calls are mocked
    to ensure hermetic, fast tests that verify behavior, not implementation.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture

from config.settings import GlobalConfig
from landscout.browser import SessionManager, SessionState
from landscout.exceptions import BrowserInitializationError, NavigationError


def create_playwright_mock(
    mocker: MockerFixture,
) -> tuple[MagicMock, MagicMock, MagicMock, MagicMock, MagicMock]:
    """Create a Playwright mock chain for the async_playwright().start() pattern.

    Returns:
        Tuple of (async_playwright_instance, playwright_mock, browser_mock,
        context_mock, page_mock)
    """
    page_mock = MagicMock()
    page_mock.close = AsyncMock()

    context_mock = MagicMock()
    context_mock.add_init_script = AsyncMock()
    context_mock.new_page = AsyncMock(return_value=page_mock)
    context_mock.close = AsyncMock()

    browser_mock = MagicMock()
    browser_mock.new_context = AsyncMock(return_value=context_mock)
    browser_mock.close = AsyncMock()
    browser_mock.is_connected = MagicMock(return_value=True)
    browser_mock.on = MagicMock()

    playwright_mock = MagicMock()
    playwright_mock.chromium.launch = AsyncMock(return_value=browser_mock)
    playwright_mock.chromium.connect = AsyncMock(return_value=browser_mock)
    playwright_mock.stop = AsyncMock()

    async_playwright_instance = MagicMock()
    async_playwright_instance.start = AsyncMock(return_value=playwright_mock)

    mocker.patch("landscout.browser.async_playwright", return_value=async_playwright_instance)

    return async_playwright_instance, playwright_mock, browser_mock, context_mock, page_mock


class TestSessionLaunch:
    """Test suite for lazy launch configuration."""

    @pytest.mark.asyncio
    async def test_no_launch_until_first_acquire(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, _, _, _ = create_playwright_mock(mocker)

        manager = SessionManager(mock_config)

        assert manager.state is SessionState.ABSENT
        pw_mock.chromium.launch.assert_not_called()

    @pytest.mark.asyncio
    async def test_launch_disables_sandbox(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, _, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        await manager.acquire()

        call_kwargs = pw_mock.chromium.launch.call_args.kwargs
        assert call_kwargs["headless"] is True
        assert "--no-sandbox" in call_kwargs["args"]
        assert "--disable-blink-features=AutomationControlled" in call_kwargs["args"]
        assert manager.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_context_uses_fixed_viewport(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, _, browser_mock, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        await manager.acquire()

        call_kwargs = browser_mock.new_context.call_args.kwargs
        assert call_kwargs["viewport"] == {
            "width": mock_config.viewport_width,
            "height": mock_config.viewport_height,
        }
        assert call_kwargs["user_agent"] in mock_config.user_agents
        assert call_kwargs["locale"] == "ko-KR"

    @pytest.mark.asyncio
    async def test_stealth_scripts_injected(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, _, _, context_mock, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        await manager.acquire()

        script_arg = context_mock.add_init_script.call_args[0][0]
        assert "navigator" in script_arg
        assert "webdriver" in script_arg

    @pytest.mark.asyncio
    async def test_remote_endpoint_connects_instead_of_launching(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, _, _, _ = create_playwright_mock(mocker)
        config = mock_config.model_copy(update={"browser_ws_endpoint": "wss://browser.example/pw"})
        manager = SessionManager(config)

        await manager.acquire()

        pw_mock.chromium.connect.assert_awaited_once()
        assert pw_mock.chromium.connect.call_args[0][0] == "wss://browser.example/pw"
        pw_mock.chromium.launch.assert_not_called()

    @pytest.mark.asyncio
    async def test_launch_failure_raises_and_resets_state(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, browser_mock, _, _ = create_playwright_mock(mocker)
        pw_mock.chromium.launch = AsyncMock(side_effect=RuntimeError("Browser binary not found"))
        manager = SessionManager(mock_config)

        with pytest.raises(BrowserInitializationError) as exc_info:
            await manager.acquire()

        assert "not found" in str(exc_info.value).lower()
        assert manager.state is SessionState.ABSENT
        pw_mock.stop.assert_awaited_once()

        # A later acquire tries again
        pw_mock.chromium.launch = AsyncMock(return_value=browser_mock)
        await manager.acquire()
        assert manager.state is SessionState.READY


class TestSessionSingleFlight:
    """Test suite for the launch guard."""

    @pytest.mark.asyncio
    async def test_concurrent_acquires_launch_once(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        async_pw, pw_mock, browser_mock, context_mock, _ = create_playwright_mock(mocker)

        async def slow_launch(**kwargs):
            await asyncio.sleep(0.01)
            return browser_mock

        pw_mock.chromium.launch = AsyncMock(side_effect=slow_launch)
        manager = SessionManager(mock_config)

        contexts = await asyncio.gather(*(manager.acquire() for _ in range(5)))

        pw_mock.chromium.launch.assert_awaited_once()
        async_pw.start.assert_awaited_once()
        assert all(context is context_mock for context in contexts)

    @pytest.mark.asyncio
    async def test_ready_session_is_reused(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, _, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        first = await manager.acquire()
        second = await manager.acquire()

        assert first is second
        pw_mock.chromium.launch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disconnect_triggers_relaunch(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, browser_mock, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)
        await manager.acquire()

        event_name, handler = browser_mock.on.call_args[0]
        assert event_name == "disconnected"

        handler(browser_mock)
        assert manager.state is SessionState.ABSENT

        await manager.acquire()

        assert pw_mock.chromium.launch.await_count == 2
        # The stale driver from the first launch is stopped before relaunching
        pw_mock.stop.assert_awaited_once()
        assert manager.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_silently_dropped_connection_triggers_relaunch(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, browser_mock, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)
        await manager.acquire()

        browser_mock.is_connected.return_value = False
        assert manager.is_ready is False

        await manager.acquire()

        assert pw_mock.chromium.launch.await_count == 2
        pw_mock.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_acquires_after_disconnect_stop_old_driver_once(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        async_pw, old_pw, browser_mock, context_mock, _ = create_playwright_mock(mocker)

        async def slow_stop():
            await asyncio.sleep(0.01)

        old_pw.stop = AsyncMock(side_effect=slow_stop)
        new_pw = MagicMock()
        new_pw.chromium.launch = AsyncMock(return_value=browser_mock)
        new_pw.stop = AsyncMock()
        async_pw.start = AsyncMock(side_effect=[old_pw, new_pw])

        manager = SessionManager(mock_config)
        await manager.acquire()
        _, handler = browser_mock.on.call_args[0]
        handler(browser_mock)

        contexts = await asyncio.gather(*(manager.acquire() for _ in range(3)))

        old_pw.stop.assert_awaited_once()
        new_pw.stop.assert_not_awaited()
        new_pw.chromium.launch.assert_awaited_once()
        assert all(context is context_mock for context in contexts)
        assert manager.state is SessionState.READY


class TestScopedPages:
    """Test suite for page borrowing."""

    @pytest.mark.asyncio
    async def test_page_closed_after_normal_exit(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, _, _, _, page_mock = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        async with manager.page() as page:
            assert page is page_mock
            page_mock.set_default_timeout.assert_called_once_with(mock_config.request_timeout_ms)

        page_mock.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_closed_when_body_raises(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, _, _, _, page_mock = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)

        with pytest.raises(RuntimeError):
            async with manager.page():
                raise RuntimeError("boom")

        page_mock.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_close_failure_not_propagated(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, _, _, _, page_mock = create_playwright_mock(mocker)
        page_mock.close = AsyncMock(side_effect=RuntimeError("Target closed"))
        manager = SessionManager(mock_config)

        async with manager.page():
            pass

        page_mock.close.assert_awaited_once()


class TestSessionRelease:
    """Test suite for teardown."""

    @pytest.mark.asyncio
    async def test_release_closes_resources_in_order(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, browser_mock, context_mock, _ = create_playwright_mock(mocker)
        order: list[str] = []
        context_mock.close = AsyncMock(side_effect=lambda: order.append("context"))
        browser_mock.close = AsyncMock(side_effect=lambda: order.append("browser"))
        pw_mock.stop = AsyncMock(side_effect=lambda: order.append("playwright"))
        manager = SessionManager(mock_config)
        await manager.acquire()

        await manager.release_all()

        assert order == ["context", "browser", "playwright"]
        assert manager.state is SessionState.ABSENT

    @pytest.mark.asyncio
    async def test_release_is_idempotent(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, browser_mock, _, _ = create_playwright_mock(mocker)
        manager = SessionManager(mock_config)
        await manager.acquire()

        await manager.release_all()
        await manager.release_all()

        browser_mock.close.assert_awaited_once()
        pw_mock.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_without_session_is_noop(self, mock_config: GlobalConfig) -> None:
        manager = SessionManager(mock_config)

        await manager.release_all()

        assert manager.state is SessionState.ABSENT

    @pytest.mark.asyncio
    async def test_release_survives_close_errors(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        _, pw_mock, _, context_mock, _ = create_playwright_mock(mocker)
        context_mock.close = AsyncMock(side_effect=RuntimeError("Close failed"))
        manager = SessionManager(mock_config)
        await manager.acquire()

        await manager.release_all()

        pw_mock.stop.assert_awaited_once()


class TestNavigation:
    """Test suite for page navigation."""

    @pytest.mark.asyncio
    async def test_navigate_success(self, mock_config: GlobalConfig, mock_page: MagicMock) -> None:
        manager = SessionManager(mock_config)

        await manager.navigate(mock_page, "https://example.com")

        mock_page.goto.assert_awaited_once()
        assert mock_page.goto.call_args[0][0] == "https://example.com"
        assert mock_page.goto.call_args[1]["wait_until"] == "domcontentloaded"

    @pytest.mark.asyncio
    async def test_navigate_http_error_raises_navigation_error(
        self, mock_config: GlobalConfig, mock_page: MagicMock
    ) -> None:
        mock_page.goto.return_value = MagicMock(status=403)
        manager = SessionManager(mock_config)

        with pytest.raises(NavigationError) as exc_info:
            await manager.navigate(mock_page, "https://example.com")

        assert exc_info.value.context["status_code"] == 403

    @pytest.mark.asyncio
    async def test_navigate_timeout_raises_navigation_error(
        self, mock_config: GlobalConfig, mock_page: MagicMock
    ) -> None:
        mock_page.goto.side_effect = TimeoutError("Navigation timeout")
        manager = SessionManager(mock_config)

        with pytest.raises(NavigationError) as exc_info:
            await manager.navigate(mock_page, "https://example.com")

        assert "timeout" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_navigate_without_response_raises(
        self, mock_config: GlobalConfig, mock_page: MagicMock
    ) -> None:
        mock_page.goto.return_value = None
        manager = SessionManager(mock_config)

        with pytest.raises(NavigationError, match="No response"):
            await manager.navigate(mock_page, "https://example.com")

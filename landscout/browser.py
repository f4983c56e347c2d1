"""Shared browser session with lazy launch and scoped pages.

This module owns the one expensive, failure-prone resource in the system: a
Playwright browser impersonating a mobile visitor. It provides:
- Lazy launch on first use, reuse while connected, relaunch after disconnect
- A single-flight guard so concurrent callers never start two browsers
- Scoped pages that are always closed, whatever happens inside the scope
- Stealth settings applied once per context

Lifecycle:
    ABSENT -> LAUNCHING -> READY -> (disconnected) -> ABSENT

The manager is an ordinary instance handed to the components that need it;
tests substitute a fake with the same ``page()`` method.

Anti-Bot Measures:
    - Disables navigator.webdriver flag
    - Fixed mobile viewport so rendering is reproducible between runs
    - Applies human-like timing jitter before navigation
    - Picks a user-agent from a configurable pool at each launch
"""

import asyncio
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import StrEnum

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from config.settings import GlobalConfig, get_config
from landscout.exceptions import BrowserInitializationError, NavigationError
from landscout.logger import get_logger

log = get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
]

STEALTH_JS = """
// Override navigator.webdriver
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});

// Override navigator.plugins to appear non-empty
Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

// Override navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['ko-KR', 'ko', 'en-US', 'en'],
});

// Override chrome runtime to appear as real Chrome
window.chrome = {
    runtime: {},
};
"""


class SessionState(StrEnum):
    ABSENT = "absent"
    LAUNCHING = "launching"
    READY = "ready"


class SessionManager:
    """Owns the shared browser session and hands out scoped pages.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        _playwright: Playwright driver (started at launch).
        _browser: Browser instance, local or remote.
        _context: BrowserContext with stealth settings applied.
        _launch_task: In-flight launch shared by concurrent acquirers.

    Example:
        session = SessionManager(config)
        async with session.page() as page:
            await session.navigate(page, "https://m.land.naver.com/")
        await session.release_all()
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()
        self._state = SessionState.ABSENT
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._launch_task: asyncio.Task[BrowserContext] | None = None
        self._user_agent: str = ""

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if a connected session is available right now."""
        return (
            self._state is SessionState.READY
            and self._context is not None
            and self._browser is not None
            and self._browser.is_connected()
        )

    async def acquire(self) -> BrowserContext:
        """Return the live browser context, launching it if needed.

        Concurrent callers that arrive while a launch is in flight await that
        same launch; only one browser process is ever started at a time.

        Returns:
            The shared BrowserContext.

        Raises:
            BrowserInitializationError: If the launch fails.
        """
        if self.is_ready:
            return self._context

        if self._launch_task is None:
            self._state = SessionState.LAUNCHING
            self._launch_task = asyncio.ensure_future(self._launch())

        # Shield so one cancelled caller does not abort the launch for the others
        return await asyncio.shield(self._launch_task)

    async def _launch(self) -> BrowserContext:
        log.info(
            "Launching browser session",
            remote=bool(self.config.browser_ws_endpoint),
            headless=self.config.headless,
        )

        if self._playwright is not None:
            # Dropped connection: the old driver is torn down inside the launch task
            log.warning("Browser session lost its connection, relaunching")
            await self._close_resources()

        try:
            self._playwright = await async_playwright().start()

            if self.config.browser_ws_endpoint:
                self._browser = await self._playwright.chromium.connect(
                    self.config.browser_ws_endpoint,
                    timeout=self.config.request_timeout_ms,
                )
            else:
                self._browser = await self._playwright.chromium.launch(
                    headless=self.config.headless,
                    args=LAUNCH_ARGS,
                )

            self._browser.on("disconnected", self._on_disconnected)
            self._context = await self._create_stealth_context()

        except Exception as exc:
            await self._cleanup()
            raise BrowserInitializationError(
                reason=str(exc), browser_type="chromium"
            ) from exc

        finally:
            self._launch_task = None

        self._state = SessionState.READY
        log.info("Browser session ready", user_agent=self._user_agent[:50] + "...")
        return self._context

    async def _create_stealth_context(self) -> BrowserContext:
        """Create the browser context with fingerprinting countermeasures."""
        self._user_agent = random.choice(self.config.user_agents)

        context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            user_agent=self._user_agent,
            locale=self.config.locale,
            timezone_id=self.config.timezone_id,
            is_mobile=True,
            has_touch=True,
            java_script_enabled=True,
        )

        await context.add_init_script(STEALTH_JS)
        log.debug("Stealth scripts injected")
        return context

    def _on_disconnected(self, _browser: Browser) -> None:
        log.warning("Browser disconnected", previous_state=str(self._state))
        self._state = SessionState.ABSENT
        self._context = None
        self._browser = None

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Borrow a fresh page for one fetch operation.

        The page is closed on every exit path: normal return, exception, or
        cancellation.

        Yields:
            Playwright Page with the configured default timeouts.
        """
        context = await self.acquire()
        page = await context.new_page()
        page.set_default_timeout(self.config.request_timeout_ms)
        page.set_default_navigation_timeout(self.config.request_timeout_ms)

        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as exc:
                log.warning("Error closing page", error=str(exc))

    async def navigate(
        self,
        page: Page,
        url: str,
        wait_until: str = "domcontentloaded",
    ) -> None:
        """Navigate to URL with error handling and human-like delay.

        Args:
            page: Playwright Page instance.
            url: Target URL to navigate to.
            wait_until: Navigation wait condition (load, domcontentloaded, networkidle).

        Raises:
            NavigationError: If navigation fails or times out.
        """
        low, high = self.config.navigation_jitter_ms
        if high > 0:
            await asyncio.sleep(random.randint(low, high) / 1000)

        log.debug("Navigating to URL", url=url, wait_until=wait_until)

        try:
            response = await page.goto(url, wait_until=wait_until)
        except (TimeoutError, PlaywrightTimeoutError) as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {self.config.request_timeout_ms}ms",
            ) from exc
        except Exception as exc:
            raise NavigationError(url=url, reason=str(exc)) from exc

        if response is None:
            raise NavigationError(url=url, reason="No response received")

        if response.status >= 400:
            raise NavigationError(
                url=url,
                reason=f"HTTP {response.status}",
                status_code=response.status,
            )

        log.debug("Navigation successful", url=url, status_code=response.status)

    async def release_all(self) -> None:
        """Tear the session down. Safe to call repeatedly; never raises."""
        task = self._launch_task
        if task is not None and not task.done():
            try:
                await task
            except Exception as exc:
                log.warning("Launch in flight failed during release", error=str(exc))

        await self._cleanup()

    async def _cleanup(self) -> None:
        await self._close_resources()
        self._state = SessionState.ABSENT
        log.debug("Browser resources cleaned up")

    async def _close_resources(self) -> None:
        """Close context, browser and driver in reverse initialization order.

        Each handle is detached before its close is awaited, so overlapping
        callers never close the same object twice.
        """
        context, self._context = self._context, None
        if context is not None:
            try:
                await context.close()
            except Exception as exc:
                log.warning("Error closing context", error=str(exc))

        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                log.warning("Error closing browser", error=str(exc))

        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))

"""Free-text complex name to remote identifier resolution.

The remote search page behaves differently from one query to the next: some
searches redirect straight to the single matching complex, others render a
result list, and some only expose the identifier inside inline script data.
Resolution is therefore an ordered list of strategies, each of which either
returns an identifier or ``None``; the first hit wins.

Successful resolutions are cached for the lifetime of the process. Misses are
never cached so a later attempt can succeed once the remote data changes.
"""

import re
from abc import ABC, abstractmethod
from urllib.parse import quote, urljoin

from playwright.async_api import Page

from config.settings import GlobalConfig, get_config
from landscout.browser import SessionManager
from landscout.cache import TTLCache
from landscout.exceptions import ResolutionMissError
from landscout.logger import get_logger

log = get_logger(__name__)

NAMESPACE = "identifier"

URL_PATTERNS = (
    re.compile(r"/complex/info/(\d+)"),
    re.compile(r"/complexes/(\d+)"),
    re.compile(r"[?&]hscpNo=(\d+)"),
)

SCRIPT_PATTERNS = (
    re.compile(r"""complexNo['":\s]+(\d+)"""),
    re.compile(r"""hscpNo['":\s]+(\d+)"""),
)


def identifier_from_url(url: str) -> str | None:
    """Extract an identifier embedded in a complex URL, if any."""
    for pattern in URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class ResolutionStrategy(ABC):
    """One way of finding the identifier on a loaded search page."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name for logging."""
        ...

    @abstractmethod
    async def attempt(self, page: Page) -> str | None:
        """Return the identifier, or None when this strategy finds nothing.

        Args:
            page: Page already positioned at the search result for the name.
        """
        ...


class UrlPatternStrategy(ResolutionStrategy):
    """The search redirected to the complex page; read the id from the URL."""

    @property
    def name(self) -> str:
        return "url"

    async def attempt(self, page: Page) -> str | None:
        return identifier_from_url(page.url)


class SelectorClickStrategy(ResolutionStrategy):
    """Click the first search result and read the id from the new URL.

    Selectors are tried in order; the first one matching any element is the
    only one clicked.
    """

    def __init__(self, selectors: list[str]) -> None:
        self.selectors = selectors

    @property
    def name(self) -> str:
        return "selector"

    async def attempt(self, page: Page) -> str | None:
        for selector in self.selectors:
            candidates = page.locator(selector)
            if await candidates.count() == 0:
                continue

            log.debug("Search result link matched", selector=selector)
            await candidates.first.click()
            await page.wait_for_load_state("domcontentloaded")
            return identifier_from_url(page.url)

        return None


class ScriptScanStrategy(ResolutionStrategy):
    """Last resort: find an identifier assignment in the rendered document."""

    @property
    def name(self) -> str:
        return "script"

    async def attempt(self, page: Page) -> str | None:
        html = await page.content()
        for pattern in SCRIPT_PATTERNS:
            match = pattern.search(html)
            if match:
                return match.group(1)
        return None


class IdentifierResolver:
    """Maps complex display names to remote identifiers.

    Attributes:
        config: GlobalConfig instance.
        session: Shared session supplying scoped pages.
        cache: Store holding the permanent ``identifier`` namespace.
        strategies: Ordered resolution strategies.
    """

    def __init__(
        self,
        session: SessionManager,
        cache: TTLCache,
        config: GlobalConfig | None = None,
        strategies: list[ResolutionStrategy] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.session = session
        self.cache = cache
        self.strategies = strategies or [
            UrlPatternStrategy(),
            SelectorClickStrategy(self.config.resolver_link_selectors),
            ScriptScanStrategy(),
        ]

    def search_url(self, display_name: str) -> str:
        return urljoin(
            self.config.mobile_base_url, f"search/result/{quote(display_name)}"
        )

    def remember(self, display_name: str, identifier: str) -> None:
        """Seed the cache with an identifier known from configuration."""
        self.cache.set(NAMESPACE, display_name, identifier)

    async def resolve(self, display_name: str) -> str | None:
        """Resolve a display name, returning None when nothing matches.

        Navigation or rendering failures are logged and reported as a miss.
        """
        cached = self.cache.get(NAMESPACE, display_name)
        if cached is not None:
            log.debug("Identifier cache hit", display_name=display_name, identifier=cached)
            return cached

        try:
            identifier = await self._search(display_name)
        except Exception as exc:
            log.warning(
                "Identifier resolution failed",
                display_name=display_name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        if identifier is None:
            log.info("Identifier not found", display_name=display_name)
            return None

        self.cache.set(NAMESPACE, display_name, identifier)
        return identifier

    async def require(self, display_name: str) -> str:
        """Like resolve(), but raise ResolutionMissError on a miss."""
        identifier = await self.resolve(display_name)
        if identifier is None:
            raise ResolutionMissError(display_name)
        return identifier

    async def _search(self, display_name: str) -> str | None:
        async with self.session.page() as page:
            await self.session.navigate(page, self.search_url(display_name))

            for strategy in self.strategies:
                try:
                    identifier = await strategy.attempt(page)
                except Exception as exc:
                    log.warning(
                        "Resolution strategy failed",
                        strategy=strategy.name,
                        display_name=display_name,
                        error=str(exc),
                    )
                    continue

                if identifier is not None:
                    log.info(
                        "Identifier resolved",
                        display_name=display_name,
                        identifier=identifier,
                        strategy=strategy.name,
                    )
                    return identifier

        return None

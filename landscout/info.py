"""Descriptive metadata (name, address, unit count) for one complex."""

import re

from playwright.async_api import Page

from config.settings import GlobalConfig, get_config
from landscout.browser import SessionManager
from landscout.cache import TTLCache
from landscout.listings import landing_url
from landscout.logger import get_logger
from landscout.models import EntityInfo

log = get_logger(__name__)

NAMESPACE = "info"

UNIT_COUNT_PATTERN = re.compile(r"([\d,]+)\s*세대")


def parse_unit_count(text: str) -> int:
    """Read a household count such as "3,149세대" from free text.

    >>> parse_unit_count("총 3,149세대 / 23개동")
    3149
    """
    match = UNIT_COUNT_PATTERN.search(text or "")
    if not match:
        return 0
    digits = match.group(1).replace(",", "")
    return int(digits) if digits else 0


class EntityInfoFetcher:
    """Reads the landing page of a complex.

    Missing fields come back as empty strings or zero; a failed fetch returns
    defaults and is not cached.
    """

    def __init__(
        self,
        session: SessionManager,
        cache: TTLCache,
        config: GlobalConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.session = session
        self.cache = cache

    async def fetch_info(self, identifier: str) -> EntityInfo:
        """Return complex metadata, from cache when fresh.

        Args:
            identifier: Remote complex identifier.

        Returns:
            EntityInfo; defaults apart from ``identifier`` when the fetch fails.
        """
        cached = self.cache.get(NAMESPACE, identifier)
        if cached is not None:
            return cached

        try:
            info = await self._extract(identifier)
        except Exception as exc:
            log.warning(
                "Entity info fetch failed, returning defaults",
                identifier=identifier,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return EntityInfo(identifier=identifier)

        self.cache.set(NAMESPACE, identifier, info)
        log.info(
            "Entity info fetched",
            identifier=identifier,
            name=info.name,
            unit_count=info.unit_count,
        )
        return info

    async def _extract(self, identifier: str) -> EntityInfo:
        async with self.session.page() as page:
            await self.session.navigate(
                page, landing_url(self.config.mobile_base_url, identifier)
            )
            name = await _first_text(page, self.config.info_name_selectors)
            address = await _first_text(page, self.config.info_address_selectors)
            body = await page.locator("body").inner_text()

        return EntityInfo(
            identifier=identifier,
            name=name,
            address=address,
            unit_count=parse_unit_count(body),
        )


async def _first_text(page: Page, selectors: list[str]) -> str:
    """Inner text of the first element matched by any selector, else ""."""
    for selector in selectors:
        candidates = page.locator(selector)
        if await candidates.count() == 0:
            continue
        text = await candidates.first.inner_text()
        if text and text.strip():
            return " ".join(text.split())
    return ""

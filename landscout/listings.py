"""Current for-sale and for-lease listings for one complex.

The article-list endpoint only answers sensibly to a browser that has first
visited the complex landing page (cookies and referer), so each fetch loads
the landing page in a scoped page and then issues the data request through
that page's request context, which carries the session's cookies.

A failing fetch is retried with exponential backoff and never propagates:
once the attempts are used up it is logged and replaced by all-zero stats
flagged ``degraded``, so one broken category cannot abort a wider
aggregation. Such fallbacks are not cached, here or in any summary built
from them; genuinely empty results are.
"""

import asyncio
from typing import Any
from urllib.parse import urljoin

from playwright.async_api import Page

from config.settings import GlobalConfig, get_config
from landscout.browser import SessionManager
from landscout.cache import TTLCache
from landscout.exceptions import UpstreamResponseError
from landscout.logger import get_logger
from landscout.models import ListingRecord, ListingStats, TradeCategory

log = get_logger(__name__)

NAMESPACE = "listings"
ARTICLE_LIST_PATH = "complex/getComplexArticleList"


def size_window(size_bracket: int, half_width: int = 5) -> tuple[int, int]:
    """Return the inclusive exclusive-area window searched for a size bracket.

    >>> size_window(84)
    (79, 89)
    """
    return size_bracket - half_width, size_bracket + half_width


def backoff_delay(attempt: int, base_sec: float, max_sec: float) -> float:
    """Exponential backoff before retry number ``attempt`` (1-based), capped.

    >>> [backoff_delay(n, 1.0, 3.0) for n in (1, 2, 3)]
    [1.0, 2.0, 3.0]
    """
    return min(base_sec * 2 ** (attempt - 1), max_sec)


def landing_url(base_url: str, identifier: str, category: TradeCategory | None = None) -> str:
    url = urljoin(base_url, f"complex/info/{identifier}")
    if category is None:
        return url
    return f"{url}?tradTpCd={category.code}&ptpNo=1"


class ListingFetcher:
    """Fetches and normalizes listings for (identifier, category, size bracket).

    Attributes:
        config: GlobalConfig instance.
        session: Shared session supplying scoped pages.
        cache: Store holding the ``listings`` namespace.
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

    async def fetch_listings(
        self,
        identifier: str,
        category: TradeCategory,
        size_bracket: int,
    ) -> ListingStats:
        """Return listing stats, from cache when fresh.

        A failing fetch is retried with exponential backoff up to
        ``retry_max_attempts`` times before giving up.

        Args:
            identifier: Remote complex identifier.
            category: Trade category to query.
            size_bracket: Nominal exclusive area in ㎡.

        Returns:
            ListingStats; all zeros when nothing matches, or flagged
            ``degraded`` zeros when every attempt failed.
        """
        key = (identifier, str(category), size_bracket)
        cached = self.cache.get(NAMESPACE, key)
        if cached is not None:
            log.debug("Listing cache hit", identifier=identifier, category=str(category), size=size_bracket)
            return cached

        try:
            records, total_count = await self._fetch_with_retry(identifier, category, size_bracket)
        except Exception as exc:
            log.warning(
                "Listing fetch failed, returning empty stats",
                identifier=identifier,
                category=str(category),
                size=size_bracket,
                attempts=self.config.retry_max_attempts,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ListingStats.fallback()

        stats = ListingStats.from_records(records, self.config.sample_size, total_count)
        self.cache.set(NAMESPACE, key, stats)

        log.info(
            "Listings fetched",
            identifier=identifier,
            category=str(category),
            size=size_bracket,
            count=stats.count,
            total_count=stats.total_count,
            min_price=stats.min_price,
            max_price=stats.max_price,
        )
        return stats

    async def _fetch_with_retry(
        self,
        identifier: str,
        category: TradeCategory,
        size_bracket: int,
    ) -> tuple[list[ListingRecord], int]:
        attempt = 1
        while True:
            try:
                return await self._fetch_records(identifier, category, size_bracket)
            except Exception as exc:
                if attempt >= self.config.retry_max_attempts:
                    raise
                delay = backoff_delay(
                    attempt, self.config.retry_base_delay_sec, self.config.retry_max_delay_sec
                )
                log.warning(
                    "Listing fetch attempt failed, retrying",
                    identifier=identifier,
                    category=str(category),
                    attempt=attempt,
                    delay_sec=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _fetch_records(
        self,
        identifier: str,
        category: TradeCategory,
        size_bracket: int,
    ) -> tuple[list[ListingRecord], int]:
        low, high = size_window(size_bracket, self.config.size_window_half)
        referer = landing_url(self.config.mobile_base_url, identifier, category)

        async with self.session.page() as page:
            await self.session.navigate(page, referer)
            await asyncio.sleep(self.config.landing_settle_sec)
            payload = await self._request_articles(page, identifier, category, low, high, referer)

        raw_articles = _extract_articles(payload)
        records = [ListingRecord.from_raw(raw, category) for raw in raw_articles]

        # The remote side may ignore the area parameters; filter again locally
        in_window = [
            record
            for record in records
            if record.actual_area == 0 or low <= record.actual_area <= high
        ]
        return in_window, _extract_total_count(payload, len(raw_articles))

    async def _request_articles(
        self,
        page: Page,
        identifier: str,
        category: TradeCategory,
        low: int,
        high: int,
        referer: str,
    ) -> Any:
        url = urljoin(self.config.mobile_base_url, ARTICLE_LIST_PATH)
        response = await page.request.get(
            url,
            params={
                "hscpNo": identifier,
                "tradTpCd": category.code,
                "order": "prc",
                "showR0": "N",
                "page": 1,
                "spcMin": low,
                "spcMax": high,
            },
            headers={
                "Referer": referer,
                "Accept": "application/json, text/javascript, */*; q=0.01",
                "X-Requested-With": "XMLHttpRequest",
            },
            timeout=self.config.request_timeout_ms,
        )

        if not response.ok:
            raise UpstreamResponseError(url=url, status_code=response.status)

        return await response.json()


def _extract_articles(payload: Any) -> list[dict[str, Any]]:
    """Pull the article list out of the known response shapes."""
    if not isinstance(payload, dict):
        return []

    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("list"), list):
        articles = result["list"]
    else:
        articles = payload.get("articleList") or payload.get("body") or []

    return [article for article in articles if isinstance(article, dict)]


def _extract_total_count(payload: Any, fallback: int) -> int:
    """Remote article total (``result.totAtclCnt`` or ``totalCount``)."""
    if isinstance(payload, dict):
        result = payload.get("result")
        candidates = [
            result.get("totAtclCnt") if isinstance(result, dict) else None,
            payload.get("totalCount"),
        ]
        for value in candidates:
            try:
                count = int(value)
            except (TypeError, ValueError):
                continue
            if count > 0:
                return count
    return fallback

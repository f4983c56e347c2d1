"""JSON request surface over the acquisition components.

Each public coroutine returns plain dicts/lists ready for ``json.dumps`` and
never raises for expected failures (unknown name, upstream timeout, bad
category); those are reported in-band. Only programming errors escape.

Example:
    async with LandScoutService.create() as service:
        print(await service.summary("포레나송파", 84))
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Self

from config.settings import GlobalConfig, get_config
from landscout.browser import SessionManager
from landscout.cache import TTLCache
from landscout.info import EntityInfoFetcher
from landscout.listings import ListingFetcher
from landscout.logger import get_logger
from landscout.models import ListingStats, TradeCategory
from landscout.pipeline import BATCH_NAMESPACE, AggregationPipeline
from landscout.resolver import IdentifierResolver

log = get_logger(__name__)


class LandScoutService:
    """Wires the cache, session, fetchers and pipeline together.

    Attributes:
        config: GlobalConfig instance.
        cache: Shared TTLCache.
        session: The owned SessionManager.
        resolver: IdentifierResolver.
        listing_fetcher: ListingFetcher.
        info_fetcher: EntityInfoFetcher.
        pipeline: AggregationPipeline.
    """

    def __init__(
        self,
        config: GlobalConfig | None = None,
        session: SessionManager | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self.config = config or get_config()
        self.cache = cache or TTLCache(self.config.cache_ttls)
        self.session = session or SessionManager(self.config)
        self.resolver = IdentifierResolver(self.session, self.cache, self.config)
        self.listing_fetcher = ListingFetcher(self.session, self.cache, self.config)
        self.info_fetcher = EntityInfoFetcher(self.session, self.cache, self.config)
        self.pipeline = AggregationPipeline(
            self.resolver, self.listing_fetcher, self.cache, self.config
        )

        for target in self.config.targets:
            if target.identifier:
                self.resolver.remember(target.display_name, target.identifier)

    @classmethod
    @asynccontextmanager
    async def create(cls, config: GlobalConfig | None = None) -> AsyncGenerator[Self, None]:
        """Yield a service whose browser session is released on exit."""
        instance = cls(config)
        try:
            yield instance
        finally:
            await instance.close()

    async def close(self) -> None:
        await self.session.release_all()

    async def resolve(self, name: str) -> dict[str, Any]:
        identifier = await self.resolver.resolve(name)
        return {"name": name, "identifier": identifier}

    async def listings(
        self, identifier: str, trade_category: str, size_bracket: int
    ) -> dict[str, Any]:
        """Listing stats plus ``ok`` and ``error``, in one shape for every outcome.

        An unknown trade category or a fetch that fell back to zeros comes back
        as zero stats with ``ok`` false.
        """
        try:
            category = TradeCategory(trade_category)
        except ValueError:
            valid = ", ".join(member.value for member in TradeCategory)
            return {
                **ListingStats.empty().model_dump(mode="json"),
                "ok": False,
                "error": f"Invalid trade category '{trade_category}'. Use: {valid}",
            }

        stats = await self.listing_fetcher.fetch_listings(identifier, category, size_bracket)
        return {
            **stats.model_dump(mode="json"),
            "ok": not stats.degraded,
            "error": "Listing fetch failed" if stats.degraded else "",
        }

    async def info(self, identifier: str) -> dict[str, Any]:
        info = await self.info_fetcher.fetch_info(identifier)
        return info.model_dump(mode="json")

    async def summary(self, name: str, size_bracket: int = 84) -> dict[str, Any]:
        summary = await self.pipeline.summarize(name, size_bracket)
        return summary.model_dump(mode="json")

    async def batch_summary(self, force_refresh: bool = False) -> list[dict[str, Any]]:
        if force_refresh:
            log.info("Force refresh requested, dropping cached batch")
            self.cache.invalidate(BATCH_NAMESPACE)

        results = await self.pipeline.summarize_all(self.config.targets)
        return [summary.model_dump(mode="json") for summary in results]

    def targets(self) -> list[dict[str, Any]]:
        return [target.model_dump(mode="json") for target in self.config.targets]

    def health(self) -> dict[str, Any]:
        return {
            "ok": True,
            "session_state": str(self.session.state),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def cache_status(self) -> dict[str, Any]:
        return self.cache.status()

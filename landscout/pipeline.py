"""Per-complex and batch listing summaries.

Everything here is strictly sequential. Categories within a summary, and
summaries within a batch, are fetched one after another with pauses in
between: parallel requests against the remote site get the session blocked.

Both levels are cached with the long TTL, but only when complete: a summary
with a failure or a category that fell back to zero stats is never cached,
and neither is a batch containing one. The batch is cached as a whole, so
while it is fresh it is returned unchanged even if the per-complex entries it
was built from have expired in the meantime.
"""

import asyncio
import random

from config.settings import GlobalConfig, get_config
from landscout.cache import TTLCache
from landscout.listings import ListingFetcher
from landscout.logger import get_logger
from landscout.models import EntitySummary, ListingStats, TargetEntity, TradeCategory
from landscout.resolver import IdentifierResolver

log = get_logger(__name__)

SUMMARY_NAMESPACE = "summary"
BATCH_NAMESPACE = "batch"
BATCH_KEY = "all"

CATEGORY_ORDER = (TradeCategory.SALE, TradeCategory.JEONSE, TradeCategory.MONTHLY)


async def _pause(base_sec: float, jitter_sec: float) -> None:
    delay = base_sec + (random.uniform(0, jitter_sec) if jitter_sec > 0 else 0.0)
    if delay > 0:
        await asyncio.sleep(delay)


class AggregationPipeline:
    """Composes resolution and listing fetches into summaries.

    Attributes:
        config: GlobalConfig instance.
        resolver: Name to identifier resolver.
        listings: Listing fetcher.
        cache: Store holding the ``summary`` and ``batch`` namespaces.
    """

    def __init__(
        self,
        resolver: IdentifierResolver,
        listings: ListingFetcher,
        cache: TTLCache,
        config: GlobalConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.resolver = resolver
        self.listings = listings
        self.cache = cache

    async def summarize(self, display_name: str, size_bracket: int) -> EntitySummary:
        """Summarize sale, jeonse and monthly listings for one complex.

        Never raises: an unresolved name or an unexpected failure produces a
        summary with ``ok=False`` and the error message, with zero stats for
        every category that could not be fetched.

        Args:
            display_name: Complex name as searched on the remote site.
            size_bracket: Nominal exclusive area in ㎡.

        Returns:
            A structurally complete EntitySummary.
        """
        key = (display_name, size_bracket)
        cached = self.cache.get(SUMMARY_NAMESPACE, key)
        if cached is not None:
            log.debug("Summary cache hit", display_name=display_name, size=size_bracket)
            return cached

        try:
            identifier = await self.resolver.resolve(display_name)
        except Exception as exc:
            log.error("Resolution raised", display_name=display_name, error=str(exc))
            return EntitySummary.failure(display_name, size_bracket, str(exc) or type(exc).__name__)

        if identifier is None:
            return EntitySummary.failure(
                display_name, size_bracket, f"Identifier not found: {display_name}"
            )

        log.info(
            "Summarizing complex",
            display_name=display_name,
            identifier=identifier,
            size=size_bracket,
        )

        stats: dict[TradeCategory, ListingStats] = {}
        error = ""
        try:
            for index, category in enumerate(CATEGORY_ORDER):
                if index > 0:
                    await _pause(self.config.category_delay_sec, self.config.delay_jitter_sec)
                stats[category] = await self.listings.fetch_listings(
                    identifier, category, size_bracket
                )
        except Exception as exc:
            log.error(
                "Summary aborted",
                display_name=display_name,
                identifier=identifier,
                completed=[str(category) for category in stats],
                error_type=type(exc).__name__,
                error=str(exc),
            )
            error = str(exc) or type(exc).__name__

        summary = EntitySummary(
            identifier=identifier,
            display_name=display_name,
            size_bracket=size_bracket,
            sale=stats.get(TradeCategory.SALE, ListingStats.empty()),
            jeonse=stats.get(TradeCategory.JEONSE, ListingStats.empty()),
            monthly=stats.get(TradeCategory.MONTHLY, ListingStats.empty()),
            ok=not error,
            error=error,
        )

        if summary.complete:
            self.cache.set(SUMMARY_NAMESPACE, key, summary)
        else:
            log.info(
                "Summary incomplete, not cached",
                display_name=display_name,
                identifier=identifier,
                ok=summary.ok,
            )
        return summary

    async def summarize_all(self, targets: list[TargetEntity]) -> list[EntitySummary]:
        """Summarize every (target, size bracket) pair in configured order.

        Args:
            targets: Complexes to cover.

        Returns:
            One EntitySummary per pair, tagged with the target's id, region
            and ownership flag.
        """
        cached = self.cache.get(BATCH_NAMESPACE, BATCH_KEY)
        if cached is not None:
            log.info("Batch cache hit", entries=len(cached))
            return cached

        pairs = [(target, bracket) for target in targets for bracket in target.size_brackets]
        log.info("Batch summary started", targets=len(targets), entries=len(pairs))

        results: list[EntitySummary] = []
        for index, (target, bracket) in enumerate(pairs):
            if index > 0:
                await _pause(self.config.target_delay_sec, self.config.delay_jitter_sec)

            summary = await self.summarize(target.display_name, bracket)
            results.append(
                summary.model_copy(
                    update={
                        "target_id": target.id,
                        "region": target.region,
                        "is_owned": target.is_owned,
                    }
                )
            )

        complete = all(summary.complete for summary in results)
        if complete:
            self.cache.set(BATCH_NAMESPACE, BATCH_KEY, results)

        log.info(
            "Batch summary complete",
            entries=len(results),
            succeeded=sum(1 for summary in results if summary.ok),
            cached=complete,
        )
        return results

"""Domain schemas for listing acquisition.

Every record exchanged by the fetchers, the pipeline and the request surface
is a pydantic model whose fields carry total defaults. Upstream payloads from
the remote site are loosely typed (prices as Korean text, areas as strings,
missing keys), so the before-validators here coerce anything unusable to
zero or an empty string instead of raising.
"""

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# 1억 = 100,000,000 won; bare numbers on the remote site are in 만원 (10,000 won)
EOK = 100_000_000
MANWON = 10_000

_EOK_PATTERN = re.compile(r"(\d+)\s*억\s*(\d*)")


class TradeCategory(StrEnum):
    """Trade categories offered by the remote listing service."""

    SALE = "sale"
    JEONSE = "jeonse"
    MONTHLY = "monthly"

    @property
    def code(self) -> str:
        """Remote trade-type code (tradTpCd)."""
        return _TRADE_CODES[self]

    @property
    def label(self) -> str:
        """Korean display label used by the remote site."""
        return _TRADE_LABELS[self]


_TRADE_CODES = {
    TradeCategory.SALE: "A1",
    TradeCategory.JEONSE: "B1",
    TradeCategory.MONTHLY: "B2",
}

_TRADE_LABELS = {
    TradeCategory.SALE: "매매",
    TradeCategory.JEONSE: "전세",
    TradeCategory.MONTHLY: "월세",
}


def parse_price_text(value: Any) -> int:
    """Convert a remote price representation to an integer amount in won.

    Handles the formats the listing service emits:
    - "12억 5,000" -> 1_250_000_000
    - "8억" -> 800_000_000
    - "5,000" -> 50_000_000 (bare numbers are 만원)
    - 85000 -> 850_000_000 (numeric 만원)

    Args:
        value: Raw price text or number.

    Returns:
        Amount in won, or 0 when the value is missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, (int, float)):
        return max(int(value * MANWON), 0)

    if not isinstance(value, str):
        return 0

    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return 0

    match = _EOK_PATTERN.search(cleaned)
    if match:
        eok = int(match.group(1))
        man = int(match.group(2)) if match.group(2) else 0
        return eok * EOK + man * MANWON

    digits = re.match(r"\d+", cleaned)
    if digits:
        return int(digits.group(0)) * MANWON

    return 0


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).replace("㎡", "").replace(",", "").strip())
    except ValueError:
        return 0.0
    return number if number > 0 else 0.0


class TargetEntity(BaseModel):
    """A property complex tracked by the batch summary.

    Attributes:
        id: Stable slug for the target.
        display_name: Name searched on the remote site.
        region: Human-readable region label.
        size_brackets: Nominal exclusive areas (㎡) to summarize.
        is_owned: Whether this complex is one the operator owns.
        identifier: Known remote identifier, if any (pre-seeds resolution).
    """

    id: str
    display_name: str
    region: str = ""
    size_brackets: list[int] = Field(default_factory=lambda: [84])
    is_owned: bool = False
    identifier: str | None = None


class ListingRecord(BaseModel):
    """One normalized for-sale or for-lease article."""

    article_id: str = ""
    name: str = ""
    trade_label: str = ""
    price: int = Field(default=0, ge=0, description="Sale price or deposit in won")
    rent_price: int = Field(default=0, ge=0, description="Monthly rent in won")
    declared_area: float = Field(default=0.0, ge=0.0, description="Supply area (㎡)")
    actual_area: float = Field(default=0.0, ge=0.0, description="Exclusive area (㎡)")
    floor_info: str = ""
    direction: str = ""
    confirmed_at: str = ""
    realtor_name: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("price", "rent_price", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> int:
        """Accept an amount already in won; anything unusable becomes zero.

        Numbers and digit strings are taken as won unchanged. Remote price
        text (억 or 만원 units) must go through ``from_raw``, which converts
        it with ``parse_price_text``.
        """
        if value is None or isinstance(value, bool):
            return 0
        if isinstance(value, (int, float)):
            return max(int(value), 0)
        if isinstance(value, str):
            digits = value.replace(",", "").strip()
            return int(digits) if digits.isdecimal() else 0
        return 0

    @field_validator("declared_area", "actual_area", mode="before")
    @classmethod
    def coerce_area(cls, value: Any) -> float:
        return _to_float(value)

    @field_validator(
        "article_id",
        "name",
        "trade_label",
        "floor_info",
        "direction",
        "confirmed_at",
        "realtor_name",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        return [str(tag) for tag in value if tag is not None]

    @classmethod
    def from_raw(cls, raw: dict[str, Any], category: TradeCategory) -> "ListingRecord":
        """Build a record from one article of the remote article-list payload.

        For monthly rentals the remote price text is "deposit/rent"; the
        deposit becomes ``price`` and the rent ``rent_price``.

        Args:
            raw: Article dictionary as returned by the remote service.
            category: Trade category the article was requested under.

        Returns:
            Normalized ListingRecord.
        """
        price_text = raw.get("prcInfo") or raw.get("hanPrc") or raw.get("prc")
        rent = parse_price_text(raw.get("rentPrc"))

        if isinstance(price_text, str) and "/" in price_text:
            deposit_text, _, rent_text = price_text.partition("/")
            price = parse_price_text(deposit_text)
            rent = rent or parse_price_text(rent_text)
        else:
            price = parse_price_text(price_text)

        return cls(
            article_id=raw.get("atclNo"),
            name=raw.get("atclNm"),
            trade_label=raw.get("tradTpNm") or category.label,
            price=price,
            rent_price=rent,
            declared_area=raw.get("spc1"),
            actual_area=raw.get("spc2"),
            floor_info=raw.get("flrInfo"),
            direction=raw.get("direction"),
            confirmed_at=raw.get("cfmYmd") or raw.get("atclCfmYmd"),
            realtor_name=raw.get("rltrNm"),
            tags=raw.get("tagList"),
        )


class ListingStats(BaseModel):
    """Price statistics over the listings of one category and size bracket.

    ``total_count`` is the remote side's own article total, which can exceed
    ``count`` when the remote result is paged or the local area filter drops
    records. ``degraded`` marks zero stats substituted for a failed fetch; it
    is never serialized and keeps such stats out of every cache.
    """

    count: int = 0
    total_count: int = 0
    min_price: int = 0
    max_price: int = 0
    avg_price: int = 0
    sample: list[ListingRecord] = Field(default_factory=list)
    degraded: bool = Field(default=False, exclude=True)

    @classmethod
    def empty(cls) -> "ListingStats":
        return cls()

    @classmethod
    def fallback(cls) -> "ListingStats":
        """All-zero stats standing in for a fetch that failed."""
        return cls(degraded=True)

    @classmethod
    def from_records(
        cls,
        records: list[ListingRecord],
        sample_size: int = 10,
        total_count: int | None = None,
    ) -> "ListingStats":
        """Aggregate records into stats.

        ``count`` covers every record; min/max/avg only the positive prices.

        Args:
            records: Normalized records, already filtered to the size window.
            sample_size: Maximum number of records kept as a sample.
            total_count: Remote article total; defaults to ``len(records)``.

        Returns:
            ListingStats, all-zero apart from ``total_count`` when ``records``
            is empty.
        """
        total = len(records) if total_count is None else max(total_count, 0)
        prices = [record.price for record in records if record.price > 0]
        if not prices:
            return cls(count=len(records), total_count=total, sample=records[:sample_size])

        return cls(
            count=len(records),
            total_count=total,
            min_price=min(prices),
            max_price=max(prices),
            avg_price=round(sum(prices) / len(prices)),
            sample=records[:sample_size],
        )


class EntityInfo(BaseModel):
    """Descriptive metadata of one complex."""

    identifier: str = ""
    name: str = ""
    address: str = ""
    unit_count: int = Field(default=0, ge=0)


class EntitySummary(BaseModel):
    """Three-category listing summary for one complex and size bracket.

    Always structurally complete: failures are reported through ``ok`` and
    ``error`` while every stats block falls back to zeros.
    """

    identifier: str = ""
    display_name: str = ""
    size_bracket: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    sale: ListingStats = Field(default_factory=ListingStats)
    jeonse: ListingStats = Field(default_factory=ListingStats)
    monthly: ListingStats = Field(default_factory=ListingStats)
    ok: bool = True
    error: str = ""

    # Batch tags, filled in by summarize_all
    target_id: str = ""
    region: str = ""
    is_owned: bool = False

    @classmethod
    def failure(
        cls, display_name: str, size_bracket: int, error: str, identifier: str = ""
    ) -> "EntitySummary":
        return cls(
            identifier=identifier,
            display_name=display_name,
            size_bracket=size_bracket,
            ok=False,
            error=error,
        )

    @property
    def complete(self) -> bool:
        """True when every category was really fetched and nothing failed."""
        return self.ok and not any(
            stats.degraded for stats in (self.sale, self.jeonse, self.monthly)
        )

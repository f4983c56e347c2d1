"""Global configuration management using pydantic-settings.

This module implements the 12-factor app methodology for configuration,
loading values from environment variables with strict type validation.
The Singleton pattern ensures consistent configuration state across the application.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from landscout.models import TargetEntity

DAY_SEC = 24 * 60 * 60


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    All configuration values are loaded from environment variables,
    with sensible defaults for development. Production deployments
    should override these via .env or environment injection.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment.
        debug: Enable verbose debugging output.
        headless: Run the local browser without a window.
        browser_ws_endpoint: Remote browser endpoint; launches locally when empty.
        viewport_width: Fixed viewport width for reproducible rendering.
        viewport_height: Fixed viewport height for reproducible rendering.
        locale: Browser locale presented to the remote site.
        timezone_id: Browser timezone presented to the remote site.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        log_rotation: Log file rotation interval.
        log_retention: Log file retention period.
        mobile_base_url: Base URL of the remote listing site.
        request_timeout_ms: Upper bound for each navigation and data request.
        retry_max_attempts: Attempts per listing fetch before falling back to zeros.
        retry_base_delay_sec: Base delay for exponential backoff between attempts.
        retry_max_delay_sec: Maximum delay cap for backoff.
        navigation_jitter_ms: Random pause range applied before navigation.
        landing_settle_sec: Pause after the landing page before the data request.
        category_delay_sec: Pause between trade categories within one summary.
        target_delay_sec: Pause between summaries within one batch.
        delay_jitter_sec: Random extra added to every pause.
        listing_ttl_sec: Expiry of cached listing stats.
        info_ttl_sec: Expiry of cached entity info.
        summary_ttl_sec: Expiry of cached entity summaries.
        batch_ttl_sec: Expiry of the cached batch result.
        sample_size: Listings kept as a sample per stats block.
        size_window_half: Half width of the area window around a size bracket.
        user_agents: User-agent pool; one is picked per browser launch.
        resolver_link_selectors: Ordered candidates for the first search result.
        info_name_selectors: Ordered candidates for the complex name.
        info_address_selectors: Ordered candidates for the complex address.
        targets: Complexes covered by the batch summary.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="LandScout", description="Application identifier")
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Browser Configuration
    headless: bool = Field(default=True, description="Run browser in headless mode")
    browser_ws_endpoint: str = Field(
        default="", description="Remote Playwright endpoint (empty = local launch)"
    )
    viewport_width: int = Field(default=390, ge=320, le=3840)
    viewport_height: int = Field(default=844, ge=480, le=2160)
    locale: str = Field(default="ko-KR")
    timezone_id: str = Field(default="Asia/Seoul")

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Target Site
    mobile_base_url: str = Field(
        default="https://m.land.naver.com/",
        description="Remote listing site base URL",
    )

    # Timing
    request_timeout_ms: int = Field(
        default=30000, ge=1000, le=120000, description="Request timeout in milliseconds"
    )
    retry_max_attempts: int = Field(
        default=3, ge=1, le=10, description="Maximum retry attempts"
    )
    retry_base_delay_sec: float = Field(
        default=1.0, ge=0.0, le=10.0, description="Base delay for exponential backoff"
    )
    retry_max_delay_sec: float = Field(
        default=30.0, ge=0.0, le=300.0, description="Maximum backoff delay"
    )
    navigation_jitter_ms: tuple[int, int] = Field(
        default=(100, 500), description="Random pause range before navigation"
    )
    landing_settle_sec: float = Field(default=1.0, ge=0.0, le=30.0)
    category_delay_sec: float = Field(
        default=3.0, ge=0.0, le=60.0, description="Pause between trade categories"
    )
    target_delay_sec: float = Field(
        default=5.0, ge=0.0, le=120.0, description="Pause between batch summaries"
    )
    delay_jitter_sec: float = Field(default=2.0, ge=0.0, le=30.0)

    # Cache Expiry
    listing_ttl_sec: float = Field(default=DAY_SEC, gt=0)
    info_ttl_sec: float = Field(default=DAY_SEC, gt=0)
    summary_ttl_sec: float = Field(default=DAY_SEC, gt=0)
    batch_ttl_sec: float = Field(default=DAY_SEC, gt=0)

    # Listing Aggregation
    sample_size: int = Field(default=10, ge=0, le=100)
    size_window_half: int = Field(default=5, ge=0, le=50)

    # Stealth Configuration - User Agent Pool (mobile, matches the mobile site)
    user_agents: list[str] = Field(
        default=[
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
            "Mozilla/5.0 (Linux; Android 14; SM-S928B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
            "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
            "Mozilla/5.0 (Linux; Android 14; Pixel 8 Pro) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
            "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
        ],
        min_length=1,
        description="User-agent pool for stealth",
    )

    # CSS Selectors (Target: m.land.naver.com)
    resolver_link_selectors: list[str] = Field(
        default=[
            'a[href*="/complex/info/"]',
            'a[href*="/complexes/"]',
            ".search_result_list a",
            ".complex_item a",
        ],
        description="Search result link candidates, first match wins",
    )
    info_name_selectors: list[str] = Field(
        default=[".complex_title", ".complex_name", "h2.title", "h1"],
    )
    info_address_selectors: list[str] = Field(
        default=[".complex_address", ".address", ".info_address"],
    )

    # Batch Targets
    targets: list[TargetEntity] = Field(
        default=[
            TargetEntity(
                id="forena-songpa",
                display_name="포레나송파",
                region="서울 송파구 거여동",
                size_brackets=[80, 84],
                is_owned=True,
                identifier="139917",
            ),
            TargetEntity(
                id="the-beach-prugio-summit",
                display_name="더비치푸르지오써밋",
                region="부산 남구 대연동",
                size_brackets=[84],
                identifier="161501",
            ),
            TargetEntity(
                id="daeyeon-lotte-castle",
                display_name="대연롯데캐슬레전드",
                region="부산 남구 대연동",
                size_brackets=[84],
                identifier="109359",
            ),
            TargetEntity(
                id="the-sharp-namcheon",
                display_name="더샵남천프레스티지",
                region="부산 수영구 남천동",
                size_brackets=[84],
                identifier="127133",
            ),
            TargetEntity(
                id="daeyeon-hillstate-prugio",
                display_name="대연힐스테이트푸르지오",
                region="부산 남구 대연동",
                size_brackets=[84],
                identifier="105323",
            ),
        ],
        description="Complexes covered by the batch summary",
    )

    @field_validator("log_dir", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("mobile_base_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Ensure the base URL ends with trailing slash for consistent URL joining."""
        return value if value.endswith("/") else f"{value}/"

    @field_validator("navigation_jitter_ms")
    @classmethod
    def validate_jitter(cls, value: tuple[int, int]) -> tuple[int, int]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError("navigation_jitter_ms must be a non-negative (low, high) range")
        return value

    @property
    def cache_ttls(self) -> dict[str, float | None]:
        """TTL per cache namespace; identifiers never expire."""
        return {
            "identifier": None,
            "listings": self.listing_ttl_sec,
            "info": self.info_ttl_sec,
            "summary": self.summary_ttl_sec,
            "batch": self.batch_ttl_sec,
        }

    @property
    def request_timeout_sec(self) -> float:
        return self.request_timeout_ms / 1000


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the singleton GlobalConfig instance.

    Uses LRU cache to ensure single instantiation across the application lifecycle.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()

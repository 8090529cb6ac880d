"""Core type definitions for the downloader.

All data models use Pydantic BaseModel for automatic validation, JSON
serialization, and better error messages.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Type aliases for domain-specific identifiers
Symbol = NewType("Symbol", str)
MonthSlice = NewType("MonthSlice", str)

DEFAULT_BASE_URL = "https://www.alphavantage.co/"


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


def _ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SecurityType(str, Enum):
    """Asset class of an instrument."""

    EQUITY = "equity"
    OPTION = "option"
    FUTURE = "future"
    FOREX = "forex"
    CRYPTO = "crypto"
    INDEX = "index"
    CFD = "cfd"


class TickType(str, Enum):
    """Kind of market data requested."""

    TRADE = "trade"
    QUOTE = "quote"
    OPEN_INTEREST = "open_interest"


class Resolution(str, Enum):
    """Bar resolution. Only minute, hour and daily are served by the API."""

    TICK = "tick"
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAILY = "daily"

    def to_timedelta(self) -> timedelta:
        """Fixed duration of one bar at this resolution."""
        return _RESOLUTION_PERIODS[self]


_RESOLUTION_PERIODS = {
    Resolution.TICK: timedelta(0),
    Resolution.SECOND: timedelta(seconds=1),
    Resolution.MINUTE: timedelta(minutes=1),
    Resolution.HOUR: timedelta(hours=1),
    Resolution.DAILY: timedelta(days=1),
}


class PricePlan(str, Enum):
    """Alpha Vantage subscription tiers.

    See https://www.alphavantage.co/premium/ for the plan details.
    """

    FREE = "free"
    PLAN30 = "plan30"
    PLAN75 = "plan75"
    PLAN150 = "plan150"
    PLAN300 = "plan300"
    PLAN600 = "plan600"
    PLAN1200 = "plan1200"

    @property
    def requests_per_minute(self) -> int:
        """Request quota granted by the plan."""
        return _PLAN_QUOTAS[self]


_PLAN_QUOTAS = {
    PricePlan.FREE: 5,
    PricePlan.PLAN30: 30,
    PricePlan.PLAN75: 75,
    PricePlan.PLAN150: 150,
    PricePlan.PLAN300: 300,
    PricePlan.PLAN600: 600,
    PricePlan.PLAN1200: 1200,
}


# ---------------------------------------------------------------------------
# Date/Time Types
# ---------------------------------------------------------------------------


class DateRange(FrozenModel):
    """Time range for time-bounded queries, both ends in UTC.

    :param start: Start of the range (inclusive).
    :param end: End of the range (inclusive).
    """

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


# ---------------------------------------------------------------------------
# Market Data Types
# ---------------------------------------------------------------------------


class Instrument(FrozenModel):
    """Tradable instrument identity, used as a cache key.

    :param ticker: Symbol as understood by the quote API (e.g., "IBM").
    :param market: Market the instrument trades on (e.g., "usa").
    :param security_type: Asset class.
    """

    ticker: Symbol
    market: str = "usa"
    security_type: SecurityType = SecurityType.EQUITY

    def __str__(self) -> str:
        return str(self.ticker)


class DownloadRequest(FrozenModel):
    """Parameters of a single historical download.

    :param instrument: Instrument to download.
    :param resolution: Bar resolution.
    :param start: Start of the range in UTC (naive values are treated as UTC).
    :param end: End of the range in UTC (naive values are treated as UTC).
    :param tick_type: Kind of data, only trades are available.
    """

    instrument: Instrument
    resolution: Resolution
    start: datetime
    end: datetime
    tick_type: TickType = TickType.TRADE

    @field_validator("start", "end")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class RawRecord(FrozenModel):
    """One parsed CSV row, before range filtering.

    :param time: Wall-clock time of the row as reported by the API.
    :param open: Opening price.
    :param high: Highest price during the bar period.
    :param low: Lowest price during the bar period.
    :param close: Closing price.
    :param volume: Traded volume during the bar period.
    """

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


class NormalizedBar(FrozenModel):
    """Trade bar in the engine's canonical format.

    :param symbol: Market symbol for this bar.
    :param timestamp: Bar start, timezone-aware in the exchange time zone.
    :param open: Opening price.
    :param high: Highest price during the bar period.
    :param low: Lowest price during the bar period.
    :param close: Closing price.
    :param volume: Trading volume during the bar period.
    :param period: Duration covered by the bar.
    """

    symbol: Symbol
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    period: timedelta

    @property
    def end_time(self) -> datetime:
        """Time at which the bar closes."""
        return self.timestamp + self.period


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class DownloaderSettings(FrozenModel):
    """Connection settings for the quote API.

    :param api_key: Alpha Vantage API key.
    :param price_plan: Subscription tier, drives the request quota.
    :param base_url: Root URL of the API.
    :param timeout: HTTP timeout in seconds.
    :param market_hours_path: Optional YAML file extending the market hours.
    """

    api_key: str = Field(default="", repr=False)
    price_plan: PricePlan = PricePlan.FREE
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    market_hours_path: str | None = None


class FetchDataConfig(FrozenModel):
    """Configuration for fetching historical market data.

    :param symbols: List of symbols to fetch.
    :param market: Market shared by all symbols.
    :param security_type: Asset class shared by all symbols.
    :param date_range: Time range to fetch.
    :param resolution: Bar resolution.
    :param tick_type: Kind of data to fetch.
    :param output_dir: Directory receiving one CSV file per symbol.
    :param settings: Quote API settings.
    """

    symbols: list[Symbol]
    market: str = "usa"
    security_type: SecurityType = SecurityType.EQUITY
    date_range: DateRange
    resolution: Resolution
    tick_type: TickType = TickType.TRADE
    output_dir: str = "data"
    settings: DownloaderSettings = Field(default_factory=DownloaderSettings)


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

__all__ = [
    # Type aliases
    "Symbol",
    "MonthSlice",
    # Base models
    "FrozenModel",
    # Enumerations
    "SecurityType",
    "TickType",
    "Resolution",
    "PricePlan",
    # Date/Time
    "DateRange",
    # Market data
    "Instrument",
    "DownloadRequest",
    "RawRecord",
    "NormalizedBar",
    # Configuration
    "DownloaderSettings",
    "FetchDataConfig",
    "DEFAULT_BASE_URL",
]

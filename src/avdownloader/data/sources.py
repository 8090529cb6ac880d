"""Data source interface for fetching historical market data.

This module provides the abstract interface implemented by downloaders and
the factory that builds one from a fetch-data configuration.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterator

from avdownloader.exceptions import DataSourceError
from avdownloader.types import (DateRange, DownloadRequest, Instrument,
                                NormalizedBar, Resolution, SecurityType,
                                Symbol, TickType)

if TYPE_CHECKING:
    from avdownloader.types import FetchDataConfig


class DataSource(ABC):
    """Abstract base class for data sources.

    All data source implementations must inherit from this class and implement
    the `get` method.
    """

    # Map granularity shorthands to resolutions
    GRANULARITY_MAP = {
        "1m": Resolution.MINUTE,
        "1min": Resolution.MINUTE,
        "1h": Resolution.HOUR,
        "60m": Resolution.HOUR,
        "60min": Resolution.HOUR,
        "1d": Resolution.DAILY,
    }

    @abstractmethod
    def get(
        self,
        request: DownloadRequest,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[NormalizedBar]:
        """Fetch bars for one instrument, resolution and time range.

        :param request: Download parameters.
        :param cancel_event: Optional event that stops the download when set.
        :returns: Lazy iterator of bars in chronological order.
        """
        ...

    def fetch_bars(
        self,
        symbols: list[Symbol],
        date_range: DateRange,
        granularity: str,
        market: str = "usa",
        security_type: SecurityType = SecurityType.EQUITY,
    ) -> Iterator[NormalizedBar]:
        """Fetch trade bars for several symbols, one symbol after the other.

        :param symbols: List of symbols to fetch.
        :param date_range: Time range to fetch (inclusive on both ends).
        :param granularity: Bar granularity (e.g., "1m", "1h", "1d").
        :param market: Market shared by the symbols.
        :param security_type: Asset class shared by the symbols.
        :returns: Iterator of bars, grouped by symbol.
        :raises DataSourceError: If the granularity is not supported.
        """
        resolution = self.GRANULARITY_MAP.get(granularity)
        if resolution is None:
            raise DataSourceError(
                f"Unsupported granularity '{granularity}'. "
                f"Supported: {list(self.GRANULARITY_MAP.keys())}"
            )

        for symbol in symbols:
            request = DownloadRequest(
                instrument=Instrument(
                    ticker=symbol, market=market, security_type=security_type
                ),
                resolution=resolution,
                start=date_range.start,
                end=date_range.end,
                tick_type=TickType.TRADE,
            )
            yield from self.get(request)

    def close(self) -> None:
        """Release resources held by the source."""

    def __enter__(self) -> DataSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def resolve_data_source(config: FetchDataConfig) -> DataSource:
    """Construct a data source from configuration.

    :param config: FetchDataConfig carrying the API settings.
    :returns: Downloader configured for the settings' price plan.
    :raises ConfigError: If the settings are unusable.
    """
    from avdownloader.data.calendar import (ExchangeCalendarResolver,
                                            MarketHoursDatabase)
    from avdownloader.data.downloader import AlphaVantageDownloader

    settings = config.settings
    database = (
        MarketHoursDatabase.from_yaml(settings.market_hours_path)
        if settings.market_hours_path
        else MarketHoursDatabase()
    )
    return AlphaVantageDownloader(
        settings.api_key,
        price_plan=settings.price_plan,
        base_url=settings.base_url,
        timeout=settings.timeout,
        calendar=ExchangeCalendarResolver(database),
    )

"""Data download and source management module."""

from avdownloader.data.calendar import (ExchangeCalendarResolver, ExchangeInfo,
                                        MarketHoursDatabase)
from avdownloader.data.client import RequestExecutor, parse_time_series
from avdownloader.data.downloader import AlphaVantageDownloader
from avdownloader.data.rate_limiter import RateLimiter
from avdownloader.data.slices import iter_month_slices
from avdownloader.data.sources import DataSource, resolve_data_source

__all__ = [
    "DataSource",
    "AlphaVantageDownloader",
    "ExchangeCalendarResolver",
    "ExchangeInfo",
    "MarketHoursDatabase",
    "RateLimiter",
    "RequestExecutor",
    "iter_month_slices",
    "parse_time_series",
    "resolve_data_source",
]

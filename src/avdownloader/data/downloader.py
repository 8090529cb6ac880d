"""Alpha Vantage historical bar downloader.

Daily history comes back in a single call; intraday history is paged by
calendar month. Every request goes through one shared rate limiter, and
returned rows are filtered against the query range expressed in the
instrument's exchange time zone.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterator

import httpx
from loguru import logger

from avdownloader.data.calendar import ExchangeCalendarResolver
from avdownloader.data.client import RequestExecutor
from avdownloader.data.rate_limiter import RateLimiter
from avdownloader.data.slices import iter_month_slices
from avdownloader.data.sources import DataSource
from avdownloader.exceptions import (ConfigError, DownloadCancelledError,
                                     SubscriptionError,
                                     UnsupportedResolutionError)
from avdownloader.types import (DEFAULT_BASE_URL, DownloadRequest,
                                NormalizedBar, PricePlan, RawRecord,
                                Resolution, SecurityType, TickType)

# Compact daily output only covers the latest 100 trading days
COMPACT_OUTPUT_DAYS = 100

INTRADAY_INTERVALS = {
    Resolution.MINUTE: "1min",
    Resolution.HOUR: "60min",
}

SUPPORTED_RESOLUTIONS = frozenset(
    [Resolution.MINUTE, Resolution.HOUR, Resolution.DAILY]
)


class AlphaVantageDownloader(DataSource):
    """Downloads trade bars for exchange-traded equities from Alpha Vantage.

    The downloader owns its rate limiter, calendar cache and HTTP client;
    call :meth:`close` (or use it as a context manager) to release them.

    :param api_key: Alpha Vantage API key.
    :param price_plan: Subscription tier, sets the request quota.
    :param base_url: Root URL of the API.
    :param timeout: HTTP timeout in seconds.
    :param calendar: Exchange calendar resolver, a default one if omitted.
    :param rate_limiter: Rate limiter, derived from ``price_plan`` if omitted.
    :param http_client: Optional HTTP client shared with the caller.
    :param subscription_validator: Optional check run once at construction.
    :raises ConfigError: If the API key is blank.
    :raises SubscriptionError: If the subscription check fails.
    """

    def __init__(
        self,
        api_key: str,
        price_plan: PricePlan = PricePlan.FREE,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        calendar: ExchangeCalendarResolver | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.Client | None = None,
        subscription_validator: Callable[[], None] | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigError("An Alpha Vantage API key is required")

        if subscription_validator is not None:
            self._validate_subscription(subscription_validator)

        self.price_plan = price_plan
        self.rate_limiter = rate_limiter or RateLimiter.for_plan(price_plan)
        self.calendar = calendar or ExchangeCalendarResolver()
        self.executor = RequestExecutor(
            api_key,
            self.rate_limiter,
            base_url=base_url,
            timeout=timeout,
            http_client=http_client,
        )

    @staticmethod
    def _validate_subscription(validator: Callable[[], None]) -> None:
        try:
            validator()
        except Exception as e:
            logger.error(
                "AlphaVantageDownloader: subscription validation failed, "
                "shutting down. Error: {}",
                e,
            )
            raise SubscriptionError(f"Subscription validation failed: {e}") from e

    def get(
        self,
        request: DownloadRequest,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[NormalizedBar]:
        """Get trade bars for one instrument between two UTC times.

        Requests that cannot produce data (end before start, non-trade tick
        type, non-equity instrument) return an empty iterator. Nothing is
        downloaded until the iterator is consumed, and each intraday month is
        only requested when the consumer reaches it.

        :param request: Download parameters.
        :param cancel_event: Optional event; once set no further requests are
            issued and the iterator ends.
        :returns: Lazy iterator of bars in exchange-local time.
        :raises UnsupportedResolutionError: If the resolution is not minute,
            hour or daily.
        """
        if request.end < request.start:
            logger.error(
                "Invalid date range {} > {}: the start date must precede the "
                "end date, no history returned",
                request.start,
                request.end,
            )
            return iter(())

        if request.tick_type is not TickType.TRADE:
            logger.error(
                "Unsupported tick type {}, only trade bars are available",
                request.tick_type.value,
            )
            return iter(())

        if request.resolution not in SUPPORTED_RESOLUTIONS:
            raise UnsupportedResolutionError(
                f"{request.resolution.value} resolution not supported by API."
            )

        if request.instrument.security_type is not SecurityType.EQUITY:
            logger.warning(
                "Unsupported security type {} for {}, no history returned",
                request.instrument.security_type.value,
                request.instrument,
            )
            return iter(())

        return self._download(request, cancel_event)

    def _download(
        self,
        request: DownloadRequest,
        cancel_event: threading.Event | None,
    ) -> Iterator[NormalizedBar]:
        instrument = request.instrument
        if request.resolution is Resolution.DAILY:
            records = self._daily_records(request, cancel_event)
        else:
            records = self._intraday_records(request, cancel_event)

        exchange_tz = self.calendar.resolve(instrument)
        # Rows carry exchange wall-clock times, so compare without tzinfo
        start_local = request.start.astimezone(exchange_tz).replace(tzinfo=None)
        end_local = request.end.astimezone(exchange_tz).replace(tzinfo=None)
        period = request.resolution.to_timedelta()

        try:
            for record in records:
                if not start_local <= record.time <= end_local:
                    continue
                yield NormalizedBar(
                    symbol=instrument.ticker,
                    timestamp=record.time.replace(tzinfo=exchange_tz),
                    open=record.open,
                    high=record.high,
                    low=record.low,
                    close=record.close,
                    volume=record.volume,
                    period=period,
                )
        except DownloadCancelledError:
            logger.info("Download of {} cancelled", instrument)

    def _base_params(self, request: DownloadRequest) -> dict[str, str]:
        return {
            "symbol": str(request.instrument.ticker),
            "datatype": "csv",
        }

    def _daily_records(
        self,
        request: DownloadRequest,
        cancel_event: threading.Event | None,
    ) -> Iterator[RawRecord]:
        params = self._base_params(request)
        params["function"] = "TIME_SERIES_DAILY"

        # The default output only covers 100 trading days, ask for more if needed
        trading_days = self.calendar.trading_day_count(
            request.instrument, request.start, request.end
        )
        if trading_days > COMPACT_OUTPUT_DAYS:
            params["outputsize"] = "full"
        logger.info(
            "Requesting {} daily output for {} ({} trading days)",
            params.get("outputsize", "compact"),
            request.instrument,
            trading_days,
        )

        yield from self.executor.execute(params, cancel_event)

    def _intraday_records(
        self,
        request: DownloadRequest,
        cancel_event: threading.Event | None,
    ) -> Iterator[RawRecord]:
        params = self._base_params(request)
        params["function"] = "TIME_SERIES_INTRADAY"
        params["adjusted"] = "false"
        params["outputsize"] = "full"
        params["interval"] = INTRADAY_INTERVALS[request.resolution]

        for month in iter_month_slices(request.start, request.end):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Download of {} cancelled before slice {}",
                    request.instrument,
                    month,
                )
                return
            params["month"] = month
            records = self.executor.execute(params, cancel_event)
            logger.debug(
                "Received {} rows for {} {}", len(records), request.instrument, month
            )
            yield from records

    def close(self) -> None:
        """Release the HTTP client and cached time zones."""
        self.executor.close()
        self.calendar.clear()

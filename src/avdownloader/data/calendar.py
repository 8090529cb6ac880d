"""Exchange time zones and trading calendars.

The :class:`MarketHoursDatabase` answers which time zone a market lives in and
on which dates it is open. :class:`ExchangeCalendarResolver` sits on top of it
and caches the time zone of every instrument it has seen.

Example market hours file (market_hours.yaml):

    markets:
      usa:
        timezone: "America/New_York"
        holidays:
          - "2027-01-01"
      india:
        timezone: "Asia/Kolkata"
        weekend: [5, 6]
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from loguru import logger

from avdownloader.exceptions import ConfigError, DataSourceError
from avdownloader.types import Instrument, SecurityType

# Saturday and Sunday, as returned by date.weekday()
DEFAULT_WEEKEND = frozenset([5, 6])

# NYSE full-day closures
NYSE_HOLIDAYS = frozenset(
    date.fromisoformat(d)
    for d in [
        "2020-01-01", "2020-01-20", "2020-02-17", "2020-04-10", "2020-05-25",
        "2020-07-03", "2020-09-07", "2020-11-26", "2020-12-25",
        "2021-01-01", "2021-01-18", "2021-02-15", "2021-04-02", "2021-05-31",
        "2021-07-05", "2021-09-06", "2021-11-25", "2021-12-24",
        "2022-01-17", "2022-02-21", "2022-04-15", "2022-05-30", "2022-06-20",
        "2022-07-04", "2022-09-05", "2022-11-24", "2022-12-26",
        "2023-01-02", "2023-01-16", "2023-02-20", "2023-04-07", "2023-05-29",
        "2023-06-19", "2023-07-04", "2023-09-04", "2023-11-23", "2023-12-25",
        "2024-01-01", "2024-01-15", "2024-02-19", "2024-03-29", "2024-05-27",
        "2024-06-19", "2024-07-04", "2024-09-02", "2024-11-28", "2024-12-25",
        "2025-01-01", "2025-01-09", "2025-01-20", "2025-02-17", "2025-04-18",
        "2025-05-26", "2025-06-19", "2025-07-04", "2025-09-01", "2025-11-27",
        "2025-12-25",
        "2026-01-01", "2026-01-19", "2026-02-16", "2026-04-03", "2026-05-25",
        "2026-06-19", "2026-07-03", "2026-09-07", "2026-11-26", "2026-12-25",
    ]
)


@dataclass(frozen=True)
class ExchangeInfo:
    """Time zone and open days of one exchange.

    :param timezone: Exchange time zone.
    :param holidays: Dates on which the exchange is closed.
    :param weekend: Weekday numbers (Monday = 0) on which it never opens.
    """

    timezone: ZoneInfo
    holidays: frozenset[date] = field(default_factory=frozenset)
    weekend: frozenset[int] = DEFAULT_WEEKEND

    def is_open(self, day: date) -> bool:
        """Check whether the exchange trades on the given date."""
        return day.weekday() not in self.weekend and day not in self.holidays


def _default_markets() -> dict[str, ExchangeInfo]:
    return {
        "usa": ExchangeInfo(ZoneInfo("America/New_York"), NYSE_HOLIDAYS),
        "london": ExchangeInfo(ZoneInfo("Europe/London")),
        "toronto": ExchangeInfo(ZoneInfo("America/Toronto")),
    }


class MarketHoursDatabase:
    """Lookup of exchange information by market.

    :param markets: Exchange information keyed by lowercase market name.
    """

    def __init__(self, markets: dict[str, ExchangeInfo] | None = None) -> None:
        self._markets = _default_markets() if markets is None else dict(markets)

    @property
    def markets(self) -> list[str]:
        return sorted(self._markets)

    def get_exchange_info(
        self,
        market: str,
        ticker: str,
        security_type: SecurityType,
    ) -> ExchangeInfo:
        """Return the exchange information for an instrument.

        Every security type of a market shares the market's calendar.

        :raises DataSourceError: If the market is unknown.
        """
        info = self._markets.get(market.lower())
        if info is None:
            raise DataSourceError(
                f"No market hours for market '{market}' "
                f"({security_type.value} {ticker}). "
                f"Known markets: {self.markets}"
            )
        return info

    @classmethod
    def from_yaml(cls, path: str | Path) -> MarketHoursDatabase:
        """Build a database from the built-in markets extended by a YAML file.

        Markets present in the file replace the built-in entry of the same name.

        :param path: Path to the YAML market hours file.
        :raises ConfigError: If the file cannot be read or is invalid.
        """
        path = Path(path)
        try:
            with open(path) as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Market hours file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in market hours file: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("markets"), dict):
            raise ConfigError("Market hours file must contain a 'markets' mapping")

        markets = _default_markets()
        for name, entry in raw["markets"].items():
            markets[str(name).lower()] = _parse_exchange_info(str(name), entry)
        return cls(markets)


def _parse_exchange_info(name: str, entry: Any) -> ExchangeInfo:
    if not isinstance(entry, dict) or "timezone" not in entry:
        raise ConfigError(f"Market '{name}' must be a mapping with a 'timezone'")

    try:
        tz = ZoneInfo(entry["timezone"])
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(
            f"Unknown timezone '{entry['timezone']}' for market '{name}'"
        ) from e

    try:
        holidays = frozenset(
            d if isinstance(d, date) else date.fromisoformat(str(d))
            for d in entry.get("holidays", [])
        )
    except ValueError as e:
        raise ConfigError(f"Invalid holiday date for market '{name}': {e}") from e

    weekend = entry.get("weekend", sorted(DEFAULT_WEEKEND))
    if not isinstance(weekend, list) or not all(
        isinstance(d, int) and 0 <= d <= 6 for d in weekend
    ):
        raise ConfigError(f"'weekend' for market '{name}' must list weekday numbers")

    return ExchangeInfo(tz, holidays, frozenset(weekend))


class ExchangeCalendarResolver:
    """Per-instrument exchange time zone and trading day lookups.

    Time zones are cached per instrument for the lifetime of the resolver.
    The cache is insert-if-absent: concurrent first lookups for the same
    instrument compute the same value and the first one stored wins.

    :param database: Market hours collaborator.
    """

    def __init__(self, database: MarketHoursDatabase | None = None) -> None:
        self.database = database or MarketHoursDatabase()
        self._timezones: dict[Instrument, ZoneInfo] = {}
        self._lock = threading.Lock()

    def _exchange_info(self, instrument: Instrument) -> ExchangeInfo:
        return self.database.get_exchange_info(
            instrument.market, instrument.ticker, instrument.security_type
        )

    def resolve(self, instrument: Instrument) -> ZoneInfo:
        """Return the exchange time zone of an instrument."""
        with self._lock:
            cached = self._timezones.get(instrument)
        if cached is not None:
            return cached

        tz = self._exchange_info(instrument).timezone
        with self._lock:
            tz = self._timezones.setdefault(instrument, tz)
        logger.debug("Resolved exchange time zone {} for {}", tz.key, instrument)
        return tz

    def is_trading_day(self, instrument: Instrument, day: date) -> bool:
        """Check whether the instrument's exchange is open on a date."""
        return self._exchange_info(instrument).is_open(day)

    def trading_day_count(
        self,
        instrument: Instrument,
        start: datetime,
        end: datetime,
    ) -> int:
        """Count open dates from ``start``'s date while before ``end``.

        Dates are taken in UTC, matching the query range.
        """
        info = self._exchange_info(instrument)
        if start.tzinfo is not None:
            start = start.astimezone(timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

        count = 0
        current = start.date()
        while datetime.combine(current, time(), tzinfo=timezone.utc) < end:
            if info.is_open(current):
                count += 1
            current += timedelta(days=1)
        return count

    def clear(self) -> None:
        """Drop every cached time zone."""
        with self._lock:
            self._timezones.clear()

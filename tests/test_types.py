"""Tests for core type definitions."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from avdownloader.types import (DateRange, DownloadRequest, Instrument,
                                NormalizedBar, PricePlan, Resolution,
                                SecurityType, Symbol)

# ---------------------------------------------------------------------------
# Enumeration Tests
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "resolution,period",
    [
        (Resolution.SECOND, timedelta(seconds=1)),
        (Resolution.MINUTE, timedelta(minutes=1)),
        (Resolution.HOUR, timedelta(hours=1)),
        (Resolution.DAILY, timedelta(days=1)),
    ],
)
def test_resolution_to_timedelta(resolution: Resolution, period: timedelta) -> None:
    """Each resolution has a fixed bar duration."""
    assert resolution.to_timedelta() == period


def test_price_plan_quotas_increase() -> None:
    """Higher tiers grant more requests per minute."""
    quotas = [plan.requests_per_minute for plan in PricePlan]
    assert quotas[0] == 5
    assert quotas == sorted(quotas)
    assert PricePlan("plan1200").requests_per_minute == 1200


def test_enums_compare_to_strings() -> None:
    """str enums can be compared to their raw values."""
    assert Resolution.DAILY == "daily"
    assert SecurityType.EQUITY == "equity"


# ---------------------------------------------------------------------------
# Model Tests
# ---------------------------------------------------------------------------


def test_instrument_defaults_and_str() -> None:
    """Instruments default to US equities and print as their ticker."""
    instrument = Instrument(ticker=Symbol("IBM"))

    assert instrument.market == "usa"
    assert instrument.security_type == SecurityType.EQUITY
    assert str(instrument) == "IBM"


def test_instrument_is_hashable_by_value() -> None:
    """Equal instruments share one dictionary slot."""
    cache = {Instrument(ticker=Symbol("IBM")): 1}
    cache[Instrument(ticker=Symbol("IBM"))] = 2

    assert len(cache) == 1
    assert Instrument(ticker=Symbol("IBM"), market="london") not in cache


def test_instrument_is_frozen() -> None:
    """Models are immutable."""
    instrument = Instrument(ticker=Symbol("IBM"))
    with pytest.raises(ValidationError):
        instrument.ticker = Symbol("AAPL")


def test_download_request_naive_times_are_utc() -> None:
    """Naive datetimes are interpreted as UTC."""
    request = DownloadRequest(
        instrument=Instrument(ticker=Symbol("IBM")),
        resolution=Resolution.DAILY,
        start=datetime(2024, 1, 1),
        end=datetime(2024, 2, 1),
    )

    assert request.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert request.end.tzinfo == timezone.utc


def test_date_range_converts_to_utc() -> None:
    """Aware datetimes are converted to UTC."""
    ny = ZoneInfo("America/New_York")
    date_range = DateRange(
        start=datetime(2024, 1, 1, 9, 30, tzinfo=ny),
        end=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )

    assert date_range.start == datetime(2024, 1, 1, 14, 30, tzinfo=timezone.utc)
    assert date_range.start.tzinfo == timezone.utc


def test_normalized_bar_end_time() -> None:
    """A bar ends one period after it starts."""
    ts = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    bar = NormalizedBar(
        symbol=Symbol("IBM"),
        timestamp=ts,
        open=10.0,
        high=11.0,
        low=9.5,
        close=10.5,
        volume=10_000.0,
        period=timedelta(hours=1),
    )

    assert bar.end_time == datetime(2024, 1, 2, 11, 0, tzinfo=timezone.utc)

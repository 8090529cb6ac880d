"""Monthly partitioning of intraday history."""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

from avdownloader.types import MonthSlice


def iter_month_slices(start: datetime, end: datetime) -> Iterator[MonthSlice]:
    """Yield ``YYYY-MM`` tokens for every month touched by ``[start, end]``.

    Starts at the month containing ``start`` and stops after the month
    containing ``end``. At least one token is always produced, even when
    ``end`` falls in the same month as (or before) ``start``.

    :param start: Start of the range.
    :param end: End of the range.
    :returns: Lazy iterator of month tokens in chronological order.
    """
    year, month = start.year, start.month
    last = (end.year, end.month)

    while True:
        yield MonthSlice(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
        if (year, month) > last:
            return

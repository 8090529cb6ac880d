"""Rate-limited HTTP access to the Alpha Vantage query endpoint."""

from __future__ import annotations

import csv
import io
import threading
from datetime import datetime
from typing import Generator, Mapping
from urllib.parse import urlencode

import httpx
from loguru import logger

from avdownloader.data.rate_limiter import RateLimiter
from avdownloader.exceptions import DownloadCancelledError, ResponseFormatError
from avdownloader.types import DEFAULT_BASE_URL, RawRecord

# Content type the API uses for successful CSV downloads
CSV_CONTENT_TYPE = "application/x-download"

# Daily series use "timestamp", intraday series use "time"
TIME_COLUMNS = ("timestamp", "time")

TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


class ApiKeyAuth(httpx.Auth):
    """Adds the ``apikey`` query parameter to every request."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.url = request.url.copy_merge_params({"apikey": self._api_key})
        yield request


def _parse_time(value: str) -> datetime:
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    raise ValueError(f"unrecognized time '{value}'")


def parse_time_series(content: str) -> list[RawRecord]:
    """Parse a CSV time series body into records sorted by time.

    The sort is stable, so duplicated rows are kept in their original order.

    :param content: CSV text with a time column and OHLCV columns.
    :returns: Records in ascending time order.
    :raises ResponseFormatError: If the header or a row cannot be parsed.
    """
    reader = csv.DictReader(io.StringIO(content))
    fieldnames = reader.fieldnames or []
    time_col = next((c for c in TIME_COLUMNS if c in fieldnames), None)
    if time_col is None:
        raise ResponseFormatError(
            f"Missing time column in CSV header {fieldnames}", content
        )

    records: list[RawRecord] = []
    for row in reader:
        if not any(row.values()):
            continue  # Skip blank lines
        try:
            records.append(
                RawRecord(
                    time=_parse_time(row[time_col]),
                    open=float(row["open"]),
                    high=float(row["high"]),
                    low=float(row["low"]),
                    close=float(row["close"]),
                    volume=float(row["volume"]),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseFormatError(f"Failed to parse row {row}: {e}", content) from e

    return sorted(records, key=lambda r: r.time)


class RequestExecutor:
    """Issues one rate-limited request and parses its CSV body.

    :param api_key: Alpha Vantage API key, sent as the ``apikey`` parameter.
    :param rate_limiter: Shared limiter gating every request.
    :param base_url: Root URL of the API.
    :param timeout: HTTP timeout in seconds.
    :param http_client: Optional client to use instead of a private one.
    """

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.url = base_url.rstrip("/") + "/query"
        self._auth = ApiKeyAuth(api_key)
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    def execute(
        self,
        params: Mapping[str, str],
        cancel_event: threading.Event | None = None,
    ) -> list[RawRecord]:
        """Run a query and return its records in ascending time order.

        :param params: Query parameters, without the API key.
        :param cancel_event: Optional event aborting the rate limiter wait.
        :returns: Parsed records.
        :raises DownloadCancelledError: If cancelled while waiting for quota.
        :raises ResponseFormatError: If the body is not a CSV download.
        :raises httpx.HTTPError: On transport failures or error statuses.
        """
        if self.rate_limiter.is_rate_limited:
            logger.info(
                "Requests are limited to {} per {:.0f}s. Waiting for quota, "
                "the download will continue automatically.",
                self.rate_limiter.rate_limit,
                self.rate_limiter.period_sec,
            )

        if not self.rate_limiter.acquire(cancel_event):
            raise DownloadCancelledError("Request cancelled while waiting for quota")

        logger.debug("Downloading /query?{}", urlencode(params))
        response = self._client.get(self.url, params=dict(params), auth=self._auth)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if content_type.split(";")[0].strip().lower() != CSV_CONTENT_TYPE:
            raise ResponseFormatError(
                f"Unexpected content received from API.\n{response.text}",
                response.text,
            )

        return parse_time_series(response.text)

    def close(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            self._client.close()

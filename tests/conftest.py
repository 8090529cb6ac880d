"""Shared fixtures for downloader tests."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
from loguru import logger

from avdownloader.data.downloader import AlphaVantageDownloader
from avdownloader.data.rate_limiter import RateLimiter

API_KEY = "TESTKEY"
CSV_CONTENT_TYPE = "application/x-download"


def csv_response(body: str) -> httpx.Response:
    """Build a successful CSV download response."""
    return httpx.Response(
        200,
        headers={"content-type": CSV_CONTENT_TYPE},
        content=body.encode("utf-8"),
    )


class RecordingHandler:
    """MockTransport handler that records requests and replays responses.

    :param responses: Bodies or responses returned in order; the last one is
        repeated once the list is exhausted.
    """

    def __init__(self, responses: list[str | httpx.Response]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, str):
            return csv_response(response)
        return response

    def params(self, index: int) -> dict[str, str]:
        return dict(self.requests[index].url.params)


@pytest.fixture
def make_downloader() -> Callable[..., tuple[AlphaVantageDownloader, RecordingHandler]]:
    """Factory building a downloader wired to a recording mock transport."""
    created: list[AlphaVantageDownloader] = []

    def factory(
        responses: list[str | httpx.Response],
        rate_limiter: RateLimiter | None = None,
    ) -> tuple[AlphaVantageDownloader, RecordingHandler]:
        handler = RecordingHandler(responses)
        client = httpx.Client(transport=httpx.MockTransport(handler))
        downloader = AlphaVantageDownloader(
            API_KEY,
            rate_limiter=rate_limiter or RateLimiter(1000, 60.0),
            http_client=client,
        )
        created.append(downloader)
        return downloader, handler

    yield factory

    for downloader in created:
        downloader.close()


@pytest.fixture(autouse=True)
def _reset_loguru():
    """Drop sinks installed by setup_logging so they do not outlive the test."""
    yield
    logger.remove()

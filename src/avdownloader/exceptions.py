"""Downloader exception hierarchy.

All downloader-specific exceptions derive from :class:`DownloaderError` so
callers can catch all downloader-related errors uniformly.
"""

from __future__ import annotations


class DownloaderError(Exception):
    """Base class for downloader-related exceptions.

    Derived exceptions should extend this class so that callers can catch all
    downloader-specific errors uniformly.
    """


class ConfigError(DownloaderError):
    """Raised when configuration files or parameters are invalid."""


class DataSourceError(DownloaderError):
    """Raised when accessing or processing a data source fails."""


class ResponseFormatError(DataSourceError):
    """Raised when the quote API answers with something other than CSV.

    :param message: Human readable description.
    :param content: Raw response body, kept for diagnostics.
    """

    def __init__(self, message: str, content: str = "") -> None:
        super().__init__(message)
        self.content = content


class UnsupportedResolutionError(DownloaderError, ValueError):
    """Raised when a resolution cannot be served by the quote API."""


class SubscriptionError(DownloaderError):
    """Raised when the subscription check performed at construction fails."""


class DownloadCancelledError(DownloaderError):
    """Raised when a pending request is abandoned because of cancellation."""


__all__ = [
    "DownloaderError",
    "ConfigError",
    "DataSourceError",
    "ResponseFormatError",
    "UnsupportedResolutionError",
    "SubscriptionError",
    "DownloadCancelledError",
]

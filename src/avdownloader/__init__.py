"""Alpha Vantage historical market data downloader."""

from avdownloader.exceptions import DownloaderError, ResponseFormatError

__version__ = "0.1.0"

__all__ = ["__version__", "DownloaderError", "ResponseFormatError"]

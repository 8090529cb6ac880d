"""CLI command implementations for the downloader.

Each command module provides:
- Configuration loading and validation
- Command execution logic
"""

from avdownloader.commands.fetch_data import (load_fetch_data_config,
                                              write_bars_csv)

__all__ = [
    "load_fetch_data_config",
    "write_bars_csv",
]

#!/usr/bin/env python3
"""Command-line interface for the Alpha Vantage downloader."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime, timezone
from pathlib import Path


def parse_date(date_str: str) -> datetime:
    """Parse date string to datetime."""
    return datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def cmd_fetch_data(args: argparse.Namespace) -> int:
    """Fetch and store historical market data described by a config file."""
    import httpx

    from avdownloader.commands.fetch_data import (load_fetch_data_config,
                                                  output_path_for,
                                                  write_bars_csv)
    from avdownloader.data.sources import resolve_data_source
    from avdownloader.exceptions import ConfigError, DownloaderError
    from avdownloader.types import DownloadRequest, Instrument

    try:
        config = load_fetch_data_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    print("=" * 60)
    print("FETCH DATA")
    print("=" * 60)
    print(f"Symbols:     {', '.join(str(s) for s in config.symbols)}")
    print(f"Market:      {config.market}")
    print(
        f"Date Range:  {config.date_range.start.date()} to {config.date_range.end.date()}"
    )
    print(f"Resolution:  {config.resolution.value}")
    print(f"Plan:        {config.settings.price_plan.value}")

    try:
        source = resolve_data_source(config)
    except DownloaderError as e:
        print(f"Data source error: {e}")
        return 1

    print("\n📊 Fetching data...")
    total = 0
    with source:
        for symbol in config.symbols:
            request = DownloadRequest(
                instrument=Instrument(
                    ticker=symbol,
                    market=config.market,
                    security_type=config.security_type,
                ),
                resolution=config.resolution,
                start=config.date_range.start,
                end=config.date_range.end,
                tick_type=config.tick_type,
            )
            path = output_path_for(config.output_dir, symbol, config.resolution)
            try:
                count = write_bars_csv(source.get(request), path)
            except (DownloaderError, httpx.HTTPError) as e:
                print(f"Failed to fetch data for {symbol}: {e}")
                return 1
            print(f"   {symbol}: {count} bars -> {path}")
            total += count

    if total == 0:
        print("No data fetched. Check symbols and date range.")
        return 1

    print("\n✅ Done!")
    return 0


def cmd_download(args: argparse.Namespace) -> int:
    """Download a single symbol to a CSV file."""
    import httpx

    from avdownloader.commands.fetch_data import (API_KEY_ENV_VAR,
                                                  output_path_for,
                                                  write_bars_csv)
    from avdownloader.data import AlphaVantageDownloader
    from avdownloader.exceptions import DownloaderError
    from avdownloader.types import (DownloadRequest, Instrument, PricePlan,
                                    Resolution, Symbol)

    api_key = args.api_key or os.environ.get(API_KEY_ENV_VAR, "")
    symbol = Symbol(args.symbol.upper())
    resolution = Resolution(args.resolution)
    request = DownloadRequest(
        instrument=Instrument(ticker=symbol, market=args.market),
        resolution=resolution,
        start=parse_date(args.start),
        end=parse_date(args.end),
    )
    path = Path(args.output) if args.output else output_path_for(".", symbol, resolution)

    try:
        with AlphaVantageDownloader(api_key, price_plan=PricePlan(args.plan)) as source:
            count = write_bars_csv(source.get(request), path)
    except (DownloaderError, httpx.HTTPError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Downloaded {count} {resolution.value} bars for {symbol} to {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from avdownloader.logging_config import setup_logging
    from avdownloader.types import PricePlan

    parser = argparse.ArgumentParser(
        description="Alpha Vantage historical data downloader",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level", default="INFO", help="Log level (default: INFO)"
    )
    parser.add_argument("--log-dir", default=None, help="Directory for JSON logs")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fetch data command
    fetch_parser = subparsers.add_parser(
        "fetch-data", help="Fetch and store historical market data"
    )
    fetch_parser.add_argument("config", help="Path to YAML configuration file")

    # Download command
    download_parser = subparsers.add_parser(
        "download", help="Download one symbol to a CSV file"
    )
    download_parser.add_argument("symbol", help="Stock symbol (e.g., IBM)")
    download_parser.add_argument(
        "-r",
        "--resolution",
        default="daily",
        choices=["minute", "hour", "daily"],
        help="Bar resolution (default: daily)",
    )
    download_parser.add_argument(
        "--start", default="2023-01-01", help="Start date (YYYY-MM-DD)"
    )
    download_parser.add_argument(
        "--end", default="2024-01-01", help="End date (YYYY-MM-DD)"
    )
    download_parser.add_argument(
        "-m", "--market", default="usa", help="Market (default: usa)"
    )
    download_parser.add_argument(
        "-p",
        "--plan",
        default="free",
        choices=[p.value for p in PricePlan],
        help="Price plan, sets the request quota (default: free)",
    )
    download_parser.add_argument("-o", "--output", help="Output CSV path")
    download_parser.add_argument(
        "--api-key", default=None, help="API key (default: $ALPHAVANTAGE_API_KEY)"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.log_level, Path(args.log_dir) if args.log_dir else None)

    if args.command == "fetch-data":
        return cmd_fetch_data(args)
    elif args.command == "download":
        return cmd_download(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())

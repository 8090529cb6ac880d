"""Configuration and execution for the fetch-data command.

Example config file (fetch_data.yaml):

    symbols:
      - "IBM"
      - "AAPL"
    market: "usa"              # Optional
    security_type: "equity"    # Optional
    date_range:
      start: "2023-01-01"
      end: "2023-03-31"
    resolution: "minute"       # minute, hour or daily
    output_dir: "data/ibm_aapl"  # Optional
    alpha_vantage:
      api_key: "..."           # Or set ALPHAVANTAGE_API_KEY
      price_plan: "plan75"     # Optional, defaults to free
      timeout: 30              # Optional
      market_hours: "market_hours.yaml"  # Optional
"""

from __future__ import annotations

import csv
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import yaml
from loguru import logger

from avdownloader.exceptions import ConfigError
from avdownloader.types import (DEFAULT_BASE_URL, DateRange,
                                DownloaderSettings, FetchDataConfig,
                                NormalizedBar, PricePlan, Resolution,
                                SecurityType, Symbol, TickType)

API_KEY_ENV_VAR = "ALPHAVANTAGE_API_KEY"

BAR_CSV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume", "period"]


def _parse_datetime(value: str | datetime) -> datetime:
    """Parse a datetime string or pass through datetime objects.

    :param value: ISO format string or datetime object.
    :returns: Timezone-aware datetime (UTC if no timezone specified).
    :raises ConfigError: If parsing fails.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass

    try:
        dt = datetime.strptime(str(value), "%Y-%m-%d")
        return dt.replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise ConfigError(f"Invalid datetime format: {value}") from e


def _parse_enum(enum_cls: Any, value: Any, field: str) -> Any:
    try:
        return enum_cls(str(value).lower())
    except ValueError as e:
        raise ConfigError(
            f"Invalid {field} '{value}'. "
            f"Valid options: {sorted(m.value for m in enum_cls)}"
        ) from e


def _parse_settings(raw: Any) -> DownloaderSettings:
    """Build API settings from the ``alpha_vantage`` section and environment."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'alpha_vantage' must be a mapping")

    api_key = raw.get("api_key") or os.environ.get(API_KEY_ENV_VAR, "")
    if not api_key:
        raise ConfigError(
            f"Missing API key: set 'alpha_vantage.api_key' or {API_KEY_ENV_VAR}"
        )

    price_plan = _parse_enum(PricePlan, raw.get("price_plan", "free"), "price_plan")

    timeout = raw.get("timeout", 30.0)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError("'alpha_vantage.timeout' must be a positive number")

    return DownloaderSettings(
        api_key=str(api_key),
        price_plan=price_plan,
        base_url=raw.get("base_url", DEFAULT_BASE_URL),
        timeout=float(timeout),
        market_hours_path=raw.get("market_hours"),
    )


def load_fetch_data_config(config_path: str | Path) -> FetchDataConfig:
    """Parse and validate a fetch-data configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated FetchDataConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    required_fields = ["symbols", "date_range", "resolution"]
    for field in required_fields:
        if field not in raw_config:
            raise ConfigError(f"Missing required field: {field}")

    raw_symbols = raw_config["symbols"]
    if not isinstance(raw_symbols, list) or len(raw_symbols) == 0:
        raise ConfigError("'symbols' must be a non-empty list")
    symbols = [Symbol(str(s).upper()) for s in raw_symbols]

    raw_date_range = raw_config["date_range"]
    if not isinstance(raw_date_range, dict):
        raise ConfigError("'date_range' must be a mapping with 'start' and 'end'")
    if "start" not in raw_date_range or "end" not in raw_date_range:
        raise ConfigError("'date_range' must contain 'start' and 'end'")

    start_dt = _parse_datetime(raw_date_range["start"])
    end_dt = _parse_datetime(raw_date_range["end"])

    if start_dt >= end_dt:
        raise ConfigError("'date_range.start' must be before 'date_range.end'")

    resolution = _parse_enum(Resolution, raw_config["resolution"], "resolution")
    if resolution in (Resolution.TICK, Resolution.SECOND):
        raise ConfigError(f"Resolution '{resolution.value}' is not supported by the API")

    security_type = _parse_enum(
        SecurityType, raw_config.get("security_type", "equity"), "security_type"
    )
    tick_type = _parse_enum(TickType, raw_config.get("tick_type", "trade"), "tick_type")

    market = raw_config.get("market", "usa")
    if not isinstance(market, str) or not market:
        raise ConfigError("'market' must be a non-empty string")

    output_dir = raw_config.get("output_dir", "data")
    if not isinstance(output_dir, str):
        raise ConfigError("'output_dir' must be a string")

    return FetchDataConfig(
        symbols=symbols,
        market=market.lower(),
        security_type=security_type,
        date_range=DateRange(start=start_dt, end=end_dt),
        resolution=resolution,
        tick_type=tick_type,
        output_dir=output_dir,
        settings=_parse_settings(raw_config.get("alpha_vantage")),
    )


def output_path_for(
    output_dir: str | Path,
    symbol: Symbol,
    resolution: Resolution,
) -> Path:
    """Path of the CSV file holding one symbol's bars."""
    return Path(output_dir) / f"{str(symbol).lower()}_{resolution.value}.csv"


def write_bars_csv(bars: Iterable[NormalizedBar], path: str | Path) -> int:
    """Stream bars into a CSV file, creating parent directories.

    Rows go to a ``.part`` file next to ``path`` which replaces ``path`` only
    once every bar has been written. If consuming ``bars`` raises, the partial
    file is removed and any existing file at ``path`` is left untouched.

    :param bars: Bars to write, consumed lazily.
    :param path: Destination file.
    :returns: Number of bars written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    part_path = path.with_name(path.name + ".part")

    count = 0
    try:
        with open(part_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(BAR_CSV_COLUMNS)
            for bar in bars:
                writer.writerow([
                    bar.timestamp.isoformat(),
                    bar.open,
                    bar.high,
                    bar.low,
                    bar.close,
                    bar.volume,
                    int(bar.period.total_seconds()),
                ])
                count += 1
    except BaseException:
        part_path.unlink(missing_ok=True)
        logger.debug("Discarded partial output {} after {} bars", part_path, count)
        raise

    part_path.replace(path)
    logger.debug("Wrote {} bars to {}", count, path)
    return count

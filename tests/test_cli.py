"""Tests for the command-line entry point."""

import csv
from pathlib import Path

import httpx
import pytest
import yaml

from avdownloader.cli import main
from avdownloader.commands.fetch_data import API_KEY_ENV_VAR
from avdownloader.data.downloader import AlphaVantageDownloader
from avdownloader.data.rate_limiter import RateLimiter

DAILY_CSV = """timestamp,open,high,low,close,volume
2024-01-03,101.0,103.0,100.0,102.0,2000
2024-01-02,100.0,102.0,99.0,101.0,1000
2023-12-29,99.0,100.0,98.0,99.5,900
"""


def _mock_downloader(api_key: str, **kwargs) -> AlphaVantageDownloader:
    """Downloader answering every query with DAILY_CSV."""
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200, headers={"content-type": "application/x-download"}, text=DAILY_CSV
        )
    )
    return AlphaVantageDownloader(
        api_key,
        rate_limiter=RateLimiter(100, 60.0),
        http_client=httpx.Client(transport=transport),
    )


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 0
    assert "fetch-data" in capsys.readouterr().out


def test_fetch_data_missing_config_fails(tmp_path: Path, capsys) -> None:
    assert main(["fetch-data", str(tmp_path / "missing.yaml")]) == 1
    assert "Configuration error" in capsys.readouterr().out


def test_fetch_data_writes_one_file_per_symbol(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    config_path = tmp_path / "fetch.yaml"
    with open(config_path, "w") as f:
        yaml.dump(
            {
                "symbols": ["IBM", "AAPL"],
                "date_range": {"start": "2024-01-01", "end": "2024-01-31"},
                "resolution": "daily",
                "output_dir": str(tmp_path / "out"),
                "alpha_vantage": {"api_key": "KEY"},
            },
            f,
        )
    monkeypatch.setattr(
        "avdownloader.data.sources.resolve_data_source",
        lambda config: _mock_downloader(config.settings.api_key),
    )

    assert main(["fetch-data", str(config_path)]) == 0

    for name in ("ibm_daily.csv", "aapl_daily.csv"):
        with open(tmp_path / "out" / name, newline="") as f:
            rows = list(csv.DictReader(f))
        # The December row falls outside the range
        assert [r["timestamp"][:10] for r in rows] == ["2024-01-02", "2024-01-03"]
    assert "IBM: 2 bars" in capsys.readouterr().out


def test_download_without_api_key_fails(capsys) -> None:
    assert main(["download", "IBM"]) == 1
    assert "API key" in capsys.readouterr().out


def test_download_writes_csv(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    monkeypatch.setattr("avdownloader.data.AlphaVantageDownloader", _mock_downloader)
    output = tmp_path / "ibm.csv"

    exit_code = main(
        [
            "download",
            "ibm",
            "--start", "2023-12-01",
            "--end", "2024-01-05",
            "--api-key", "KEY",
            "-o", str(output),
        ]
    )

    assert exit_code == 0
    assert "Downloaded 3 daily bars for IBM" in capsys.readouterr().out
    assert len(output.read_text().strip().splitlines()) == 4

"""Loguru configuration for the command-line tools."""

from __future__ import annotations

import inspect
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

from loguru import logger

SENSITIVE_KEYS = frozenset(["api_key", "apikey", "secret", "password", "token"])

REDACTED = "***REDACTED***"

# key=value pairs in query strings and messages, e.g. "...&apikey=ABC"
_SENSITIVE_PAIR_RE = re.compile(
    r"\b(" + "|".join(sorted(SENSITIVE_KEYS)) + r")=([^&\s\"']+)",
    re.IGNORECASE,
)


class InterceptHandler(logging.Handler):
    """Redirects standard logging records (e.g. from httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def redact_sensitive(record: dict[str, Any]) -> bool:
    """Mask secrets in a record's message and ``extra`` before output.

    Messages from httpx carry full request URLs, so ``apikey=...`` style
    pairs are masked in the message text as well.
    """
    record["message"] = _SENSITIVE_PAIR_RE.sub(rf"\1={REDACTED}", record["message"])
    for key, value in record["extra"].items():
        if key in SENSITIVE_KEYS and isinstance(value, str):
            record["extra"][key] = REDACTED
    return True


def _json_formatter(record: dict[str, Any]) -> str:
    log_object = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": {
            "name": record["name"],
            "file": f"{record['file'].name}:{record['line']}",
            "function": record["function"],
        },
        "extra": record["extra"],
    }
    # Braces are escaped since loguru formats the returned template
    return json.dumps(log_object, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(level: str = "INFO", log_dir: Path | None = None) -> None:
    """Configure the application-wide loguru logger.

    Installs a console sink on stderr and, if ``log_dir`` is given, a daily
    rotated JSON file sink. Standard library logging is routed to loguru.

    :param level: Minimum level for both sinks.
    :param log_dir: Directory for log files, file logging is off if None.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        colorize=True,
        filter=redact_sensitive,
    )

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "avdownloader_{time:YYYY-MM-DD}.log",
            level=level.upper(),
            format=_json_formatter,
            rotation="00:00",
            retention="7 days",
            filter=redact_sensitive,
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug("Logging configured")

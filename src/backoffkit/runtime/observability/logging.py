"""Log output for the backoffkit logger namespace.

backoffkit logs through stdlib loggers (backoffkit.retry, backoffkit.retry.strategy,
...) and emits nothing until the application configures logging. This module
offers a one-call setup with a human-readable or JSON Lines format.

Quick Start:
    >>> from backoffkit import configure_logging
    >>> configure_logging(format="text", level="DEBUG")
    >>> configure_logging(format="json", level="INFO")  # one JSON object per line

Retry details passed to the loggers (attempt, delay, will_retry, ...) are
rendered as key=value pairs in text output and as fields in JSON output.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

import orjson

from backoffkit.foundation.config import get_settings

ROOT_LOGGER = "backoffkit"

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_COLORS = {"reset": "\033[0m", "bold": "\033[1m", "dim": "\033[2m", "red": "\033[31m",
           "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m"}
_NO_COLORS = {k: "" for k in _COLORS}
_LEVEL_COLORS = {"debug": _COLORS["dim"], "info": _COLORS["green"], "warning": _COLORS["yellow"],
                 "error": _COLORS["red"], "critical": _COLORS["red"]}


def _extras(record: logging.LogRecord) -> dict[str, object]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}


class TextFormatter(logging.Formatter):
    """Human-readable output. Format: timestamp [level] logger: message key=value ..."""

    def __init__(self, colors: bool = False) -> None:
        super().__init__()
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        c = _COLORS if self.colors else _NO_COLORS
        level = record.levelname.lower()
        ts = datetime.fromtimestamp(record.created, tz=UTC).strftime("%H:%M:%S.%f")[:-3]
        level_color = _LEVEL_COLORS.get(level, c['dim']) if self.colors else ""
        parts = [f"{c['dim']}{ts}{c['reset']}",
                 f"{level_color}[{level}]{c['reset']}",
                 f"{c['dim']}{record.name}:{c['reset']}",
                 f"{c['bold']}{record.getMessage()}{c['reset']}"]
        parts += [f"{c['cyan']}{k}{c['reset']}={v}" for k, v in sorted(_extras(record).items())]
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """JSON Lines output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(data, default=str, option=orjson.OPT_NON_STR_KEYS).decode()


def configure_logging(
    format: str | None = None,  # noqa: A002 - shadows builtin but matches stdlib
    level: str | None = None,
    *,
    stream: TextIO | None = None,
    colors: bool | None = None,
) -> logging.Handler:
    """Send backoffkit's log records to a stream.

    Calling it again replaces the handler installed by the previous call.

    Args:
        format: "text" or "json" (default: BACKOFFKIT_LOG_FORMAT)
        level: Minimum level name (default: BACKOFFKIT_LOG_LEVEL)
        stream: Output stream (default: stderr for text, stdout for json)
        colors: Force colors on/off for text output (None = auto-detect)

    Returns:
        The installed handler
    """
    settings = get_settings().logging
    format = (format or settings.format).lower()
    level_int = getattr(logging, (level or settings.level).upper(), logging.WARNING)

    formatter: logging.Formatter
    if format == "text":
        stream = stream or sys.stderr
        formatter = TextFormatter(colors=getattr(stream, "isatty", lambda: False)() if colors is None else colors)
    elif format == "json":
        stream = stream or sys.stdout
        formatter = JsonFormatter()
    else:
        raise ValueError(f"Unknown format: {format}. Use 'text' or 'json'")

    logger = logging.getLogger(ROOT_LOGGER)
    for existing in [h for h in logger.handlers if getattr(h, "_backoffkit", False)]:
        logger.removeHandler(existing)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    handler._backoffkit = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level_int)
    return handler

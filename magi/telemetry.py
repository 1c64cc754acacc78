"""Logging setup: coloured console output and optional rotating log files."""

from __future__ import annotations

import enum
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FILE_NAME_PREFIX = "magi.log"
DEFAULT_ROTATION = "daily"
LOGGER_NAME = "magi"
LEVEL_ENV_VAR = "MAGI_LOG"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_RED = 31
_YELLOW = 33
_BLUE = 34
_PURPLE = 35
_CYAN = 36

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Rotation(enum.Enum):
    """How often the log file is rotated."""

    NEVER = "never"
    DAILY = "daily"
    HOURLY = "hourly"
    MINUTELY = "minutely"


def get_rotation_strategy(val: str) -> Rotation:
    """Parse a rotation name, falling back to daily rotation."""
    try:
        return Rotation(val)
    except ValueError:
        print(
            "Invalid log rotation strategy provided. Defaulting to rotating daily.",
            file=sys.stderr,
        )
        print(
            "Valid rotation options are: 'never', 'daily', 'hourly', 'minutely'.",
            file=sys.stderr,
        )
        return Rotation.DAILY


def _paint(colour: int, text: str) -> str:
    return f"\x1b[{colour}m{text}\x1b[0m"


def _utc_timestamp(created: float) -> str:
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    return (
        f"{_DAYS[moment.weekday()]}, {moment.day} {_MONTHS[moment.month - 1]} "
        f"{moment.year:04d} {moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )


def _level_prefix(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return f"{_paint(_RED, 'ERROR')}: "
    if levelno >= logging.WARNING:
        return f"{_paint(_YELLOW, 'WARN')}: "
    if levelno >= logging.INFO:
        return f"{_paint(_BLUE, 'INFO')}: "
    if levelno >= logging.DEBUG:
        return "DEBUG: "
    return f"{_paint(_PURPLE, 'TRACE')}: "


def _location(record: logging.LogRecord) -> str:
    path = Path(record.pathname)
    try:
        common = os.path.commonpath([str(path), os.getcwd()])
    except ValueError:
        common = ""
    relative = path
    if common:
        try:
            relative = path.relative_to(common)
        except ValueError:
            relative = path
    text = str(relative)
    if text.startswith("/"):
        text = text[1:]
    return f"{text}:{record.lineno}"


class AnsiFormatter(logging.Formatter):
    """Formats records with a UTC timestamp and coloured level; verbose adds origin."""

    def __init__(self, verbose: bool = False) -> None:
        super().__init__()
        self.verbose = verbose

    def format(self, record: logging.LogRecord) -> str:
        parts = [f"[{_paint(_CYAN, _utc_timestamp(record.created))}] ", _level_prefix(record.levelno)]
        if self.verbose:
            parts.append(f"{_paint(_PURPLE, record.name)} ")
            parts.append(f"at {_paint(_CYAN, _location(record))} ")
        parts.append(record.getMessage())
        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))
        return "".join(parts)


def build_file_handler(
    directory: str | os.PathLike, rotation: Rotation, file_name_prefix: str
) -> logging.Handler:
    """A file handler in ``directory`` that rotates as ``rotation`` says."""
    folder = Path(directory)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / file_name_prefix
    if rotation is Rotation.NEVER:
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    else:
        when = {Rotation.DAILY: "midnight", Rotation.HOURLY: "H", Rotation.MINUTELY: "M"}[rotation]
        handler = logging.handlers.TimedRotatingFileHandler(
            path, when=when, utc=True, encoding="utf-8", delay=True
        )
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def _stdout_level(verbose: bool) -> int:
    configured = os.environ.get(LEVEL_ENV_VAR)
    if configured and configured.strip().lower() in _LEVELS:
        return _LEVELS[configured.strip().lower()]
    return logging.DEBUG if verbose else logging.INFO


def init(
    verbose: bool = False,
    logs_dir: Optional[str] = None,
    logs_rotation: Optional[str] = None,
) -> list[logging.Handler]:
    """Configure the package logger; returns the file handlers it installed."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stdout_level = _stdout_level(verbose)
    logger.setLevel(min(stdout_level, logging.DEBUG))
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(stdout_level)
    console.setFormatter(AnsiFormatter(verbose))
    logger.addHandler(console)

    file_handlers: list[logging.Handler] = []
    if logs_dir is not None:
        rotation = get_rotation_strategy(
            DEFAULT_ROTATION if logs_rotation is None else logs_rotation
        )
        file_handler = build_file_handler(logs_dir, rotation, LOG_FILE_NAME_PREFIX)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        file_handlers.append(file_handler)

    return file_handlers
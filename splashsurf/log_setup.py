"""Logging configuration, verbosity levels and progress-bar aware output."""

from __future__ import annotations

import enum
import logging
import os
import sys
import threading
import weakref
from collections.abc import Sequence
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from typing import Any, TextIO

PROGRAM_NAME = "splashsurf"
LOG_ENV_VAR = "SPLASHSURF_LOG"

TRACE = 5
OFF = logging.CRITICAL + 10

logging.addLevelName(TRACE, "TRACE")

_LEVEL_NAMES = {
    TRACE: "TRACE",
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

_ENV_LEVELS = {
    "off": OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

logger = logging.getLogger(__name__)


class VerbosityLevel(enum.Enum):
    """Verbosity selected by the number of ``-v`` flags."""

    NONE = 0
    VERBOSE = 1
    VERY_VERBOSE = 2
    VERY_VERY_VERBOSE = 3

    @classmethod
    def from_count(cls, count: int) -> VerbosityLevel:
        """Maps a flag count to a level; counts above three saturate."""
        if count < 0:
            raise ValueError("verbosity count must not be negative")
        return cls(min(count, cls.VERY_VERY_VERBOSE.value))

    def to_level(self) -> int | None:
        """The logging level for this verbosity, or None if it sets none."""
        return {
            VerbosityLevel.NONE: None,
            VerbosityLevel.VERBOSE: logging.INFO,
            VerbosityLevel.VERY_VERBOSE: logging.DEBUG,
            VerbosityLevel.VERY_VERY_VERBOSE: TRACE,
        }[self]


_bar_lock = threading.RLock()
_current_bar: weakref.ReferenceType | None = None


def set_progress_bar(bar: Any | None) -> None:
    """Registers the current progress bar (held weakly), or clears it."""
    global _current_bar
    with _bar_lock:
        _current_bar = weakref.ref(bar) if bar is not None else None


def get_progress_bar() -> Any | None:
    """Returns the current progress bar if one is registered and still alive."""
    with _bar_lock:
        return _current_bar() if _current_bar is not None else None


class ProgressHandler:
    """A text stream wrapper that hides the progress bar while writing."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def _suspended(self, action):
        bar = get_progress_bar()
        if bar is None:
            return action()
        bar.clear()
        try:
            return action()
        finally:
            bar.refresh()

    def write(self, data: str) -> int:
        return self._suspended(lambda: self.stream.write(data))

    def flush(self) -> None:
        self._suspended(self.stream.flush)


class _Formatter(logging.Formatter):
    def __init__(self, detailed: bool) -> None:
        super().__init__()
        self.detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        level = _LEVEL_NAMES.get(record.levelno, record.levelname)
        stamp = datetime.fromtimestamp(record.created).astimezone()
        if self.detailed:
            ts = stamp.isoformat(timespec="microseconds")
            return f"[{ts}][{record.name}][{level}] {message}"
        ts = f"{stamp.strftime('%H:%M:%S')}.{stamp.microsecond // 1000:03d}"
        return f"[{ts}][{level}] {message}"


def log_error(err: BaseException) -> None:
    """Logs an exception followed by each exception in its cause chain."""
    logger.error("Error occurred: %s", err)
    seen = {id(err)}
    cause = _cause_of(err)
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        logger.error("  caused by: %s", cause)
        cause = _cause_of(cause)


def _cause_of(err: BaseException) -> BaseException | None:
    if err.__cause__ is not None:
        return err.__cause__
    if err.__suppress_context__:
        return None
    return err.__context__


def resolve_log_level(
    verbosity: VerbosityLevel, quiet_mode: bool, env_value: str | None
) -> tuple[int, str | None]:
    """Chooses the log level; also returns an unrecognised environment value."""
    if quiet_mode:
        return OFF, None
    level = verbosity.to_level()
    if level is not None:
        return level, None
    if env_value is None:
        return logging.INFO, None
    name = env_value.lower()
    if name in _ENV_LEVELS:
        return _ENV_LEVELS[name], None
    return logging.INFO, name


_installed_handler: logging.Handler | None = None


def initialize_logging(verbosity: VerbosityLevel, quiet_mode: bool) -> logging.Handler:
    """Installs the output handler on the root logger and returns it."""
    global _installed_handler
    level, unknown = resolve_log_level(verbosity, quiet_mode, os.environ.get(LOG_ENV_VAR))

    root = logging.getLogger()
    if _installed_handler is not None:
        root.removeHandler(_installed_handler)

    handler = logging.StreamHandler(ProgressHandler(sys.stdout))
    handler.setFormatter(_Formatter(detailed=verbosity is not VerbosityLevel.NONE))
    root.addHandler(handler)
    root.setLevel(level)
    _installed_handler = handler

    if unknown is not None:
        logger.error(
            "Unknown log filter level '%s' defined in '%s' env variable, using INFO instead.",
            unknown,
            LOG_ENV_VAR,
        )
    return handler


def _program_version() -> str:
    try:
        return version(PROGRAM_NAME)
    except PackageNotFoundError:
        return "unknown"


def log_program_info(argv: Sequence[str] | None = None) -> None:
    """Logs the program name, version and the command line."""
    if argv is None:
        argv = sys.argv
    logger.info("%s v%s (%s)", PROGRAM_NAME, _program_version(), PROGRAM_NAME)
    logger.info("Called with command line: %s", " ".join(argv))
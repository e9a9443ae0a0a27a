"""Thread-safe, levelled, colourised console logger."""

from __future__ import annotations

import inspect
import sys
import threading
import time
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity of a log message; lower levels are more verbose."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


_RESET = "\033[0m"

_STYLES = {
    LogLevel.DEBUG: ("\033[36m", "[DEBUG]"),
    LogLevel.INFO: ("\033[32m", "[INFO] "),
    LogLevel.WARN: ("\033[33m", "[WARN] "),
    LogLevel.ERROR: ("\033[31m", "[ERROR]"),
}


class Logger:
    """Process-wide logger writing debug/info to stdout and warn/error to stderr."""

    _min_level: LogLevel = LogLevel.INFO
    _lock = threading.Lock()

    @classmethod
    def set_level(cls, min_level: LogLevel) -> None:
        cls._min_level = LogLevel(min_level)

    @classmethod
    def level(cls) -> LogLevel:
        return cls._min_level

    @classmethod
    def debug(cls, msg: str) -> None:
        cls._log(LogLevel.DEBUG, msg)

    @classmethod
    def info(cls, msg: str) -> None:
        cls._log(LogLevel.INFO, msg)

    @classmethod
    def warn(cls, msg: str) -> None:
        cls._log(LogLevel.WARN, msg)

    @classmethod
    def error(cls, msg: str) -> None:
        cls._log(LogLevel.ERROR, msg)

    @classmethod
    def _log(cls, level: LogLevel, msg: str) -> None:
        if level < cls._min_level:
            return

        frame = inspect.currentframe()
        for _ in range(2):
            if frame is not None:
                frame = frame.f_back
        if frame is not None:
            location = f"{frame.f_code.co_filename}:{frame.f_lineno}"
        else:
            location = "<unknown>:0"
        del frame

        color, label = _STYLES[level]
        stamp = time.strftime("%H:%M:%S", time.localtime())
        line = f"{color}{label} {stamp} {location} \u2014 {msg}{_RESET}\n"

        with cls._lock:
            out = sys.stdout if level <= LogLevel.INFO else sys.stderr
            out.write(line)
            if level == LogLevel.ERROR:
                out.flush()
"""Timestamped event log written to a file."""

from __future__ import annotations

import time
from enum import IntEnum
from os import PathLike
from typing import IO, Optional


class LogLevel(IntEnum):
    MUTE = 0
    SIMPLE = 1
    FULL = 2
    PEDANTIC = 3


def _now_us() -> int:
    return time.monotonic_ns() // 1000


class EventLogger:
    """Writes messages prefixed with microseconds elapsed since opening."""

    def __init__(self, path: str | PathLike[str], level: LogLevel | int) -> None:
        self.path = path
        self.level = LogLevel(level)
        self._stream: Optional[IO[str]] = None
        self._t_begin = 0

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        """Create the log file and start the clock."""
        self._stream = open(self.path, "w", encoding="utf-8")
        self._t_begin = _now_us()

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def log(self, level: LogLevel | int, message: str) -> None:
        """Record a message if the logger is open and the level is enabled."""
        if self._stream is None or level > self.level:
            return
        stamp = _now_us() - self._t_begin
        self._stream.write(f"{stamp:016d}: {message}\n")
        self._stream.flush()

    def __enter__(self) -> "EventLogger":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
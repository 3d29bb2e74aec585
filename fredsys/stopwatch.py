"""Monotonic stopwatch."""

from __future__ import annotations

import time
from typing import Optional


class Stopwatch:
    """Measures the time between start() and stop()."""

    def __init__(self) -> None:
        self._start_ns: Optional[int] = None
        self._stop_ns: Optional[int] = None

    def start(self) -> None:
        self._start_ns = time.monotonic_ns()

    def stop(self) -> None:
        self._stop_ns = time.monotonic_ns()

    def _elapsed_ns(self) -> int:
        if self._start_ns is None or self._stop_ns is None:
            raise RuntimeError("stopwatch must be started and stopped first")
        return self._stop_ns - self._start_ns

    def elapsed_ms(self) -> int:
        return self._elapsed_ns() // 1_000_000

    def elapsed_us(self) -> int:
        return self._elapsed_ns() // 1_000
"""Watchdog timer that bounds the execution time of a slot."""

from __future__ import annotations

from typing import Any, Optional

from .events import EventHandler


class SlotTimer(EventHandler):
    """Fires when the hw-task running in a slot exceeds its timeout."""

    def __init__(self, scheduler: Any, fd_timer: Any) -> None:
        if scheduler is None:
            raise ValueError("scheduler is required")
        super().__init__()
        self.scheduler = scheduler
        self.fd_timer = fd_timer
        self.exec_req: Optional[Any] = None

    def fileno(self) -> int:
        return self.fd_timer.fileno()

    def handle_event(self) -> None:
        # Consume the expiration before signalling the scheduler
        self.fd_timer.clear_after_timeout()
        self.scheduler.slot_timeout(self.exec_req)

    def describe(self) -> str:
        return f"slot timer on fd: {self.fileno()}"

    def close(self) -> None:
        if self.fd_timer is not None:
            self.fd_timer.close()
            self.fd_timer = None

    def arm(self, duration_us: int, exec_req: Any) -> None:
        """Start the watchdog for the given request."""
        if exec_req is None:
            raise ValueError("exec_req is required")
        self.exec_req = exec_req
        self.fd_timer.arm(duration_us)

    def disarm(self) -> int:
        """Stop the watchdog and return the elapsed time in microseconds."""
        self.exec_req = None
        elapsed_us = self.fd_timer.elapsed_us()
        self.fd_timer.disarm()
        return elapsed_us
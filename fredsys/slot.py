"""Reconfigurable slot: an accelerator paired with its decoupler."""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Optional

from .events import EventHandler

#                   |--------(skip reconfiguration)---------| |-(timeout)-|
#                   |                                       V |           V
#  BLANK -> RSRV -> RCFG -> READY -> EXEC -> IDLE
#            ^                                 |
#            |---------------------------------|


class SlotState(Enum):
    BLANK = auto()  # Not configured
    RSRV = auto()  # Reserved to a hw-task instance
    RCFG = auto()  # Under reconfiguration
    READY = auto()  # Re-enabled after reconfiguration
    EXEC = auto()  # Executing
    IDLE = auto()  # Configured with a hw-task


class SlotStateError(RuntimeError):
    """Raised when a slot transition is requested from the wrong state."""


class Slot(EventHandler):
    """Slot device; its descriptor signals that the accelerator finished."""

    def __init__(self, index: int, slot_dev: Any, dec_dev: Any, scheduler: Any) -> None:
        super().__init__()
        self.index = index
        self.slot_dev = slot_dev
        self.dec_dev = dec_dev
        self.scheduler = scheduler
        self.state = SlotState.BLANK
        self.exec_req: Optional[Any] = None
        self.hw_task: Optional[Any] = None

    def _require(self, *states: SlotState) -> None:
        if self.state not in states:
            expected = ", ".join(s.name for s in states)
            raise SlotStateError(
                f"slot {self.index} is {self.state.name}, expected {expected}"
            )

    # Event handler interface

    def fileno(self) -> int:
        return self.slot_dev.fileno()

    def handle_event(self) -> None:
        self.scheduler.slot_complete(self.exec_req)

    def describe(self) -> str:
        return f"slot device {self.index} on fd: {self.fileno()}"

    def close(self) -> None:
        if self.slot_dev is not None:
            self.slot_dev.close()
            self.slot_dev = None
        if self.dec_dev is not None:
            self.dec_dev.close()
            self.dec_dev = None

    # Queries

    def is_available(self) -> bool:
        return self.state in (SlotState.IDLE, SlotState.BLANK)

    def match_hw_task(self, hw_task: Any) -> bool:
        if self.state is not SlotState.IDLE or self.hw_task is None:
            return False
        return self.hw_task.id == hw_task.id

    def set_hw_task(self, hw_task: Any) -> None:
        if hw_task is None:
            raise ValueError("hw_task is required")
        self._require(SlotState.RCFG)
        self.hw_task = hw_task

    def check_hw_task_consistency(self) -> bool:
        """Tell whether the loaded accelerator matches the bound hw-task."""
        if self.hw_task is None:
            return False
        return self.slot_dev.read_id() == self.hw_task.id

    # Transitions

    def set_reserved(self) -> None:
        self._require(SlotState.IDLE, SlotState.BLANK)
        self.state = SlotState.RSRV

    def prepare_for_rcfg(self) -> None:
        self._require(SlotState.RSRV)
        self.dec_dev.decouple()
        self.state = SlotState.RCFG

    def reinit_after_rcfg(self) -> None:
        self._require(SlotState.RCFG)
        self.state = SlotState.READY
        self.dec_dev.couple()
        self.slot_dev.after_rcfg()

    def start_compute(self, exec_req: Any) -> None:
        if exec_req is None:
            raise ValueError("exec_req is required")
        self._require(SlotState.READY, SlotState.RSRV)
        self.exec_req = exec_req
        self.state = SlotState.EXEC
        self.slot_dev.start_compute(list(exec_req.args))

    def disable_after_timeout(self) -> None:
        self._require(SlotState.EXEC)
        # Suspend until the next reconfiguration; blank forces a new one
        self.dec_dev.decouple()
        self.state = SlotState.BLANK

    def clear_after_compute(self) -> None:
        self._require(SlotState.EXEC)
        self.slot_dev.after_compute()
        self.state = SlotState.IDLE
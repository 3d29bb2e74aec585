"""FRED scheduler: partition FIFO queues feeding a timestamp-ordered reconfiguration queue."""

from __future__ import annotations

import logging
from bisect import insort
from collections import defaultdict, deque
from enum import Enum
from typing import Any, Optional

_log = logging.getLogger("fredsys.scheduler")


class SchedMode(Enum):
    """Whether reconfiguration may be skipped when the slot already holds the hw-task."""

    NORMAL = 0
    ALWAYS_RCFG = 1


class NotifyAction(Enum):
    """Outcome reported to the client that issued an acceleration request."""

    DONE = 0
    OVERRUN = 1


class SchedulerError(RuntimeError):
    """Raised when the scheduler cannot carry out a transition."""


def _timestamp(request: Any) -> Any:
    return request.timestamp


class FredScheduler:
    """Dispatches acceleration requests to slots and the reconfiguration device.

    Requests are objects carrying ``hw_task``, ``slot``, ``timer``,
    ``skip_rcfg`` and ``timestamp`` attributes, with ``stamp_timestamp()``
    and ``notify(action)`` methods.  Each hw-task exposes ``name``,
    ``partition``, ``timeout_us`` and ``banned``; each partition exposes
    ``name``, ``index`` and ``search_slot(hw_task)``, which returns
    ``(slot, timer, needs_rcfg)`` with ``slot`` set to None when every slot
    is busy.  The reconfiguration device offers ``is_idle()``,
    ``start_prog(request)`` and ``clear_evt()``.
    """

    # Verify after each reconfiguration that the slot holds the expected hw-task
    check_rcfg = False

    def __init__(self, devcfg: Any, mode: SchedMode = SchedMode.NORMAL) -> None:
        if devcfg is None:
            raise ValueError("devcfg is required")
        self.devcfg = devcfg
        self.mode = SchedMode(mode)
        self._part_queues: defaultdict[int, deque] = defaultdict(deque)
        self._fri_queue: list = []

    # Internal steps

    def _start_slot(self, request: Any) -> Optional[Any]:
        """Start the accelerator and its watchdog; return the next FRI request, if any."""
        hw_task = request.hw_task
        slot = request.slot
        timer = request.timer
        if hw_task is None or slot is None or timer is None:
            raise SchedulerError("request is not bound to a hw-task, slot and timer")

        slot.start_compute(request)
        timer.arm(hw_task.timeout_us, request)

        _log.info(
            "slot: %d of partition: %s started for hw-task: %s",
            slot.index, hw_task.partition.name, hw_task.name,
        )

        if self._fri_queue:
            _log.debug("FRI queue not empty")
            return self._fri_queue.pop(0)
        return None

    def _start_rcfg(self, request: Optional[Any]) -> None:
        while request is not None:
            hw_task = request.hw_task
            if not request.skip_rcfg:
                _log.info(
                    "start rcfg of slot: %d of partition: %s for hw-task: %s",
                    request.slot.index, hw_task.partition.name, hw_task.name,
                )
                request.slot.prepare_for_rcfg()
                self.devcfg.start_prog(request)
                return

            _log.info(
                "skipping rcfg of slot: %d of partition: %s for hw-task: %s",
                request.slot.index, hw_task.partition.name, hw_task.name,
            )
            request = self._start_slot(request)

    def _push_fri(self, request: Any) -> None:
        insort(self._fri_queue, request, key=_timestamp)

        if self.devcfg.is_idle() and self._fri_queue[0] is request:
            _log.debug("DevCfg idle & request on top")
            self._fri_queue.pop(0)
            self._start_rcfg(request)

    def _pull_partition_queue(self, request_done: Any) -> None:
        slot = request_done.slot
        timer = request_done.timer
        partition = request_done.hw_task.partition

        queue = self._part_queues[partition.index]
        if not queue:
            return

        request = queue.popleft()
        slot.set_reserved()
        request.slot = slot
        request.timer = timer
        self._push_fri(request)

    @staticmethod
    def _bound_parts(request: Any) -> tuple[Any, Any, Any]:
        if request is None:
            raise ValueError("request is required")
        slot = request.slot
        timer = request.timer
        partition = request.hw_task.partition if request.hw_task is not None else None
        if slot is None or partition is None:
            raise SchedulerError("request is not bound to a slot")
        return slot, timer, partition

    # Scheduler interface

    def push_accel_req(self, request: Any) -> None:
        """Accept a new acceleration request from a software task."""
        if request is None:
            raise ValueError("request is required")

        request.stamp_timestamp()

        hw_task = request.hw_task
        partition = hw_task.partition
        slot, timer, needs_rcfg = partition.search_slot(hw_task)

        if slot is None:
            _log.info(
                "all slots are busy for hw-task %s, insert into partition %s queue",
                hw_task.name, partition.name,
            )
            self._part_queues[partition.index].append(request)
            return

        slot.set_reserved()
        request.slot = slot
        request.timer = timer

        if not needs_rcfg and self.mode is not SchedMode.ALWAYS_RCFG:
            request.skip_rcfg = True

        _log.info(
            "hw-task: %s got slot: %d of its partition: %s, inserted in fri queue",
            hw_task.name, slot.index, partition.name,
        )
        self._push_fri(request)

    def rcfg_complete(self, request_done: Any) -> None:
        """Handle the end of a reconfiguration and start the accelerator."""
        if request_done is None:
            raise ValueError("request is required")
        slot = request_done.slot
        if slot is None:
            raise SchedulerError("request is not bound to a slot")

        rcfg_time_us = int(self.devcfg.clear_evt())
        if rcfg_time_us <= 0:
            raise SchedulerError(f"invalid reconfiguration time: {rcfg_time_us}")

        hw_task = request_done.hw_task
        _log.info(
            "devcfg, slot: %d of partition: %s rcfg completed for hw-task: %s in %d us",
            slot.index, hw_task.partition.name, hw_task.name, rcfg_time_us,
        )

        slot.reinit_after_rcfg()

        if self.check_rcfg and not slot.check_hw_task_consistency():
            raise SchedulerError(
                f"mismatch on slot {slot.index} of partition "
                f"{hw_task.partition.name} for hw-task {hw_task.name}"
            )

        self._start_rcfg(self._start_slot(request_done))

    def slot_complete(self, request_done: Any) -> None:
        """Handle the completion of a hw-task execution."""
        slot, timer, partition = self._bound_parts(request_done)
        if timer is None:
            raise SchedulerError("request is not bound to a timer")

        exec_time_us = timer.disarm()
        slot.clear_after_compute()

        _log.info(
            "slot: %d of partition: %s completed execution of hw-task: %s in %d us",
            slot.index, partition.name, request_done.hw_task.name, exec_time_us,
        )

        request_done.notify(NotifyAction.DONE)
        self._pull_partition_queue(request_done)

    def slot_timeout(self, request_done: Any) -> None:
        """Handle a hw-task overrun: ban it and disable its slot."""
        slot, _timer, partition = self._bound_parts(request_done)

        request_done.hw_task.banned = True
        slot.disable_after_timeout()

        _log.warning(
            "slot: %d of partition: %s overrun! Permanently disabling offending hw-task: %s",
            slot.index, partition.name, request_done.hw_task.name,
        )

        request_done.notify(NotifyAction.OVERRUN)
        self._pull_partition_queue(request_done)
"""FRED scheduler variant that places requests on random slots and always reconfigures."""

from __future__ import annotations

import logging
from typing import Any

from .scheduler_fred import FredScheduler, SchedMode

_log = logging.getLogger("fredsys.scheduler")


class RandomFredScheduler(FredScheduler):
    """FRED scheduler that picks a random free slot and never skips reconfiguration.

    Partitions must offer ``search_random_slot(hw_task)``, which returns
    ``(slot, timer)`` with ``slot`` set to None when every slot is busy.
    Reconfiguration completion, slot completion and timeouts behave as in
    :class:`FredScheduler`.
    """

    def __init__(self, devcfg: Any) -> None:
        super().__init__(devcfg, SchedMode.ALWAYS_RCFG)

    def push_accel_req(self, request: Any) -> None:
        """Accept a new acceleration request from a software task."""
        if request is None:
            raise ValueError("request is required")

        request.stamp_timestamp()

        hw_task = request.hw_task
        partition = hw_task.partition
        slot, timer = partition.search_random_slot(hw_task)

        if slot is None:
            _log.info(
                "all slots are busy for hw-task %s, insert into partition %s queue",
                hw_task.name, partition.name,
            )
            self._part_queues[partition.index].append(request)
            return

        # A free slot was found: reconfiguration is never skipped
        slot.set_reserved()
        request.slot = slot
        request.timer = timer

        _log.info(
            "hw-task: %s got slot: %d of its partition: %s, inserted in fri queue",
            hw_task.name, slot.index, partition.name,
        )
        self._push_fri(request)
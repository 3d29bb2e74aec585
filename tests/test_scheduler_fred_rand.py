import itertools

import pytest

from fredsys.scheduler_fred import NotifyAction, SchedulerError
from fredsys.scheduler_fred_rand import RandomFredScheduler
from fredsys.slot import Slot, SlotState


class FakeSlotDev:
    def __init__(self):
        self.started = []

    def fileno(self):
        return 3

    def start_compute(self, args):
        self.started.append(args)

    def after_rcfg(self):
        pass

    def after_compute(self):
        pass

    def read_id(self):
        return 0

    def close(self):
        pass


class FakeDecoupler:
    def __init__(self):
        self.coupled = True

    def decouple(self):
        self.coupled = False

    def couple(self):
        self.coupled = True

    def close(self):
        pass


class FakeTimer:
    def __init__(self):
        self.armed = []

    def arm(self, duration_us, exec_req):
        self.armed.append((duration_us, exec_req))

    def disarm(self):
        return 5


class FakeDevcfg:
    def __init__(self, rcfg_time=100):
        self.idle = True
        self.programmed = []
        self.rcfg_time = rcfg_time

    def is_idle(self):
        return self.idle

    def start_prog(self, request):
        self.idle = False
        self.programmed.append(request)

    def clear_evt(self):
        self.idle = True
        return self.rcfg_time


class FakePartition:
    def __init__(self, name, index, slots):
        self.name = name
        self.index = index
        self.slots = slots

    def search_random_slot(self, hw_task):
        for slot, timer in self.slots:
            if slot.is_available():
                return slot, timer
        return None, None


class FakeHwTask:
    def __init__(self, ident, name, partition, timeout_us=1000):
        self.id = ident
        self.name = name
        self.partition = partition
        self.timeout_us = timeout_us
        self.banned = False


_clock = itertools.count()


class FakeRequest:
    def __init__(self, hw_task):
        self.hw_task = hw_task
        self.slot = None
        self.timer = None
        self.skip_rcfg = False
        self.timestamp = None
        self.args = [0x1000]
        self.notified = []

    def stamp_timestamp(self):
        self.timestamp = next(_clock)

    def notify(self, action):
        self.notified.append(action)


def make_partition(name, index, count=1):
    slots = [
        (Slot(i, FakeSlotDev(), FakeDecoupler(), scheduler=None), FakeTimer())
        for i in range(count)
    ]
    return FakePartition(name, index, slots)


def test_requires_devcfg():
    with pytest.raises(ValueError):
        RandomFredScheduler(None)


def test_push_none_request_raises():
    sched = RandomFredScheduler(FakeDevcfg())
    with pytest.raises(ValueError):
        sched.push_accel_req(None)


def test_free_slot_starts_reconfiguration():
    devcfg = FakeDevcfg()
    sched = RandomFredScheduler(devcfg)
    part = make_partition("p0", 0)
    req = FakeRequest(FakeHwTask(1, "a", part))

    sched.push_accel_req(req)

    slot, timer = part.slots[0]
    assert req.slot is slot
    assert req.timer is timer
    assert slot.state is SlotState.RCFG
    assert devcfg.programmed == [req]
    assert req.timestamp is not None


def test_never_skips_reconfiguration_when_slot_holds_task():
    devcfg = FakeDevcfg()
    sched = RandomFredScheduler(devcfg)
    part = make_partition("p0", 0)
    task = FakeHwTask(1, "a", part)
    slot, _timer = part.slots[0]
    slot.state = SlotState.IDLE
    slot.hw_task = task
    req = FakeRequest(task)

    sched.push_accel_req(req)

    assert req.skip_rcfg is False
    assert slot.state is SlotState.RCFG
    assert devcfg.programmed == [req]


def test_busy_partition_queues_until_completion():
    devcfg = FakeDevcfg()
    sched = RandomFredScheduler(devcfg)
    part = make_partition("p0", 0)
    task = FakeHwTask(1, "a", part, timeout_us=777)
    first = FakeRequest(task)
    second = FakeRequest(task)
    slot, timer = part.slots[0]

    sched.push_accel_req(first)
    sched.rcfg_complete(first)
    assert slot.state is SlotState.EXEC
    assert timer.armed == [(777, first)]

    sched.push_accel_req(second)
    assert second.slot is None
    assert devcfg.programmed == [first]

    sched.slot_complete(first)
    assert first.notified == [NotifyAction.DONE]
    assert second.slot is slot
    assert second.timer is timer
    assert slot.state is SlotState.RCFG
    assert devcfg.programmed == [first, second]


def test_busy_devcfg_defers_next_reconfiguration():
    devcfg = FakeDevcfg()
    sched = RandomFredScheduler(devcfg)
    p0 = make_partition("p0", 0)
    p1 = make_partition("p1", 1)
    req_a = FakeRequest(FakeHwTask(1, "a", p0))
    req_b = FakeRequest(FakeHwTask(2, "b", p1))

    sched.push_accel_req(req_a)
    sched.push_accel_req(req_b)
    assert devcfg.programmed == [req_a]
    assert req_b.slot.state is SlotState.RSRV

    sched.rcfg_complete(req_a)
    assert req_a.slot.state is SlotState.EXEC
    assert req_b.slot.state is SlotState.RCFG
    assert devcfg.programmed == [req_a, req_b]


def test_timeout_bans_task_and_blanks_slot():
    devcfg = FakeDevcfg()
    sched = RandomFredScheduler(devcfg)
    part = make_partition("p0", 0)
    task = FakeHwTask(1, "a", part)
    req = FakeRequest(task)

    sched.push_accel_req(req)
    sched.rcfg_complete(req)
    sched.slot_timeout(req)

    assert task.banned is True
    assert req.slot.state is SlotState.BLANK
    assert req.notified == [NotifyAction.OVERRUN]


def test_invalid_reconfiguration_time_raises():
    devcfg = FakeDevcfg(rcfg_time=0)
    sched = RandomFredScheduler(devcfg)
    part = make_partition("p0", 0)
    req = FakeRequest(FakeHwTask(1, "a", part))

    sched.push_accel_req(req)
    with pytest.raises(SchedulerError):
        sched.rcfg_complete(req)
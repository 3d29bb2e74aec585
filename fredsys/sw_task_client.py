"""Connection with one software task that requests hardware acceleration."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional

from .buffctl import BuffCtlError
from .events import ClientDetached, EventHandler, HandlerError
from .fd_utils import set_fd_nonblock
from .scheduler_fred import NotifyAction

_log = logging.getLogger("fredsys.client")

MAX_HW_TASKS = 64
USER_BUFF_NAME_SIZE = 256


class MsgHead(IntEnum):
    """Kind of message exchanged with a software task."""

    INIT = 0
    BIND = 1
    RUN = 2
    BUFFS = 3
    ACK = 4
    DONE = 5
    OVERRUN = 6
    ERROR = 7


class ClientState(Enum):
    EMPTY = 0
    READY = 1
    BUSY = 2


@dataclass
class FredMsg:
    """Fixed-size message: a head and one 32-bit argument."""

    head: int
    arg: int = 0

    FORMAT = "@iI"

    def pack(self) -> bytes:
        return struct.pack(self.FORMAT, int(self.head), self.arg & 0xFFFFFFFF)

    @classmethod
    def unpack(cls, data: bytes) -> "FredMsg":
        head, arg = struct.unpack(cls.FORMAT, bytes(data))
        return cls(head=head, arg=arg)


FRED_MSG_SIZE = struct.calcsize(FredMsg.FORMAT)


@dataclass
class UserBuff:
    """Data buffer as seen by the software task: its length and device path."""

    length: int
    dev_name: str

    FORMAT = f"@N{USER_BUFF_NAME_SIZE}s"

    def pack(self) -> bytes:
        name = self.dev_name.encode("utf-8")[: USER_BUFF_NAME_SIZE - 1]
        return struct.pack(self.FORMAT, self.length, name)


def user_dev_name(dev_name: str) -> str:
    """Turn a kernel device name into a path: "fred!buffN" -> "/dev/fred/buffN"."""
    return f"/dev/{dev_name}".replace("!", "/", 1)


class SwTaskClient(EventHandler):
    """Serves the requests of one connected software task.

    ``sys`` offers ``get_hw_task(id)``; hw-tasks expose ``id``, ``name``,
    ``banned`` and ``data_buffs_sizes``; ``buffctl`` offers
    ``alloc_buff(size)`` and ``free_buff(buff)``; ``request`` offers
    ``unbind()`` and the ``hw_task``, ``args`` and ``notifier`` attributes.
    """

    max_hw_tasks = MAX_HW_TASKS

    def __init__(self, conn: Any, sys: Any, scheduler: Any, buffctl: Any, request: Any) -> None:
        if sys is None or scheduler is None or buffctl is None:
            conn.close()
            raise ValueError("sys, scheduler and buffctl are required")
        super().__init__()
        self.conn = conn
        try:
            set_fd_nonblock(conn)
        except (OSError, ValueError) as exc:
            conn.close()
            raise HandlerError("unable to set client socket non-blocking") from exc

        self.sys = sys
        self.scheduler = scheduler
        self.buffctl = buffctl
        self.request = request
        self.state = ClientState.EMPTY
        self.hw_tasks: list[Any] = []
        self.data_buffs: list[list[Any]] = []
        self._closed = False

        request.notifier = self.notify

    # Communication

    def _write(self, data: bytes) -> None:
        try:
            written = self.conn.send(data)
        except OSError as exc:
            raise ClientDetached(f"unable to reach client: {exc}") from exc
        if written != len(data):
            raise ClientDetached("unable to reach client: short write")

    def _send(self, head: MsgHead, arg: int = 0) -> None:
        self._write(FredMsg(head, arg).pack())

    def _send_user_buffs(self, buffs: list[Any], sizes: tuple[int, ...]) -> None:
        self._send(MsgHead.BUFFS, len(buffs))
        payload = b"".join(
            UserBuff(size, user_dev_name(buff.dev_name)).pack()
            for buff, size in zip(buffs, sizes)
        )
        if payload:
            self._write(payload)

    # Requests

    def _bind(self, hw_task_id: int) -> None:
        if self.state is not ClientState.READY:
            self._send(MsgHead.ERROR)
            return

        hw_task = self.sys.get_hw_task(hw_task_id)
        if hw_task is None:
            _log.error("unable to find hw-task id: %d", hw_task_id)
            self._send(MsgHead.ERROR)
            return

        if hw_task.banned:
            self._send(MsgHead.ERROR)
            return

        if len(self.hw_tasks) >= self.max_hw_tasks - 1:
            _log.error("maximum number of hw-tasks exceeded")
            self._send(MsgHead.ERROR)
            return

        sizes = tuple(hw_task.data_buffs_sizes)
        buffs: list[Any] = []
        try:
            for size in sizes:
                buffs.append(self.buffctl.alloc_buff(size))
        except BuffCtlError as exc:
            for buff in buffs:
                self.buffctl.free_buff(buff)
            raise ClientDetached("could not allocate data buffer") from exc

        self.hw_tasks.append(hw_task)
        self.data_buffs.append(buffs)
        self._send_user_buffs(buffs, sizes)

    def _run(self, hw_task_id: int) -> None:
        if self.state is not ClientState.READY:
            self._send(MsgHead.ERROR)
            return

        index: Optional[int] = next(
            (i for i, task in enumerate(self.hw_tasks) if task.id == hw_task_id), None
        )
        if index is None or self.hw_tasks[index].banned:
            self._send(MsgHead.ERROR)
            return

        self.request.unbind()
        self.request.hw_task = self.hw_tasks[index]
        self.request.args = [buff.phy_addr for buff in self.data_buffs[index]]
        try:
            self.scheduler.push_accel_req(self.request)
        except (ClientDetached, HandlerError):
            raise
        except Exception as exc:
            raise HandlerError("critical error while processing client request") from exc

    def process_msg(self, msg: FredMsg) -> None:
        """Serve one message; raise ClientDetached or HandlerError on failure."""
        try:
            head: Optional[MsgHead] = MsgHead(msg.head)
        except ValueError:
            head = None

        if head is MsgHead.INIT:
            if self.state is not ClientState.EMPTY:
                self._send(MsgHead.ERROR)
            else:
                self.state = ClientState.READY
                self._send(MsgHead.ACK)
        elif head is MsgHead.BIND:
            self._bind(msg.arg)
        elif head is MsgHead.RUN:
            self._run(msg.arg)
        else:
            self._send(MsgHead.ERROR)

    def notify(self, action: NotifyAction) -> None:
        """Tell the software task that its request completed or overran."""
        head = MsgHead.DONE if action is NotifyAction.DONE else MsgHead.OVERRUN
        try:
            self._send(head)
        except ClientDetached as exc:
            raise HandlerError(str(exc)) from exc

    # Event handler interface

    def fileno(self) -> int:
        return self.conn.fileno()

    def handle_event(self) -> None:
        try:
            data = self.conn.recv(FRED_MSG_SIZE)
        except OSError as exc:
            raise HandlerError(f"error reading client message from socket: {exc}") from exc
        if not data:
            raise ClientDetached("client disconnected")
        if len(data) < FRED_MSG_SIZE:
            raise ClientDetached("truncated client message")
        self.process_msg(FredMsg.unpack(data))

    def describe(self) -> str:
        return f"sw-task client on fd: {self.fileno()}"

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        buffs_sets, self.data_buffs = self.data_buffs, []
        for buffs in buffs_sets:
            for buff in buffs:
                try:
                    self.buffctl.free_buff(buff)
                except BuffCtlError as exc:
                    _log.error("%s", exc)
        self.conn.close()
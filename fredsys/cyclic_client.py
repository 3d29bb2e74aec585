"""Built-in client that keeps requesting every hw-task in turn."""

from __future__ import annotations

from typing import Any

from .buffctl import BuffCtlError
from .events import EventHandler, HandlerError
from .fd_utils import byte_read, byte_write, create_socket_pair, set_fd_nonblock


class CyclicClient(EventHandler):
    """Issues one acceleration request at a time, cycling over all hw-tasks.

    Each completion or overrun notification triggers the next request.
    ``request`` must offer ``unbind()`` and the ``hw_task``, ``args`` and
    ``notifier`` attributes; hw-tasks expose ``name`` and ``data_buffs_sizes``.
    """

    def __init__(self, sys: Any, scheduler: Any, buffctl: Any, request: Any) -> None:
        if sys is None or scheduler is None or buffctl is None:
            raise ValueError("sys, scheduler and buffctl are required")
        super().__init__()
        self.sys = sys
        self.scheduler = scheduler
        self.buffctl = buffctl
        self.request = request
        self.next_hw_task = 0
        self.hw_tasks = list(sys.hw_tasks)
        self.data_buffs: list[list[Any]] = []

        if not self.hw_tasks:
            raise HandlerError("cyclic sw-tasks client: no hw-tasks on sys")

        self._bind_all_hw_tasks()

        try:
            self._in_sock, self._out_sock = create_socket_pair()
        except OSError as exc:
            self._free_all_buffs()
            raise HandlerError("cyclic sw-tasks client: cannot create socket pair") from exc

        try:
            set_fd_nonblock(self._out_sock)
            # Trigger the first acceleration request
            byte_write(self._in_sock)
        except OSError as exc:
            self._close_sockets()
            self._free_all_buffs()
            raise HandlerError("cyclic sw-tasks client: unable to trigger first request") from exc

        request.notifier = self.notify

    def _bind_all_hw_tasks(self) -> None:
        for hw_task in self.hw_tasks:
            buffs: list[Any] = []
            self.data_buffs.append(buffs)
            try:
                for size in hw_task.data_buffs_sizes:
                    buffs.append(self.buffctl.alloc_buff(size))
            except BuffCtlError as exc:
                self._free_all_buffs()
                raise HandlerError(
                    "cyclic sw-tasks client: could not allocate data buffer"
                ) from exc

    def _free_all_buffs(self) -> None:
        buffs_sets, self.data_buffs = self.data_buffs, []
        for buffs in buffs_sets:
            for buff in buffs:
                self.buffctl.free_buff(buff)

    def _close_sockets(self) -> None:
        self._in_sock.close()
        self._out_sock.close()

    def _build_request(self, index: int) -> None:
        self.request.unbind()
        self.request.hw_task = self.hw_tasks[index]
        self.request.args = [buff.phy_addr for buff in self.data_buffs[index]]

    def fileno(self) -> int:
        return self._out_sock.fileno()

    def handle_event(self) -> None:
        """Send the request for the next hw-task, banned or not."""
        try:
            byte_read(self._out_sock)
        except OSError as exc:
            raise HandlerError("cyclic sw-tasks client: read error") from exc

        self._build_request(self.next_hw_task)
        self.scheduler.push_accel_req(self.request)
        self.next_hw_task = (self.next_hw_task + 1) % len(self.hw_tasks)

    def notify(self, action: Any) -> None:
        """Completion or overrun: schedule the next request."""
        try:
            byte_write(self._in_sock)
        except OSError as exc:
            raise HandlerError("cyclic sw-tasks client: write error") from exc

    def describe(self) -> str:
        return f"cyclic sw-tasks test client on fd: {self.fileno()}"

    def close(self) -> None:
        self._close_sockets()
        self._free_all_buffs()
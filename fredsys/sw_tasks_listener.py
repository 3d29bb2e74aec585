"""Listening socket that turns new software-task connections into clients."""

from __future__ import annotations

import logging
import os
import socket
from os import PathLike
from typing import Any, Callable

from .events import EventHandler, HandlerError, HandlerMode, HandlerOwnership
from .sw_task_client import SwTaskClient

_log = logging.getLogger("fredsys.listener")

DEFAULT_SOCK_PATH = "/tmp/fred_sock"
DEFAULT_BACKLOG = 64


def open_listening_socket(
    path: str | PathLike[str] = DEFAULT_SOCK_PATH, backlog: int = DEFAULT_BACKLOG
) -> socket.socket:
    """Bind a non-blocking Unix stream socket at path, replacing a stale one."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.setblocking(False)
    address = os.fspath(path)
    try:
        os.unlink(address)
    except FileNotFoundError:
        pass
    except OSError:
        sock.close()
        raise
    try:
        sock.bind(address)
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    return sock


class SwTasksListener(EventHandler):
    """Accepts software tasks and registers a client handler for each.

    ``reactor`` offers ``add_event_handler(handler, mode, ownership)``;
    ``request_factory()`` builds the acceleration request of a new client.
    """

    def __init__(
        self,
        sys: Any,
        reactor: Any,
        scheduler: Any,
        buffctl: Any,
        request_factory: Callable[[], Any],
        path: str | PathLike[str] = DEFAULT_SOCK_PATH,
        backlog: int = DEFAULT_BACKLOG,
    ) -> None:
        if sys is None or reactor is None or scheduler is None or buffctl is None:
            raise ValueError("sys, reactor, scheduler and buffctl are required")
        super().__init__()
        try:
            self._sock = open_listening_socket(path, backlog)
        except OSError as exc:
            raise HandlerError(f"unable to open listening socket: {exc}") from exc
        self.path = path
        self.sys = sys
        self.reactor = reactor
        self.scheduler = scheduler
        self.buffctl = buffctl
        self.request_factory = request_factory

    def fileno(self) -> int:
        return self._sock.fileno()

    def handle_event(self) -> None:
        """Accept a pending connection and hand its client to the reactor."""
        try:
            conn, _addr = self._sock.accept()
        except OSError as exc:
            raise HandlerError(f"error on connect: {exc}") from exc
        client = SwTaskClient(
            conn, self.sys, self.scheduler, self.buffctl, self.request_factory()
        )
        self.reactor.add_event_handler(client, HandlerMode.NORMAL, HandlerOwnership.OWNED)

    def describe(self) -> str:
        return f"sw-task listener on fd: {self.fileno()}"

    def close(self) -> None:
        self._sock.close()
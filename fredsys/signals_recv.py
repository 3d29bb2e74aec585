"""Turns termination signals into readable events for the reactor."""

from __future__ import annotations

import signal
from typing import Any

from .events import EventHandler, HandlerError
from .fd_utils import create_socket_pair

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGQUIT, signal.SIGTERM)


class ShutdownRequested(HandlerError):
    """A termination signal was received; the server must stop."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        if signum in HANDLED_SIGNALS:
            text = f"received signal {signal.Signals(signum).name}, terminating"
        else:
            text = "received unexpected signal, terminating"
        super().__init__(text)


def _ignore(signum: int, frame: Any) -> None:
    """Keep the default action from running; the wakeup fd carries the signal."""


class SignalsReceiver(EventHandler):
    """Readable whenever SIGINT, SIGQUIT or SIGTERM arrives.

    Must be created in the main thread.
    """

    def __init__(self) -> None:
        super().__init__()
        self._read_sock, self._write_sock = create_socket_pair()
        self._read_sock.setblocking(False)
        self._write_sock.setblocking(False)
        self._previous_handlers = {}
        try:
            self._previous_wakeup = signal.set_wakeup_fd(
                self._write_sock.fileno(), warn_on_full_buffer=False
            )
            for signum in HANDLED_SIGNALS:
                self._previous_handlers[signum] = signal.signal(signum, _ignore)
        except (ValueError, OSError) as exc:
            self._restore()
            self._read_sock.close()
            self._write_sock.close()
            raise HandlerError(f"unable to install signal handlers: {exc}") from exc
        self._closed = False

    def _restore(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers = {}
        signal.set_wakeup_fd(getattr(self, "_previous_wakeup", -1))

    def fileno(self) -> int:
        return self._read_sock.fileno()

    def handle_event(self) -> None:
        """Consume one signal and request shutdown."""
        try:
            data = self._read_sock.recv(1)
        except OSError as exc:
            raise HandlerError("error while reading for a signal") from exc
        if len(data) != 1:
            raise HandlerError("error while reading for a signal")
        raise ShutdownRequested(data[0])

    def describe(self) -> str:
        return f"signals handler on fd: {self.fileno()}"

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._restore()
        self._read_sock.close()
        self._write_sock.close()
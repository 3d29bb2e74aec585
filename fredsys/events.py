"""Event handler interface shared by everything the reactor dispatches."""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from enum import Enum

_handler_ids = itertools.count()


class HandlerMode(Enum):
    """Dispatch priority of a handler inside the reactor."""

    NORMAL = 0
    PRI = 1


class HandlerOwnership(Enum):
    """Whether the reactor closes the handler when it drops it."""

    NOT_OWNED = 0
    OWNED = 1


class HandlerError(Exception):
    """Critical failure while serving an event: the server must stop."""


class ClientDetached(Exception):
    """A single client failed or disconnected and must be dropped."""


class EventHandler(ABC):
    """Something with a file descriptor that reacts when it becomes readable."""

    name = "event handler"

    def __init__(self) -> None:
        self.handler_id = next(_handler_ids)

    @abstractmethod
    def fileno(self) -> int:
        """Return the descriptor the reactor waits on."""

    @abstractmethod
    def handle_event(self) -> None:
        """Serve one event; raise HandlerError or ClientDetached on failure."""

    def describe(self) -> str:
        return f"{self.name} on fd: {self.fileno()}"

    def close(self) -> None:
        """Release the resources held by the handler."""
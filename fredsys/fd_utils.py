"""Small helpers around file descriptors and socket pairs."""

from __future__ import annotations

import os
import socket
from typing import Protocol, Union


class _HasFileno(Protocol):
    def fileno(self) -> int: ...


FdLike = Union[int, _HasFileno]


def _fd(obj: FdLike) -> int:
    return obj if isinstance(obj, int) else obj.fileno()


def create_socket_pair() -> tuple[socket.socket, socket.socket]:
    """Create a connected pair of Unix stream sockets."""
    return socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)


def byte_write(fd: FdLike) -> None:
    """Write a single byte; raise OSError if it was not written."""
    written = os.write(_fd(fd), b"a")
    if written != 1:
        raise OSError("unable to write one byte")


def byte_read(fd: FdLike) -> None:
    """Consume a single byte; raise OSError if none could be read."""
    data = os.read(_fd(fd), 1)
    if len(data) != 1:
        raise OSError("unable to read one byte")


def set_fd_nonblock(fd: FdLike) -> None:
    """Put a descriptor into non-blocking mode."""
    number = _fd(fd)
    if number < 0:
        raise ValueError(f"invalid file descriptor: {number}")
    os.set_blocking(number, False)
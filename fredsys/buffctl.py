"""Client for the buffer control device that allocates contiguous data buffers."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Optional

FB_DEVN_SIZE = 64
FRED_BUFFCTL_MAGIC = 0x7F
DEFAULT_DEV = "/dev/fred/buffctl"

IOC_NONE = 0
IOC_WRITE = 1
IOC_READ = 2

_IOC_NRBITS = 8
_IOC_TYPEBITS = 8
_IOC_SIZEBITS = 14
_IOC_DIRBITS = 2
_IOC_NRSHIFT = 0
_IOC_TYPESHIFT = _IOC_NRSHIFT + _IOC_NRBITS
_IOC_SIZESHIFT = _IOC_TYPESHIFT + _IOC_TYPEBITS
_IOC_DIRSHIFT = _IOC_SIZESHIFT + _IOC_SIZEBITS


class BuffCtlError(Exception):
    """Raised when the buffer control device cannot serve a request."""


def ioctl_number(direction: int, magic: int, number: int, size: int) -> int:
    """Encode an ioctl request number the way the Linux _IOC macro does."""
    for name, value, bits in (
        ("direction", direction, _IOC_DIRBITS),
        ("magic", magic, _IOC_TYPEBITS),
        ("number", number, _IOC_NRBITS),
        ("size", size, _IOC_SIZEBITS),
    ):
        if not 0 <= value < (1 << bits):
            raise ValueError(f"ioctl {name} out of range: {value}")
    return (
        (direction << _IOC_DIRSHIFT)
        | (size << _IOC_SIZESHIFT)
        | (magic << _IOC_TYPESHIFT)
        | (number << _IOC_NRSHIFT)
    )


@dataclass
class PhyBit:
    """Physical location of a bitstream in memory."""

    addr: int = 0
    size: int = 0


@dataclass
class FredBuffIf:
    """Descriptor of a buffer exchanged with the kernel module."""

    id: int = 0
    length: int = 0
    phy_addr: int = 0
    dev_name: str = ""

    FORMAT = f"@INP{FB_DEVN_SIZE}s"

    def pack(self) -> bytes:
        name = self.dev_name.encode("ascii")[: FB_DEVN_SIZE - 1]
        return struct.pack(self.FORMAT, self.id, self.length, self.phy_addr, name)

    @classmethod
    def unpack(cls, data: bytes) -> "FredBuffIf":
        ident, length, phy_addr, raw_name = struct.unpack(cls.FORMAT, bytes(data))
        name = raw_name.split(b"\0", 1)[0].decode("ascii", errors="replace")
        return cls(id=ident, length=length, phy_addr=phy_addr, dev_name=name)


FRED_BUFF_IF_SIZE = struct.calcsize(FredBuffIf.FORMAT)
FRED_BUFFCTL_ALLOC = ioctl_number(IOC_READ | IOC_WRITE, FRED_BUFFCTL_MAGIC, 1, FRED_BUFF_IF_SIZE)
FRED_BUFFCTL_FREE = ioctl_number(IOC_WRITE, FRED_BUFFCTL_MAGIC, 2, struct.calcsize("I"))


class BuffCtl:
    """Open handle on the buffer control device."""

    def __init__(self, dev_name: Optional[str] = None) -> None:
        self.dev_name = DEFAULT_DEV if dev_name is None else dev_name
        try:
            self._fd: Optional[int] = os.open(self.dev_name, os.O_RDWR)
        except OSError as exc:
            raise BuffCtlError(f"failed to open {self.dev_name}") from exc

    def _require_open(self) -> int:
        if self._fd is None:
            raise BuffCtlError("buffer control device is closed")
        return self._fd

    def alloc_buff(self, size: int) -> FredBuffIf:
        """Ask the kernel module for a new buffer of the given size."""
        import fcntl

        fd = self._require_open()
        request = bytearray(FredBuffIf(length=size).pack())
        try:
            fcntl.ioctl(fd, FRED_BUFFCTL_ALLOC, request, True)
        except OSError as exc:
            raise BuffCtlError("kernel module could not allocate a new buff") from exc
        return FredBuffIf.unpack(request)

    def free_buff(self, buff: FredBuffIf) -> None:
        """Ask the kernel module to release a buffer."""
        import fcntl

        fd = self._require_open()
        try:
            fcntl.ioctl(fd, FRED_BUFFCTL_FREE, struct.pack("@I", buff.id))
        except OSError as exc:
            raise BuffCtlError("kernel module failed to free buffer") from exc

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "BuffCtl":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
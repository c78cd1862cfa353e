"""Hardware boundary: port discovery and line transports."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional


@dataclass(frozen=True)
class PortInfo:
    """A serial port the host reports, with its USB identifiers when known."""

    device: str
    vid: Optional[int] = None
    pid: Optional[int] = None
    description: str = ""

    def as_dict(self) -> dict:
        return {"device": self.device, "vid": self.vid, "pid": self.pid, "description": self.description}


PortSelector = Callable[[], Awaitable[PortInfo]]


def fixed_port(port: PortInfo) -> PortSelector:
    """Selector that always answers with ``port`` and never asks the user."""

    async def select() -> PortInfo:
        return port

    return select


class Transport:
    """An open byte link to one device.

    ``write`` must not return before the device accepted the line.
    """

    port: PortInfo

    async def identify(self) -> None:
        raise NotImplementedError

    async def write(self, line: str) -> List[str]:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class Backend:
    """Host serial capability."""

    @property
    def available(self) -> bool:
        raise NotImplementedError

    def authorized_ports(self) -> List[PortInfo]:
        raise NotImplementedError

    async def request_port(self) -> PortInfo:
        raise NotImplementedError

    async def open(self, port: PortInfo) -> Transport:
        raise NotImplementedError


__all__ = ["PortInfo", "PortSelector", "fixed_port", "Transport", "Backend"]

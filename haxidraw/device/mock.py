"""In-memory plotter used for development and unit tests."""
from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from ..errors import DeviceUnreachable, NoTransportAvailable, PortSelectionCancelled, TransportError
from .base import Backend, PortInfo, Transport


class MockTransport(Transport):
    """Records every accepted line.

    ``delay`` is awaited before each write is acknowledged and ``fail_after``
    makes the write with that index raise :class:`TransportError`.
    """

    def __init__(
        self,
        port: PortInfo,
        *,
        delay: float = 0.0,
        fail_after: Optional[int] = None,
        fail_identify: bool = False,
        events: Optional[List[str]] = None,
    ) -> None:
        self.port = port
        self.delay = delay
        self.fail_after = fail_after
        self.fail_identify = fail_identify
        self.lines: List[str] = []
        self.events = events if events is not None else []
        self.closed = False

    async def identify(self) -> None:
        await asyncio.sleep(0)
        if self.fail_identify:
            raise DeviceUnreachable(f"{self.port.device} did not answer")
        self.events.append("identify")

    async def write(self, line: str) -> List[str]:
        if self.closed:
            raise TransportError("write on closed transport")
        if self.fail_after is not None and len(self.lines) >= self.fail_after:
            raise TransportError("device stopped responding")
        await asyncio.sleep(self.delay)
        self.lines.append(line)
        self.events.append(f"write {line}")
        return ["ok"]

    async def close(self) -> None:
        await asyncio.sleep(0)
        self.closed = True
        self.events.append("close")


class MockBackend(Backend):
    """Small simulation of the host serial API.

    ``choice`` is what the device picker answers; ``None`` means the user
    dismissed it.  Every transport handed out is kept in ``transports``.
    """

    def __init__(
        self,
        ports: Sequence[PortInfo] = (),
        *,
        choice: Optional[PortInfo] = None,
        available: bool = True,
        unreachable: Sequence[str] = (),
        delay: float = 0.0,
        fail_after: Optional[int] = None,
        fail_identify: bool = False,
    ) -> None:
        self.ports = list(ports)
        self.choice = choice
        self._available = available
        self.unreachable = set(unreachable)
        self.delay = delay
        self.fail_after = fail_after
        self.fail_identify = fail_identify
        self.transports: List[MockTransport] = []
        self.events: List[str] = []

    @property
    def available(self) -> bool:
        return self._available

    @property
    def transport(self) -> Optional[MockTransport]:
        return self.transports[-1] if self.transports else None

    def authorized_ports(self) -> List[PortInfo]:
        return list(self.ports)

    async def request_port(self) -> PortInfo:
        if not self._available:
            raise NoTransportAvailable("serial is not available")
        await asyncio.sleep(0)
        if self.choice is None:
            raise PortSelectionCancelled("No port selected")
        return self.choice

    async def open(self, port: PortInfo) -> MockTransport:
        if not self._available:
            raise NoTransportAvailable("serial is not available")
        await asyncio.sleep(0)
        if port.device in self.unreachable:
            raise DeviceUnreachable(f"Cannot open {port.device}")
        transport = MockTransport(
            port,
            delay=self.delay,
            fail_after=self.fail_after,
            fail_identify=self.fail_identify,
            events=self.events,
        )
        self.transports.append(transport)
        return transport


__all__ = ["MockTransport", "MockBackend"]

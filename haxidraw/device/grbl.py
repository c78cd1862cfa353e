"""Serial transport for GRBL based plotters.

Blocking pyserial calls are pushed to a worker thread with
:func:`asyncio.to_thread`; the owning :class:`~haxidraw.connection.DeviceConnection`
serialises them, so at most one call is in flight at a time.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

try:
    import serial
    from serial.tools import list_ports
except ImportError:  # pragma: no cover - pyserial has no implementation for this platform
    serial = None
    list_ports = None

from ..config import PlotterSettings
from ..errors import DeviceUnreachable, NoTransportAvailable, PortSelectionCancelled, TransportError
from .base import Backend, PortInfo, Transport

logger = logging.getLogger(__name__)

PortChooser = Callable[[List[PortInfo]], Optional[PortInfo]]


class GrblTransport(Transport):
    """One open serial port speaking the GRBL line protocol."""

    def __init__(self, ser, port: PortInfo, settings: PlotterSettings) -> None:
        self._serial = ser
        self.port = port
        self.settings = settings

    # ------------------------------------------------------------------
    # Low level helpers
    # ------------------------------------------------------------------
    def _write(self, data: str) -> None:
        if not data.endswith("\n"):
            data += "\n"
        self._serial.write(data.encode("ascii"))
        self._serial.flush()

    def _read_until_ok(self, timeout: float) -> List[str]:
        lines: List[str] = []
        t0 = time.monotonic()
        while True:
            raw = self._serial.readline().decode(errors="ignore").strip()
            if raw:
                lines.append(raw)
                low = raw.lower()
                if low.startswith("ok"):
                    return lines
                if low.startswith("error") or low.startswith("alarm"):
                    raise TransportError(f"Device rejected command: {raw}")
            if time.monotonic() - t0 > timeout:
                raise TransportError(f"No acknowledgement within {timeout:.1f}s")

    def _command(self, line: str, timeout: float) -> List[str]:
        try:
            self._write(line)
            return self._read_until_ok(timeout)
        except OSError as exc:  # serial.SerialException derives from OSError
            raise TransportError(str(exc)) from exc

    def _handshake(self) -> None:
        time.sleep(self.settings.handshake_delay)
        self._write("\r\n")  # wake
        self._serial.reset_input_buffer()
        self._command("G90", self.settings.read_timeout)  # absolute coordinates
        self._command("G21", self.settings.read_timeout)  # millimeters

    # ------------------------------------------------------------------
    # Transport API
    # ------------------------------------------------------------------
    async def identify(self) -> None:
        try:
            await asyncio.to_thread(self._handshake)
        except (TransportError, OSError) as exc:
            raise DeviceUnreachable(f"{self.port.device} did not answer: {exc}") from exc

    async def write(self, line: str) -> List[str]:
        return await asyncio.to_thread(self._command, line, self.settings.ack_timeout)

    async def close(self) -> None:
        await asyncio.to_thread(self._serial.close)


class SerialBackend(Backend):
    """Host serial ports via pyserial.

    ``request_port`` stands in for the interactive device picker: an explicit
    ``device`` wins, then ``chooser``, then the only port present.  Anything
    else counts as the user declining to pick.
    """

    def __init__(
        self,
        settings: PlotterSettings,
        *,
        device: Optional[str] = None,
        chooser: Optional[PortChooser] = None,
    ) -> None:
        self.settings = settings
        self.device = device
        self.chooser = chooser

    @property
    def available(self) -> bool:
        return serial is not None

    def authorized_ports(self) -> List[PortInfo]:
        if not self.available:
            return []
        return [
            PortInfo(device=p.device, vid=p.vid, pid=p.pid, description=p.description or "")
            for p in list_ports.comports()
        ]

    async def request_port(self) -> PortInfo:
        if not self.available:
            raise NoTransportAvailable("pyserial has no serial implementation on this host")
        ports = await asyncio.to_thread(self.authorized_ports)
        if self.device:
            for p in ports:
                if p.device == self.device:
                    return p
            return PortInfo(device=self.device)
        if self.chooser is not None:
            chosen = self.chooser(ports)
            if chosen is None:
                raise PortSelectionCancelled("No port selected")
            return chosen
        if len(ports) == 1:
            return ports[0]
        raise PortSelectionCancelled(f"No port selected ({len(ports)} candidates)")

    async def open(self, port: PortInfo) -> GrblTransport:
        if not self.available:
            raise NoTransportAvailable("pyserial has no serial implementation on this host")
        logger.info("Opening %s at %d baud", port.device, self.settings.baudrate)
        # ``serial`` is importable past the ``available`` check above
        try:
            ser = await asyncio.to_thread(
                serial.Serial,
                port.device,
                baudrate=self.settings.baudrate,
                timeout=self.settings.read_timeout,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise DeviceUnreachable(f"Cannot open {port.device}: {exc}") from exc
        return GrblTransport(ser, port, self.settings)


__all__ = ["GrblTransport", "SerialBackend", "PortChooser"]

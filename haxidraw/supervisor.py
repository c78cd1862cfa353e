"""Automatic connection to plotters the host already knows about."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from .config import PlotterSettings
from .connection import ConnectionState, DeviceConnection
from .device.base import Backend, fixed_port
from .errors import ConnectionBusy, HaxidrawError, PortSelectionCancelled

logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """Opens the machine slot when a port with the plotter's vendor id shows up.

    Every port is considered once, when it first appears.  A user who
    disconnects keeps the machine disconnected until the device is plugged
    in again.  Opening goes through :meth:`DeviceConnection.open`, exactly
    like a manual connect.
    """

    def __init__(self, connection: DeviceConnection, backend: Backend, settings: PlotterSettings) -> None:
        self.connection = connection
        self.backend = backend
        self.settings = settings
        self._seen: Set[str] = set()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> bool:
        """Scan the ports available at startup. Returns whether a machine is connected."""

        return await self.refresh()

    async def refresh(self) -> bool:
        if not self.backend.available:
            return False
        ports = await asyncio.to_thread(self.backend.authorized_ports)
        present = {p.device for p in ports}

        current = self.connection.port
        if self.connection.is_connected and current is not None and current.device not in present:
            await self.connection.transport_lost(f"{current.device} was removed")

        new_ports = [p for p in ports if p.device not in self._seen]
        self._seen = present
        for port in new_ports:
            if port.vid != self.settings.vendor_id:
                logger.debug("Ignoring %s (vendor id %s)", port.device, port.vid)
                continue
            if self.connection.state is not ConnectionState.DISCONNECTED:
                break
            logger.info("Found plotter on %s, connecting", port.device)
            try:
                await self.connection.open(fixed_port(port))
            except (ConnectionBusy, PortSelectionCancelled):
                break
            except HaxidrawError as exc:
                logger.warning("Automatic connection to %s failed: %s", port.device, exc)
                continue
            break
        return self.connection.is_connected

    def watch(self, interval: Optional[float] = None) -> asyncio.Task:
        """Poll the port list in the background."""

        if self._task is not None and not self._task.done():
            return self._task
        period = self.settings.poll_interval if interval is None else interval
        self._task = asyncio.get_running_loop().create_task(self._watch(period))
        return self._task

    async def _watch(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except OSError as exc:
                logger.warning("Port scan failed: %s", exc)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["ConnectionSupervisor"]

"""Application facade: the entry points the editor calls."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .config import PlotterSettings
from .connection import ConnectionState, DeviceConnection
from .device.base import Backend, PortSelector
from .driver import DriveHandle, MachineDriver
from .errors import DriveInProgress, HaxidrawError, NotConnected, PortSelectionCancelled
from .geometry import Drawing
from .supervisor import ConnectionSupervisor
from .transform import Viewport

logger = logging.getLogger(__name__)


@dataclass
class Status:
    """What a renderer needs to redraw the toolbar."""

    connection_state: ConnectionState
    filename: str
    last_error: Optional[str] = None
    port: Optional[str] = None
    drive: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "connection_state": self.connection_state.value,
            "filename": self.filename,
            "last_error": self.last_error,
            "port": self.port,
            "drive": self.drive,
        }


Renderer = Callable[[Status], None]


class PlotterSession:
    """Coordinate the machine slot, the viewport and status reporting."""

    def __init__(
        self,
        backend: Backend,
        settings: Optional[PlotterSettings] = None,
        *,
        filename: str = "anon",
    ) -> None:
        self.settings = settings or PlotterSettings()
        self.backend = backend
        self.connection = DeviceConnection(backend, self.settings)
        self.driver = MachineDriver()
        self.supervisor = ConnectionSupervisor(self.connection, backend, self.settings)
        self.viewport = Viewport(self.settings.workspace, self.settings.viewport)
        self.filename = filename
        self.last_error: Optional[str] = None
        self._drive: Optional[DriveHandle] = None
        self._renderers: List[Renderer] = []
        self.connection.subscribe(self._on_connection_change)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def status(self) -> Status:
        port = self.connection.port
        return Status(
            connection_state=self.connection.state,
            filename=self.filename,
            last_error=self.last_error,
            port=port.device if port is not None else None,
            drive=self._drive.as_dict() if self._drive is not None else None,
        )

    def add_renderer(self, renderer: Renderer) -> Callable[[], None]:
        self._renderers.append(renderer)

        def remove() -> None:
            if renderer in self._renderers:
                self._renderers.remove(renderer)

        return remove

    def _publish(self) -> None:
        status = self.status()
        for renderer in list(self._renderers):
            try:
                renderer(status)
            except Exception:
                logger.exception("Renderer failed")

    def _set_error(self, message: str) -> None:
        self.last_error = message
        self._publish()

    def _on_connection_change(self, state: ConnectionState, error: Optional[str]) -> None:
        if error is not None:
            self.last_error = error
        elif state is ConnectionState.CONNECTED:
            self.last_error = None
        self._publish()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, *, watch: bool = False) -> None:
        """Connect to an already known plotter, optionally keep watching for one."""

        await self.supervisor.start()
        if watch:
            self.supervisor.watch()

    async def shutdown(self) -> None:
        await self.supervisor.stop()
        await self.disconnect()

    # ------------------------------------------------------------------
    # User entry points
    # ------------------------------------------------------------------
    async def connect(self, selector: Optional[PortSelector] = None) -> bool:
        if self.connection.is_connected:
            return True
        try:
            await self.connection.open(selector)
        except PortSelectionCancelled:
            return False
        except HaxidrawError as exc:
            logger.warning("Connect failed: %s", exc)
            self._set_error(str(exc))
            return False
        return True

    async def disconnect(self) -> None:
        try:
            await self.connection.close()
        except HaxidrawError as exc:
            logger.warning("Disconnect failed: %s", exc)
            self._set_error(str(exc))

    def drive_on_machine(self, drawing: Union[Drawing, Dict[str, Any]]) -> Optional[DriveHandle]:
        """Send ``drawing`` to the machine using the current viewport.

        Returns ``None`` when the machine is not connected or busy; the reason
        ends up in ``last_error``.
        """

        if isinstance(drawing, dict):
            drawing = Drawing.from_dict(drawing)
        try:
            handle = self.driver.drive(drawing, self.connection, self.viewport.snapshot())
        except (NotConnected, DriveInProgress) as exc:
            logger.warning("Cannot run on machine: %s", exc)
            self._set_error(str(exc))
            return None
        self._drive = handle
        self.last_error = None
        handle.add_done_callback(lambda _handle: self._publish())
        self._publish()
        return handle

    def cancel_drive(self) -> bool:
        if self._drive is None:
            return False
        return self._drive.cancel()

    def set_viewport(self, scale_x: Sequence[float], scale_y: Sequence[float]) -> None:
        self.viewport.configure(scale_x, scale_y)
        self._publish()

    def rename(self, filename: Optional[str]) -> None:
        if filename:
            self.filename = filename
            self._publish()


__all__ = ["Status", "Renderer", "PlotterSession"]

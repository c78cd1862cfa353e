"""Lifecycle of the single serial link to the plotter.

State machine::

    DISCONNECTED --open--> CONNECTING --identify ok--> CONNECTED
    CONNECTING --identify failure / selection cancelled / close--> DISCONNECTED
    CONNECTED --close--> DISCONNECTING --transport closed--> DISCONNECTED
    CONNECTED --transport error--> DISCONNECTED

Observers are called synchronously after every transition with the new
state and the error message that caused it, if any.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional

from .commands import GcodeEncoder, MotionCommand
from .config import PlotterSettings
from .device.base import Backend, PortInfo, PortSelector, Transport
from .errors import (
    ConnectionBusy,
    DeviceUnreachable,
    DriveInProgress,
    HaxidrawError,
    NoTransportAvailable,
    NotConnected,
    PortSelectionCancelled,
    TransportError,
)

if TYPE_CHECKING:
    from .driver import DriveHandle

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


StateObserver = Callable[[ConnectionState, Optional[str]], None]


class DeviceConnection:
    """The machine slot: at most one open transport and one active drive."""

    def __init__(self, backend: Backend, settings: PlotterSettings) -> None:
        self.backend = backend
        self.settings = settings
        self.encoder = GcodeEncoder(settings)
        self.last_error: Optional[str] = None
        self._state = ConnectionState.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._observers: List[StateObserver] = []
        self._write_lock = asyncio.Lock()
        self._closed: Optional[asyncio.Event] = None
        self._opening: Optional[asyncio.Event] = None
        self._abort_open = False
        self._active_drive: Optional["DriveHandle"] = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def port(self) -> Optional[PortInfo]:
        return self._transport.port if self._transport is not None else None

    @property
    def active_drive(self) -> Optional["DriveHandle"]:
        return self._active_drive

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, error: Optional[str] = None) -> None:
        if error is not None:
            self.last_error = error
        for observer in list(self._observers):
            try:
                observer(self._state, error)
            except Exception:
                logger.exception("Connection observer failed")

    def _set_state(self, state: ConnectionState, error: Optional[str] = None) -> None:
        logger.debug("Connection %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify(error)

    def report_error(self, message: str) -> None:
        """Publish an error without changing state (e.g. a failed drive)."""

        self._notify(message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self, selector: Optional[PortSelector] = None) -> PortInfo:
        """Select a port, open it and identify the device.

        ``selector`` defaults to the backend's interactive port request.
        """

        if self._state is not ConnectionState.DISCONNECTED:
            raise ConnectionBusy(f"Machine is {self._state.value}")
        if not self.backend.available:
            exc = NoTransportAvailable("This host has no serial support")
            self._notify(str(exc))
            raise exc

        self._abort_open = False
        self._opening = asyncio.Event()
        self._set_state(ConnectionState.CONNECTING)
        transport: Optional[Transport] = None
        try:
            port = await (selector or self.backend.request_port)()
            self._check_abort()
            transport = await self.backend.open(port)
            self._check_abort()
            await transport.identify()
            self._check_abort()
        except PortSelectionCancelled as exc:
            logger.info("%s", exc)
            await self._discard(transport)
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except asyncio.CancelledError:
            await self._discard(transport)
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except HaxidrawError as exc:
            await self._discard(transport)
            self._set_state(ConnectionState.DISCONNECTED, str(exc))
            raise
        except Exception as exc:
            await self._discard(transport)
            self._set_state(ConnectionState.DISCONNECTED, str(exc))
            raise DeviceUnreachable(str(exc)) from exc
        else:
            self._transport = transport
            self.encoder.reset()
            self.last_error = None
            logger.info("Connected to %s", port.device)
            self._set_state(ConnectionState.CONNECTED)
            return port
        finally:
            self._opening.set()

    def _check_abort(self) -> None:
        if self._abort_open:
            raise PortSelectionCancelled("Connection attempt cancelled")

    async def close(self) -> None:
        """Cancel any active drive, wait for it to settle, then release the port.

        While an open is pending, the open is withdrawn instead and ``close``
        returns once it has settled in ``DISCONNECTED``.
        """

        if self._state is ConnectionState.CONNECTING and self._opening is not None:
            self._abort_open = True
            await self._opening.wait()
            return
        if self._state is ConnectionState.DISCONNECTING and self._closed is not None:
            await self._closed.wait()
            return
        if self._state is not ConnectionState.CONNECTED:
            return

        self._closed = asyncio.Event()
        self._set_state(ConnectionState.DISCONNECTING)
        try:
            drive = self._active_drive
            if drive is not None:
                drive.cancel()
                await drive.settled()
            async with self._write_lock:
                transport, self._transport = self._transport, None
                if transport is not None:
                    try:
                        await transport.close()
                    except OSError as exc:
                        raise TransportError(f"Closing the port failed: {exc}") from exc
        finally:
            logger.info("Disconnected")
            self._set_state(ConnectionState.DISCONNECTED)
            self._closed.set()

    async def transport_lost(self, cause: str) -> None:
        """Unsolicited drop, e.g. the device vanished from the port list."""

        if self._state is not ConnectionState.CONNECTED:
            return
        await self._drop(cause)

    async def _drop(self, cause: str) -> None:
        logger.warning("Connection lost: %s", cause)
        transport, self._transport = self._transport, None
        self._set_state(ConnectionState.DISCONNECTED, cause)
        await self._discard(transport)

    async def _discard(self, transport: Optional[Transport]) -> None:
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as exc:
            logger.warning("Ignoring error while closing %s: %s", transport.port.device, exc)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def send(self, command: MotionCommand) -> None:
        """Write one command and wait until the device accepted it."""

        if self._state is not ConnectionState.CONNECTED:
            raise NotConnected(f"Machine is {self._state.value}")
        async with self._write_lock:
            transport = self._transport
            if self._state is not ConnectionState.CONNECTED or transport is None:
                raise NotConnected(f"Machine is {self._state.value}")
            line = self.encoder.encode(command)
            try:
                await transport.write(line)
            except TransportError as exc:
                await self._lost_during_write(transport, str(exc))
                raise
            except OSError as exc:
                await self._lost_during_write(transport, str(exc))
                raise TransportError(str(exc)) from exc

    async def _lost_during_write(self, transport: Transport, cause: str) -> None:
        # close() owns teardown once it has started
        if self._transport is transport and self._state is ConnectionState.CONNECTED:
            await self._drop(cause)

    # ------------------------------------------------------------------
    # Drive ownership
    # ------------------------------------------------------------------
    def claim(self, drive: "DriveHandle") -> None:
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnected(f"Machine is {self._state.value}")
        if self._active_drive is not None:
            raise DriveInProgress("A drawing is already being sent to the machine")
        self._active_drive = drive

    def release(self, drive: "DriveHandle") -> None:
        if self._active_drive is drive:
            self._active_drive = None


__all__ = ["ConnectionState", "DeviceConnection", "StateObserver"]

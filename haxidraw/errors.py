"""Exception hierarchy shared by the connection, driver and session layers."""

from __future__ import annotations

from typing import Optional


class HaxidrawError(RuntimeError):
    """Base class for all machine-drive failures."""


class NoTransportAvailable(HaxidrawError):
    """The host has no serial capability."""


class PortSelectionCancelled(HaxidrawError):
    """The user declined to pick a device or withdrew a pending connect. Not a failure."""


class DeviceUnreachable(HaxidrawError):
    """The selected port could not be opened or did not identify."""


class ConnectionBusy(HaxidrawError):
    """The machine slot is already connected or an open is in progress."""


class NotConnected(HaxidrawError):
    """An operation needs a connected machine."""


class DriveInProgress(HaxidrawError):
    """Another drive operation already owns the connection."""


class TransportError(HaxidrawError):
    """The transport failed while connected."""


class DriveCancelled(HaxidrawError):
    """A drive stopped at a command boundary after a cancellation request."""

    def __init__(self, completed_count: int) -> None:
        super().__init__(f"Drive cancelled after {completed_count} commands")
        self.completed_count = completed_count


class DriveFailed(HaxidrawError):
    """A drive aborted because a command could not be sent."""

    def __init__(self, completed_count: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Drive failed after {completed_count} commands: {cause}")
        self.completed_count = completed_count
        self.cause = cause


class InvalidTransform(HaxidrawError, ValueError):
    """A scale range is degenerate."""


class InvalidDrawing(HaxidrawError, ValueError):
    """Drawing data could not be parsed."""


__all__ = [
    "HaxidrawError",
    "NoTransportAvailable",
    "PortSelectionCancelled",
    "DeviceUnreachable",
    "ConnectionBusy",
    "NotConnected",
    "DriveInProgress",
    "TransportError",
    "DriveCancelled",
    "DriveFailed",
    "InvalidTransform",
    "InvalidDrawing",
]

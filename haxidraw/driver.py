"""Streams a drawing to a connected machine.

A drive owns the connection from the moment :meth:`MachineDriver.drive`
returns until its handle settles.  Commands go out one at a time and each is
acknowledged before the next is issued.  Cancellation is only honoured
between two commands; a user cancel with the pen down sends one extra
``PenUp`` that is not counted in ``completed_count``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .commands import MotionCommand, PenUp, build_commands
from .connection import ConnectionState, DeviceConnection
from .errors import DriveCancelled, DriveFailed, DriveInProgress, HaxidrawError, NotConnected
from .geometry import Drawing
from .transform import CoordinateTransform

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
DoneCallback = Callable[["DriveHandle"], None]


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class DriveResult:
    completed_count: int
    total: int


class DriveHandle:
    """The caller's view of one in-flight drive.

    ``await handle`` returns a :class:`DriveResult` or raises
    :class:`DriveCancelled` / :class:`DriveFailed`.
    """

    def __init__(
        self,
        commands: List[MotionCommand],
        connection: DeviceConnection,
        *,
        token: Optional[CancellationToken] = None,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> None:
        self.commands = commands
        self.connection = connection
        self.token = token or CancellationToken()
        self.progress_cb = progress_cb
        self.completed_count = 0
        self.state = "pending"  # pending | running | cancelling | finished | cancelled | failed
        self.error: Optional[HaxidrawError] = None
        self._task: Optional[asyncio.Task] = None
        self._done_callbacks: List[DoneCallback] = []

    @property
    def total(self) -> int:
        return len(self.commands)

    def start(self) -> None:
        self.state = "running"
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_task_done)

    def cancel(self) -> bool:
        """Request a stop at the next command boundary."""

        if self.done():
            return False
        self.token.cancel()
        self.state = "cancelling"
        return True

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def add_done_callback(self, callback: DoneCallback) -> None:
        if self.done():
            callback(self)
        else:
            self._done_callbacks.append(callback)

    async def settled(self) -> None:
        """Wait for the drive to finish without raising its outcome."""

        if self._task is not None:
            await asyncio.wait({self._task})

    async def wait(self) -> DriveResult:
        assert self._task is not None
        return await asyncio.shield(self._task)

    def __await__(self):
        return self.wait().__await__()

    def as_dict(self) -> dict:
        return {"state": self.state, "completed": self.completed_count, "total": self.total}

    # ------------------------------------------------------------------
    async def _run(self) -> DriveResult:
        try:
            for command in self.commands:
                if self.token.cancelled:
                    await self._lift_pen()
                    raise DriveCancelled(self.completed_count)
                try:
                    await self.connection.send(command)
                except HaxidrawError as exc:
                    raise DriveFailed(self.completed_count, exc) from exc
                self.completed_count += 1
                if self.progress_cb is not None:
                    self.progress_cb(self.completed_count, self.total)
            return DriveResult(self.completed_count, self.total)
        finally:
            self.connection.release(self)

    async def _lift_pen(self) -> None:
        # no writes once close() has started tearing the connection down
        if not self.connection.is_connected or not self.connection.encoder.pen_down:
            return
        try:
            await self.connection.send(PenUp())
        except HaxidrawError as exc:
            logger.warning("Could not lift the pen after cancel: %s", exc)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self.error = DriveCancelled(self.completed_count)
            self.state = "cancelled"
        else:
            exc = task.exception()
            if exc is None:
                self.state = "finished"
                logger.info("Drive finished: %d commands", self.completed_count)
            elif isinstance(exc, DriveCancelled):
                self.error = exc
                self.state = "cancelled"
                logger.info("Drive cancelled after %d/%d commands", self.completed_count, self.total)
            else:
                self.error = exc if isinstance(exc, HaxidrawError) else DriveFailed(self.completed_count, exc)
                self.state = "failed"
                logger.error("Drive failed after %d/%d commands: %s", self.completed_count, self.total, exc)
                self.connection.report_error(str(self.error))
        for callback in self._done_callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Drive completion callback failed")
        self._done_callbacks.clear()


class MachineDriver:
    """Starts drives, enforcing one active drive per connection."""

    def drive(
        self,
        drawing: Drawing,
        connection: DeviceConnection,
        transform: CoordinateTransform,
        *,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> DriveHandle:
        """Build the command list from ``transform`` and start streaming it.

        Must be called from a running event loop.  The transform is used
        once, up front, so later viewport changes cannot alter this drive.
        """

        if connection.state is not ConnectionState.CONNECTED:
            raise NotConnected(f"Machine is {connection.state.value}")
        if connection.active_drive is not None:
            raise DriveInProgress("A drawing is already being sent to the machine")

        commands = build_commands(drawing, transform)
        handle = DriveHandle(commands, connection, progress_cb=progress_cb)
        connection.claim(handle)
        handle.start()
        logger.info("Drive started: %d commands", handle.total)
        return handle


__all__ = ["CancellationToken", "DriveResult", "DriveHandle", "MachineDriver"]

import asyncio

from haxidraw.connection import ConnectionState
from haxidraw.device import MockBackend, PortInfo, fixed_port
from haxidraw.session import PlotterSession

from .conftest import PLOTTER

DRAWING = {"segments": [{"points": [[0, 0], [1, 1], [2, 0]], "draw": True}]}


def make(**kwargs):
    kwargs.setdefault("choice", PLOTTER)
    session = PlotterSession(MockBackend([PLOTTER], **kwargs))
    statuses = []
    session.add_renderer(statuses.append)
    return session, statuses


def test_connect_publishes_status():
    async def scenario():
        session, statuses = make()
        ok = await session.connect()
        again = await session.connect()
        return session, statuses, ok, again

    session, statuses, ok, again = asyncio.run(scenario())
    assert ok and again
    assert [s.connection_state for s in statuses] == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert statuses[-1].port == PLOTTER.device
    assert statuses[-1].filename == "anon"


def test_cancelled_selection_is_silent():
    async def scenario():
        session, statuses = make(choice=None)
        return session, await session.connect()

    session, ok = asyncio.run(scenario())
    assert ok is False
    assert session.status().last_error is None
    assert session.status().connection_state is ConnectionState.DISCONNECTED


def test_connect_failure_surfaces_in_status():
    async def scenario():
        session, statuses = make(available=False)
        return session, statuses, await session.connect()

    session, statuses, ok = asyncio.run(scenario())
    assert ok is False
    assert statuses[-1].last_error == "This host has no serial support"
    assert statuses[-1].connection_state is ConnectionState.DISCONNECTED


def test_connect_with_explicit_port():
    async def scenario():
        session, _ = make(choice=None)
        other = PortInfo(device="/dev/ttyACM7")
        ok = await session.connect(fixed_port(other))
        return session, ok

    session, ok = asyncio.run(scenario())
    assert ok
    assert session.status().port == "/dev/ttyACM7"


def test_drive_without_connection_is_reported():
    async def scenario():
        session, statuses = make()
        return session, statuses, session.drive_on_machine(DRAWING)

    session, statuses, handle = asyncio.run(scenario())
    assert handle is None
    assert "disconnected" in session.last_error
    assert statuses[-1].last_error == session.last_error


def test_drive_on_machine_runs_to_completion():
    async def scenario():
        session, statuses = make()
        await session.connect()
        handle = session.drive_on_machine(DRAWING)
        result = await handle
        return session, statuses, result

    session, statuses, result = asyncio.run(scenario())
    assert result.completed_count == result.total == 6
    assert statuses[-1].drive == {"state": "finished", "completed": 6, "total": 6}
    assert session.backend.transport.lines[1] == "G0 X150.000 Y122.500 F3000"


def test_rerun_while_driving_is_rejected():
    async def scenario():
        session, statuses = make(delay=0.01)
        await session.connect()
        first = session.drive_on_machine(DRAWING)
        second = session.drive_on_machine(DRAWING)
        error = session.last_error
        await first
        return session, first, second, error

    session, first, second, error = asyncio.run(scenario())
    assert second is None
    assert "already" in error
    assert len(session.backend.transport.lines) == first.total


def test_cancel_drive():
    async def scenario():
        session, _ = make(delay=0.01)
        assert session.cancel_drive() is False
        await session.connect()
        handle = session.drive_on_machine(DRAWING)
        await asyncio.sleep(0.015)
        cancelled = session.cancel_drive()
        await handle.settled()
        return session, handle, cancelled

    session, handle, cancelled = asyncio.run(scenario())
    assert cancelled
    assert handle.state == "cancelled"
    assert session.status().drive["completed"] < handle.total
    assert session.status().connection_state is ConnectionState.CONNECTED


def test_viewport_is_applied_to_new_drives():
    async def scenario():
        session, _ = make()
        await session.connect()
        session.set_viewport((0, 10), (0, 10))
        await session.drive_on_machine({"segments": [{"points": [[10, 10]]}]})
        return session

    session = asyncio.run(scenario())
    assert session.backend.transport.lines[1] == "G0 X300.000 Y245.000 F3000"


def test_rename_ignores_empty_names():
    session, statuses = make()
    session.rename("spiral")
    session.rename("")
    session.rename(None)
    assert session.filename == "spiral"
    assert len(statuses) == 1


def test_broken_renderer_does_not_break_session():
    async def scenario():
        session, statuses = make()

        def broken(status):
            raise RuntimeError("render failed")

        session.add_renderer(broken)
        ok = await session.connect()
        return ok, statuses

    ok, statuses = asyncio.run(scenario())
    assert ok
    assert statuses[-1].connection_state is ConnectionState.CONNECTED


def test_start_and_shutdown():
    async def scenario():
        session, statuses = make(choice=None)
        await session.start()
        connected = session.connection.is_connected
        await session.shutdown()
        return session, connected

    session, connected = asyncio.run(scenario())
    assert connected
    assert session.connection.state is ConnectionState.DISCONNECTED


def test_disconnect_while_connecting_cancels_the_connect():
    async def scenario():
        session, statuses = make()
        connecting = asyncio.ensure_future(session.connect())
        await asyncio.sleep(0)
        await session.disconnect()
        return session, statuses, await connecting

    session, statuses, ok = asyncio.run(scenario())
    assert ok is False
    assert session.status().connection_state is ConnectionState.DISCONNECTED
    assert session.status().last_error is None
    assert [s.connection_state for s in statuses] == [ConnectionState.CONNECTING, ConnectionState.DISCONNECTED]

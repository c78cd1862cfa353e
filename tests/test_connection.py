import asyncio

import pytest

from haxidraw.commands import MoveTo, PenDown, PenUp
from haxidraw.connection import ConnectionState, DeviceConnection
from haxidraw.device import MockBackend
from haxidraw.errors import (
    ConnectionBusy,
    DeviceUnreachable,
    NoTransportAvailable,
    NotConnected,
    PortSelectionCancelled,
    TransportError,
)

from .conftest import PLOTTER

DISCONNECTED = ConnectionState.DISCONNECTED
CONNECTING = ConnectionState.CONNECTING
CONNECTED = ConnectionState.CONNECTED
DISCONNECTING = ConnectionState.DISCONNECTING


def make(settings, **kwargs):
    kwargs.setdefault("choice", PLOTTER)
    backend = MockBackend([PLOTTER], **kwargs)
    conn = DeviceConnection(backend, settings)
    seen = []
    conn.subscribe(lambda state, error: seen.append((state, error)))
    return backend, conn, seen


def test_open_reaches_connected(settings):
    async def scenario():
        backend, conn, seen = make(settings)
        port = await conn.open()
        return backend, conn, seen, port

    backend, conn, seen, port = asyncio.run(scenario())
    assert port == PLOTTER
    assert conn.state is CONNECTED
    assert conn.port == PLOTTER
    assert [s for s, _ in seen] == [CONNECTING, CONNECTED]
    assert backend.events == ["identify"]


def test_cancelled_selection_is_a_no_op(settings):
    async def scenario():
        backend, conn, seen = make(settings, choice=None)
        with pytest.raises(PortSelectionCancelled):
            await conn.open()
        return backend, conn, seen

    backend, conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert conn.last_error is None
    assert seen == [(CONNECTING, None), (DISCONNECTED, None)]
    assert backend.transports == []


def test_no_serial_support(settings):
    async def scenario():
        backend, conn, seen = make(settings, available=False)
        with pytest.raises(NoTransportAvailable):
            await conn.open()
        return conn, seen

    conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert conn.last_error
    assert [s for s, _ in seen] == [DISCONNECTED]


def test_unreachable_device(settings):
    async def scenario():
        backend, conn, seen = make(settings, unreachable=[PLOTTER.device])
        with pytest.raises(DeviceUnreachable):
            await conn.open()
        return conn, seen

    conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert "Cannot open" in conn.last_error
    assert seen[-1][0] is DISCONNECTED and seen[-1][1]


def test_failed_identification_closes_the_port(settings):
    async def scenario():
        backend, conn, _ = make(settings, fail_identify=True)
        with pytest.raises(DeviceUnreachable):
            await conn.open()
        return backend, conn

    backend, conn = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert backend.transport.closed


def test_concurrent_opens_are_rejected(settings):
    async def scenario():
        backend, conn, _ = make(settings)
        results = await asyncio.gather(conn.open(), conn.open(), return_exceptions=True)
        return backend, conn, results

    backend, conn, results = asyncio.run(scenario())
    assert results[0] == PLOTTER
    assert isinstance(results[1], ConnectionBusy)
    assert conn.state is CONNECTED
    assert len(backend.transports) == 1


def test_open_while_connected_is_rejected(settings):
    async def scenario():
        _, conn, _ = make(settings)
        await conn.open()
        with pytest.raises(ConnectionBusy):
            await conn.open()
        return conn

    assert asyncio.run(scenario()).state is CONNECTED


def test_send_writes_in_order(settings):
    async def scenario():
        backend, conn, _ = make(settings, delay=0.001)
        await conn.open()
        await asyncio.gather(
            conn.send(PenUp()),
            conn.send(MoveTo(1, 1)),
            conn.send(PenDown()),
            conn.send(MoveTo(2, 2)),
        )
        return backend

    backend = asyncio.run(scenario())
    assert backend.transport.lines == [
        "M3 S40",
        "G0 X1.000 Y1.000 F3000",
        "M3 S90",
        "G1 X2.000 Y2.000 F3000",
    ]


def test_send_requires_connection(settings):
    async def scenario():
        _, conn, _ = make(settings)
        with pytest.raises(NotConnected):
            await conn.send(PenUp())

    asyncio.run(scenario())


def test_transport_error_drops_connection(settings):
    async def scenario():
        backend, conn, seen = make(settings, fail_after=1)
        await conn.open()
        await conn.send(PenUp())
        with pytest.raises(TransportError):
            await conn.send(MoveTo(0, 0))
        return backend, conn, seen

    backend, conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert conn.port is None
    assert seen[-1] == (DISCONNECTED, "device stopped responding")
    assert backend.transport.closed


def test_close_releases_transport(settings):
    async def scenario():
        backend, conn, seen = make(settings)
        await conn.open()
        await conn.close()
        await conn.close()
        return backend, conn, seen

    backend, conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert backend.transport.closed
    assert [s for s, _ in seen] == [CONNECTING, CONNECTED, DISCONNECTING, DISCONNECTED]


def test_transport_lost_notifies_observers(settings):
    async def scenario():
        backend, conn, seen = make(settings)
        await conn.open()
        await conn.transport_lost("unplugged")
        return conn, seen

    conn, seen = asyncio.run(scenario())
    assert conn.state is DISCONNECTED
    assert conn.last_error == "unplugged"
    assert seen[-1] == (DISCONNECTED, "unplugged")


def test_failing_observer_does_not_break_transitions(settings):
    async def scenario():
        _, conn, _ = make(settings)

        def broken(state, error):
            raise RuntimeError("boom")

        conn.subscribe(broken)
        await conn.open()
        return conn

    assert asyncio.run(scenario()).state is CONNECTED


def test_unsubscribe(settings):
    async def scenario():
        _, conn, _ = make(settings)
        calls = []
        unsubscribe = conn.subscribe(lambda s, e: calls.append(s))
        unsubscribe()
        await conn.open()
        return calls

    assert asyncio.run(scenario()) == []


def test_close_while_connecting_withdraws_the_open(settings):
    async def scenario():
        backend, conn, seen = make(settings)
        opening = asyncio.ensure_future(conn.open())
        await asyncio.sleep(0)
        during = conn.state
        await conn.close()
        after = conn.state
        with pytest.raises(PortSelectionCancelled):
            await opening
        return backend, conn, seen, during, after

    backend, conn, seen, during, after = asyncio.run(scenario())
    assert during is CONNECTING
    assert after is DISCONNECTED
    assert conn.state is DISCONNECTED
    assert conn.last_error is None
    assert seen == [(CONNECTING, None), (DISCONNECTED, None)]
    assert backend.transports == []


def test_close_during_identification_releases_the_port(settings):
    async def scenario():
        backend, conn, _ = make(settings)
        opening = asyncio.ensure_future(conn.open())
        while not backend.transports:
            await asyncio.sleep(0)
        await conn.close()
        results = await asyncio.gather(opening, return_exceptions=True)
        return backend, conn, results[0]

    backend, conn, result = asyncio.run(scenario())
    assert isinstance(result, PortSelectionCancelled)
    assert conn.state is DISCONNECTED
    assert conn.port is None
    assert backend.transport.closed

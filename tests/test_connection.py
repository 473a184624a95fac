"""Tests for the connection lifecycle manager."""

import asyncio
import pytest

from peerlink.connection import Connection, ConnectionState
from peerlink.delivery import END_OF_STREAM, BufferPolicy, TerminalCause
from peerlink.errors import NotConnectedError, PeerConnectionError

URL = "wss://relay.example.org/alice"


class TestConnect:
    """Tests for connect()."""

    def test_starts_absent(self, transport):
        connection = Connection(URL, transport)

        assert connection.state == ConnectionState.ABSENT
        assert not connection.connected
        assert transport.sockets == []

    @pytest.mark.asyncio
    async def test_connect_opens_socket(self, transport):
        connection = Connection(URL, transport)

        await connection.connect()

        assert connection.state == ConnectionState.OPEN
        assert connection.connected
        assert len(transport.sockets) == 1
        assert transport.last.url == URL

    @pytest.mark.asyncio
    async def test_connect_twice_opens_one_socket(self, transport):
        connection = Connection(URL, transport)

        await connection.connect()
        await connection.connect()

        assert len(transport.sockets) == 1

    @pytest.mark.asyncio
    async def test_connect_while_connecting_returns_immediately(self, manual_transport):
        connection = Connection(URL, manual_transport)
        first = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)
        assert connection.state == ConnectionState.CONNECTING

        await connection.connect()
        assert len(manual_transport.sockets) == 1

        manual_transport.last.fire_open()
        await first
        assert connection.connected

    @pytest.mark.asyncio
    async def test_connect_waits_for_open(self, manual_transport):
        connection = Connection(URL, manual_transport)
        task = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)

        assert not task.done()
        manual_transport.last.fire_open()
        await task
        assert connection.state == ConnectionState.OPEN

    @pytest.mark.asyncio
    async def test_error_before_open_fails_connect(self, manual_transport):
        connection = Connection(URL, manual_transport)
        task = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)

        cause = OSError("refused")
        manual_transport.last.fire_error(cause)

        with pytest.raises(PeerConnectionError) as exc_info:
            await task
        assert exc_info.value.cause is cause
        assert connection.state == ConnectionState.CLOSED
        assert connection.queue.terminal_cause == TerminalCause.ERROR

        with pytest.raises(NotConnectedError):
            await connection.queue.pull()

    @pytest.mark.asyncio
    async def test_transport_open_raising_fails_connect(self, transport, monkeypatch):
        def broken_open(url, events):
            raise ValueError("bad address")

        monkeypatch.setattr(transport, "open", broken_open)
        connection = Connection(URL, transport)

        with pytest.raises(PeerConnectionError):
            await connection.connect()
        assert connection.state == ConnectionState.CLOSED

        with pytest.raises(NotConnectedError):
            await connection.queue.pull()
        with pytest.raises(NotConnectedError):
            async for _ in connection.queue:
                pass


class TestEvents:
    """Tests for socket events reaching the delivery queue."""

    @pytest.mark.asyncio
    async def test_message_frames_are_delivered(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()

        transport.last.fire_message(b"A")
        transport.last.fire_message(b"B")

        assert (await connection.queue.pull()).value == b"A"
        assert (await connection.queue.pull()).value == b"B"

    @pytest.mark.asyncio
    async def test_close_ends_waiting_pull(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        task = asyncio.create_task(connection.queue.pull())
        await asyncio.sleep(0)

        transport.last.fire_close()

        assert await task == END_OF_STREAM
        assert connection.state == ConnectionState.CLOSED
        assert connection.queue.terminal_cause == TerminalCause.CLOSED

    @pytest.mark.asyncio
    async def test_error_ends_waiting_pull_and_closes_socket(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        task = asyncio.create_task(connection.queue.pull())
        await asyncio.sleep(0)

        transport.last.fire_error()

        assert await task == END_OF_STREAM
        assert transport.last.close_calls == 1
        assert connection.queue.terminal_cause == TerminalCause.ERROR

    @pytest.mark.asyncio
    async def test_error_tolerates_failing_socket_close(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        transport.last.fail_on_close = True

        transport.last.fire_error()

        assert connection.state == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_error_then_close_keeps_error_cause(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()

        transport.last.fire_error()
        transport.last.fire_close()

        assert connection.queue.terminal_cause == TerminalCause.ERROR

    @pytest.mark.asyncio
    async def test_error_listeners_notified(self, transport):
        seen = []
        connection = Connection(URL, transport)
        connection.add_error_listener(seen.append)
        await connection.connect()

        cause = OSError("reset")
        transport.last.fire_error(cause)

        assert seen == [cause]

    @pytest.mark.asyncio
    async def test_failing_error_listener_does_not_break_termination(self, transport):
        def explode(exc):
            raise RuntimeError("listener bug")

        connection = Connection(URL, transport)
        connection.add_error_listener(explode)
        await connection.connect()
        task = asyncio.create_task(connection.queue.pull())
        await asyncio.sleep(0)

        transport.last.fire_error()

        assert await task == END_OF_STREAM

    @pytest.mark.asyncio
    async def test_buffered_messages_discarded_on_close(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        transport.last.fire_message(b"stranded")

        transport.last.fire_close()

        assert await connection.queue.pull() == END_OF_STREAM

    @pytest.mark.asyncio
    async def test_buffered_messages_preserved_on_close(self, transport):
        connection = Connection(URL, transport, buffer_policy=BufferPolicy.PRESERVE)
        await connection.connect()
        transport.last.fire_message(b"kept")

        transport.last.fire_close()

        assert (await connection.queue.pull()).value == b"kept"
        assert await connection.queue.pull() == END_OF_STREAM


class TestNotConnected:
    """Tests for pulling without an open connection."""

    @pytest.mark.asyncio
    async def test_pull_before_connect_fails(self, transport):
        connection = Connection(URL, transport)

        with pytest.raises(NotConnectedError):
            await connection.queue.pull()

    @pytest.mark.asyncio
    async def test_pull_while_connecting_fails(self, manual_transport):
        connection = Connection(URL, manual_transport)
        task = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)

        with pytest.raises(NotConnectedError):
            await connection.queue.pull()

        await connection.close()
        with pytest.raises(PeerConnectionError):
            await task


class TestCloseAndReset:
    """Tests for close() and reset()."""

    @pytest.mark.asyncio
    async def test_close_ends_stream(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        task = asyncio.create_task(connection.queue.pull())
        await asyncio.sleep(0)

        await connection.close()

        assert await task == END_OF_STREAM
        assert connection.state == ConnectionState.CLOSED
        assert transport.last.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()

        await connection.close()
        await connection.close()

        assert connection.state == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_close_before_connect_is_noop(self, transport):
        connection = Connection(URL, transport)

        await connection.close()

        assert connection.state == ConnectionState.ABSENT

    @pytest.mark.asyncio
    async def test_close_swallows_socket_errors(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        transport.last.fail_on_close = True

        await connection.close()

        assert connection.state == ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_close_while_connecting_fails_connect(self, manual_transport):
        connection = Connection(URL, manual_transport)
        task = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)

        await connection.close()

        with pytest.raises(PeerConnectionError):
            await task
        with pytest.raises(NotConnectedError):
            await connection.queue.pull()

    @pytest.mark.asyncio
    async def test_connect_after_close_is_rejected(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        transport.last.fire_close()

        with pytest.raises(PeerConnectionError):
            await connection.connect()
        assert len(transport.sockets) == 1

    @pytest.mark.asyncio
    async def test_reset_allows_reconnect(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        old_queue = connection.queue
        transport.last.fire_close()

        connection.reset()
        assert connection.state == ConnectionState.ABSENT
        assert connection.queue is not old_queue

        await connection.connect()
        assert len(transport.sockets) == 2
        assert connection.connected

        transport.last.fire_message(b"fresh")
        assert (await connection.queue.pull()).value == b"fresh"
        assert await old_queue.pull() == END_OF_STREAM

    @pytest.mark.asyncio
    async def test_reset_live_connection_rejected(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()

        with pytest.raises(PeerConnectionError):
            connection.reset()

    @pytest.mark.asyncio
    async def test_events_from_old_socket_ignored_after_reset(self, transport):
        connection = Connection(URL, transport)
        await connection.connect()
        old_socket = transport.last
        old_socket.fire_close()
        connection.reset()
        await connection.connect()

        old_socket.fire_message(b"ghost")
        old_socket.fire_close()

        assert connection.connected
        assert connection.queue.buffered_count == 0

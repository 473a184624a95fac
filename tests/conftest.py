"""Pytest configuration and fixtures."""

import pytest

from peerlink.transport.base import SocketEvents, SocketHandle, StreamingTransport


class FakeSocket(SocketHandle):
    """Socket whose events are fired by the test."""

    def __init__(self, url: str, events: SocketEvents) -> None:
        self.url = url
        self.events = events
        self.open = False
        self.close_calls = 0
        self.fail_on_close = False

    @property
    def is_open(self) -> bool:
        return self.open

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_on_close:
            raise RuntimeError("already closing")

    async def wait_closed(self) -> None:
        return None

    def fire_open(self) -> None:
        self.open = True
        self.events.on_open()

    def fire_message(self, data: bytes) -> None:
        self.events.on_message(data)

    def fire_error(self, exc: BaseException | None = None) -> None:
        self.open = False
        self.events.on_error(exc or OSError("connection reset"))

    def fire_close(self) -> None:
        self.open = False
        self.events.on_close()


class FakeTransport(StreamingTransport):
    """
    Transport recording every socket it opens.

    With ``auto_open`` the socket reports open as soon as the
    connection starts waiting for it.
    """

    def __init__(self, auto_open: bool = True) -> None:
        self.auto_open = auto_open
        self.sockets: list[FakeSocket] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]

    def open(self, url: str, events: SocketEvents) -> FakeSocket:
        socket = FakeSocket(url, events)
        self.sockets.append(socket)
        if self.auto_open:
            socket.fire_open()
        return socket


@pytest.fixture
def transport() -> FakeTransport:
    """Transport whose sockets open immediately."""
    return FakeTransport()


@pytest.fixture
def manual_transport() -> FakeTransport:
    """Transport whose sockets wait for the test to fire events."""
    return FakeTransport(auto_open=False)

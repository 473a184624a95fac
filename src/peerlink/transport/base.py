"""Abstract base classes for streaming socket transports."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable


@dataclass
class SocketEvents:
    """
    Callbacks a transport fires over the life of one socket.

    Attributes:
        on_open: Socket is open and ready for frames
        on_message: A frame arrived, with its binary payload
        on_error: The socket failed, with the underlying exception
        on_close: The socket is closed
    """

    on_open: Callable[[], None]
    on_message: Callable[[bytes], None]
    on_error: Callable[[BaseException], None]
    on_close: Callable[[], None]


class SocketHandle(ABC):
    """A single streaming socket opened by a transport."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """
        Check whether the socket is open.

        Returns:
            True while frames can flow, False otherwise
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """
        Start closing the socket.

        Must be safe to call more than once and on a socket that is
        still connecting or already closed.
        """
        ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """Wait until the socket has fully shut down."""
        ...


class StreamingTransport(ABC):
    """
    Abstract base class for streaming socket transports.

    Implement this class to plug a different socket library
    underneath a peer connection.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this transport.

        Returns:
            Transport name (e.g., 'websocket')
        """
        ...

    @abstractmethod
    def open(self, url: str, events: SocketEvents) -> SocketHandle:
        """
        Open a socket to a URL.

        Returns immediately; the outcome is reported through ``events``.

        Args:
            url: Streaming address of the remote peer
            events: Lifecycle callbacks for the new socket

        Returns:
            Handle for the socket being opened
        """
        ...

"""
Lifecycle manager for the streaming connection to one peer.

Owns the socket's open/closed state as an explicit state machine and
translates socket events into delivery queue operations.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from peerlink.delivery import BufferPolicy, DeliveryQueue, TerminalCause
from peerlink.errors import PeerConnectionError
from peerlink.transport.base import SocketEvents, SocketHandle, StreamingTransport

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Streaming connection states."""

    ABSENT = "absent"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection:
    """
    Manages the single streaming socket to a peer.

    Provides:
    - Idempotent connect (at most one socket per connection)
    - Message forwarding into the delivery queue
    - Queue termination when the socket closes or fails
    - Explicit reset from closed back to absent for reconnection
    """

    def __init__(
        self,
        url: str,
        transport: StreamingTransport,
        buffer_policy: BufferPolicy = BufferPolicy.DISCARD,
        label: str = "peer",
    ) -> None:
        """
        Initialize the connection.

        Args:
            url: Streaming address of the peer (may embed a credential)
            transport: Transport used to open the socket
            buffer_policy: Fate of buffered messages on termination
            label: Name used in log messages
        """
        self._url = url
        self._transport = transport
        self._buffer_policy = BufferPolicy(buffer_policy)
        self._label = label
        self._state = ConnectionState.ABSENT
        self._handle: SocketHandle | None = None
        self._opening: asyncio.Future[None] | None = None
        self._generation = 0
        self._error_listeners: list[Callable[[BaseException], None]] = []
        self.queue = DeliveryQueue(lambda: self.connected, self._buffer_policy)

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the socket is open."""
        return self._state is ConnectionState.OPEN

    def add_error_listener(self, listener: Callable[[BaseException], None]) -> None:
        """Register a callback for socket errors."""
        self._error_listeners.append(listener)

    async def connect(self) -> None:
        """
        Open the socket unless one already exists.

        Returns at once when the connection is connecting or open.

        Raises:
            PeerConnectionError: If the socket fails before opening, or the
                connection is closed and has not been reset
        """
        if self._state is ConnectionState.CLOSED:
            raise PeerConnectionError(
                f"Connection to {self._label} is closed; reset it before reconnecting"
            )
        if self._state is not ConnectionState.ABSENT:
            return

        self._state = ConnectionState.CONNECTING
        self._opening = asyncio.get_running_loop().create_future()
        opening = self._opening
        logger.info(f"Connecting to {self._label} via {self._transport.name}")

        try:
            self._handle = self._transport.open(self._url, self._events(self._generation))
        except Exception as e:
            logger.error(f"Failed to open socket to {self._label}: {type(e).__name__}")
            self._opening = None
            self._finish(TerminalCause.ERROR)
            raise PeerConnectionError(f"Failed to connect to {self._label}", cause=e) from e

        await opening

    async def close(self) -> None:
        """Close the socket, ending the message stream. Best-effort."""
        if self._state is ConnectionState.ABSENT:
            return
        if self._state is not ConnectionState.CLOSED:
            logger.info(f"Closing connection to {self._label}")
            self._finish(TerminalCause.CLOSED)

        handle = self._handle
        if handle is None:
            return
        try:
            handle.close()
            await handle.wait_closed()
        except Exception as e:
            logger.debug(f"Ignoring error while closing {self._label}: {e}")

    def reset(self) -> None:
        """
        Return a closed connection to absent so connect() can run again.

        The message stream of the old socket stays ended; a fresh delivery
        queue is installed for the next one.

        Raises:
            PeerConnectionError: If the connection is connecting or open
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            raise PeerConnectionError(f"Cannot reset live connection to {self._label}")
        if self._state is ConnectionState.ABSENT:
            return

        self._generation += 1
        self._handle = None
        self._opening = None
        self._state = ConnectionState.ABSENT
        self.queue = DeliveryQueue(lambda: self.connected, self._buffer_policy)
        logger.debug(f"Connection to {self._label} reset")

    def _events(self, generation: int) -> SocketEvents:
        """Bind socket callbacks to one socket generation."""

        def current() -> bool:
            return generation == self._generation

        return SocketEvents(
            on_open=lambda: current() and self._on_open(),
            on_message=lambda frame: current() and self._on_message(frame),
            on_error=lambda exc: current() and self._on_error(exc),
            on_close=lambda: current() and self._on_close(),
        )

    def _on_open(self) -> None:
        if self._state is not ConnectionState.CONNECTING:
            return
        self._state = ConnectionState.OPEN
        self.queue.mark_opened()
        logger.info(f"Connected to {self._label}")
        if self._opening is not None and not self._opening.done():
            self._opening.set_result(None)

    def _on_message(self, frame: bytes) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self.queue.deliver(frame)

    def _on_close(self) -> None:
        if self._state is not ConnectionState.CLOSED:
            logger.info(f"Connection to {self._label} closed")
        self._finish(TerminalCause.CLOSED)

    def _on_error(self, exc: BaseException) -> None:
        logger.warning(f"Connection to {self._label} failed: {type(exc).__name__}")
        for listener in list(self._error_listeners):
            try:
                listener(exc)
            except Exception as e:
                logger.error(f"Error in error listener: {e}")

        if self._handle is not None:
            try:
                self._handle.close()
            except Exception:
                pass

        self._finish(TerminalCause.ERROR, exc)

    def _finish(self, cause: TerminalCause, exc: BaseException | None = None) -> None:
        """Move to closed, fail a pending connect and end the stream."""
        self._state = ConnectionState.CLOSED
        opening = self._opening
        if opening is not None and not opening.done():
            opening.set_exception(
                PeerConnectionError(f"Connection to {self._label} {cause.value} before opening", cause=exc)
            )
        self.queue.terminate(cause)

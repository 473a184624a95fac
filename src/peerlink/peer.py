"""
Addressable peer in the messaging overlay.

A peer is identified by a stable id and reachable at a host. Messages are
sent to it with one HTTP request each and received by it over a persistent
streaming connection, consumed as an async sequence.
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import quote

from peerlink.config import settings
from peerlink.connection import Connection, ConnectionState
from peerlink.delivery import BufferPolicy, PullResult
from peerlink.http.client import HttpSender
from peerlink.http.payload import as_payload
from peerlink.transport.base import StreamingTransport
from peerlink.transport.websocket import WebSocketTransport

logger = logging.getLogger(__name__)


class Peer:
    """
    A remote endpoint reference with its inbound message stream.

    Example:
        ```python
        me = Peer("alice", "relay.example.org", credential="s3cret")
        await me.connect()
        await me.send(Peer("bob", "relay.example.org"), b"hello")
        async for message in me:
            print(message)
        ```
    """

    def __init__(
        self,
        id: str,
        host: str,
        credential: str | None = None,
        *,
        transport: StreamingTransport | None = None,
        sender: HttpSender | None = None,
        buffer_policy: BufferPolicy | str | None = None,
        stream_scheme: str | None = None,
        send_scheme: str | None = None,
    ) -> None:
        """
        Initialize the peer.

        Args:
            id: Stable identifier, unique within the host
            host: Network location of the peer
            credential: Optional secret embedded in the peer's addresses
            transport: Streaming transport (default: WebSocket)
            sender: Outbound HTTP sender (default: a private HttpSender)
            buffer_policy: Fate of buffered messages when the stream ends
            stream_scheme: Scheme of the streaming address (default: from settings)
            send_scheme: Scheme used to post messages (default: from settings)
        """
        self._id = id
        self._host = host
        self._credential = credential or None
        self._transport = transport
        self._sender = sender
        self._owns_sender = sender is None
        self._buffer_policy = BufferPolicy(buffer_policy or settings.buffer_policy)
        self._stream_scheme = stream_scheme or settings.stream_scheme
        self._send_scheme = send_scheme or settings.send_scheme
        self._connection: Connection | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def host(self) -> str:
        return self._host

    @property
    def stream_scheme(self) -> str:
        return self._stream_scheme

    @property
    def send_scheme(self) -> str:
        return self._send_scheme

    @staticmethod
    def build_url(host: str, id: str, scheme: str, credential: str | None = None) -> str:
        """
        Build the address of a peer.

        Args:
            host: Network location of the peer
            id: Peer identifier (percent-encoded into the path)
            scheme: URL scheme (e.g., 'https', 'wss')
            credential: Optional secret placed in the userinfo part

        Returns:
            URL of the form ``scheme://[credential@]host/id``
        """
        userinfo = f"{credential}@" if credential else ""
        return f"{scheme}://{userinfo}{host}/{quote(id, safe='')}"

    def to_url(self, scheme: str | None = None) -> str:
        """Address of this peer for the given scheme (default: send scheme)."""
        return self.build_url(self._host, self._id, scheme or self._send_scheme, self._credential)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "host": self._host,
            "id": self._id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Peer:
        return cls(id=data["id"], host=data["host"], **kwargs)

    def __repr__(self) -> str:
        return f"Peer(id={self._id!r}, host={self._host!r})"

    def __str__(self) -> str:
        return f"{self._id}@{self._host}"

    # =========================================================================
    # Inbound stream
    # =========================================================================

    @property
    def connection(self) -> Connection:
        """The streaming connection, created on first use."""
        if self._connection is None:
            self._connection = Connection(
                self.to_url(self._stream_scheme),
                self._transport or WebSocketTransport(),
                buffer_policy=self._buffer_policy,
                label=str(self),
            )
        return self._connection

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.ABSENT
        return self._connection.state

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    async def connect(self) -> None:
        """Open the streaming connection; no-op if one already exists."""
        await self.connection.connect()

    async def close(self) -> None:
        """Close the streaming connection and any sender this peer owns. Best-effort."""
        if self._connection is not None:
            await self._connection.close()
        if self._owns_sender and self._sender is not None:
            await self._sender.close()

    def reset(self) -> None:
        """Allow a closed connection to be opened again."""
        if self._connection is not None:
            self._connection.reset()

    def add_error_listener(self, listener: Callable[[BaseException], None]) -> None:
        """Register a callback for streaming connection errors."""
        self.connection.add_error_listener(listener)

    async def pull(self) -> PullResult:
        """
        Take the next inbound message.

        Raises:
            NotConnectedError: If the peer never connected
        """
        return await self.connection.queue.pull()

    def __aiter__(self) -> Peer:
        return self

    async def __anext__(self) -> bytes:
        result = await self.pull()
        if result.done:
            raise StopAsyncIteration
        return result.value

    # =========================================================================
    # Outbound send
    # =========================================================================

    async def send(self, peer: Peer, data: Any) -> None:
        """
        Send a message to another peer.

        Replies, if any, arrive later through this peer's own stream.

        Args:
            peer: Target peer
            data: Bytes-like object, text, async byte stream, or Payload

        Raises:
            SendFailureError: If the target does not acknowledge the message
        """
        payload = as_payload(data)
        if self._sender is None:
            self._sender = HttpSender()
        logger.debug(f"Sending {type(payload).__name__} from {self} to {peer}")
        await self._sender.post(peer.to_url(self._send_scheme), payload)

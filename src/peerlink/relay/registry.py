"""
Registry of peers listening on the development relay.

Tracks one WebSocket per peer id and forwards posted messages to it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

from peerlink.connection import ConnectionState

logger = logging.getLogger(__name__)


@dataclass
class ListeningPeer:
    """A peer connected to the relay."""

    peer_id: str
    websocket: WebSocket
    connected_at: float = field(default_factory=time.time)
    state: ConnectionState = ConnectionState.CONNECTING
    frames_forwarded: int = 0

    @property
    def connection_duration(self) -> float:
        """Get connection duration in seconds."""
        return time.time() - self.connected_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "peer_id": self.peer_id,
            "state": self.state.value,
            "connected_at": self.connected_at,
            "duration_seconds": round(self.connection_duration, 2),
            "frames_forwarded": self.frames_forwarded,
        }


class PeerRegistry:
    """
    Manages listening peer sockets on the relay.

    Provides:
    - One live socket per peer id (a newer socket replaces an older one)
    - Forwarding of posted messages as binary frames
    - Connection statistics
    """

    def __init__(self, max_connections: int = 100) -> None:
        """
        Initialize the registry.

        Args:
            max_connections: Maximum concurrent listening peers
        """
        self.max_connections = max_connections
        self._peers: dict[str, ListeningPeer] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        """Get current number of listening peers."""
        return len(self._peers)

    @property
    def is_at_capacity(self) -> bool:
        """Check if connection limit is reached."""
        return self.connection_count >= self.max_connections

    async def register(self, peer_id: str, websocket: WebSocket) -> ListeningPeer | None:
        """
        Accept a listening peer's WebSocket.

        Args:
            peer_id: Id the peer listens as
            websocket: The WebSocket connection

        Returns:
            ListeningPeer if accepted, None if rejected

        Raises:
            Exception: Whatever the handshake raised; the peer is not left
                registered
        """
        async with self._lock:
            rejected = len(self._peers) >= self.max_connections and peer_id not in self._peers
            if not rejected:
                previous = self._peers.get(peer_id)
                listening = ListeningPeer(peer_id=peer_id, websocket=websocket)
                # Registered before accept so a post racing the handshake finds it
                self._peers[peer_id] = listening
                try:
                    await websocket.accept()
                except Exception:
                    listening.state = ConnectionState.CLOSED
                    if self._peers.get(peer_id) is listening:
                        if previous is not None:
                            self._peers[peer_id] = previous
                        else:
                            del self._peers[peer_id]
                    logger.warning(f"Handshake failed for {peer_id}")
                    raise
                listening.state = ConnectionState.OPEN
                logger.info(f"Peer listening: {peer_id}")

        if rejected:
            logger.warning(f"Peer rejected: at capacity ({self.max_connections})")
            await websocket.close(code=1013, reason="Relay at capacity")
            return None

        if previous is not None:
            logger.info(f"Replacing previous socket for {peer_id}")
            await self._close_peer(previous)

        return listening

    async def unregister(self, listening: ListeningPeer) -> None:
        """
        Forget a listening peer if it is still the registered socket.

        Args:
            listening: The peer entry returned by register()
        """
        async with self._lock:
            if self._peers.get(listening.peer_id) is listening:
                del self._peers[listening.peer_id]
                logger.info(f"Peer left: {listening.peer_id}")
        listening.state = ConnectionState.CLOSED

    async def _close_peer(self, listening: ListeningPeer) -> None:
        """Close a peer socket safely."""
        listening.state = ConnectionState.CLOSED
        try:
            await listening.websocket.close()
        except Exception:
            pass

    async def forward(self, peer_id: str, data: bytes) -> bool:
        """
        Send a message to a listening peer as one binary frame.

        Args:
            peer_id: Target peer id
            data: Message payload

        Returns:
            True if sent successfully, False otherwise
        """
        listening = self._peers.get(peer_id)
        if not listening or listening.state is not ConnectionState.OPEN:
            return False

        try:
            await listening.websocket.send_bytes(data)
        except Exception as e:
            logger.warning(f"Failed to forward to {peer_id}: {e}")
            await self.unregister(listening)
            await self._close_peer(listening)
            return False

        listening.frames_forwarded += 1
        return True

    def get_peer(self, peer_id: str) -> ListeningPeer | None:
        """Get a listening peer by id."""
        return self._peers.get(peer_id)

    def get_stats(self) -> dict[str, Any]:
        """Get relay statistics."""
        return {
            "total_connections": self.connection_count,
            "max_connections": self.max_connections,
            "at_capacity": self.is_at_capacity,
            "peers": [p.to_dict() for p in self._peers.values()],
        }

    async def stop(self) -> None:
        """Close every listening socket."""
        async with self._lock:
            peers = list(self._peers.values())
            self._peers.clear()
        for listening in peers:
            await self._close_peer(listening)
        logger.info("Peer registry stopped")

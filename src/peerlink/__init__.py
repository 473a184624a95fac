"""
peerlink: a single addressable peer in a peer-to-peer messaging overlay.

Messages are sent to a peer with one HTTP request each and received by the
peer over a persistent streaming connection, consumed as an ordered async
sequence.
"""

from peerlink.connection import Connection, ConnectionState
from peerlink.delivery import END_OF_STREAM, BufferPolicy, DeliveryQueue, PullResult, TerminalCause
from peerlink.errors import NotConnectedError, PeerConnectionError, PeerlinkError, SendFailureError
from peerlink.peer import Peer

__version__ = "0.1.0"
__all__ = [
    "Peer",
    "Connection",
    "ConnectionState",
    "DeliveryQueue",
    "PullResult",
    "BufferPolicy",
    "TerminalCause",
    "END_OF_STREAM",
    "PeerlinkError",
    "NotConnectedError",
    "PeerConnectionError",
    "SendFailureError",
]

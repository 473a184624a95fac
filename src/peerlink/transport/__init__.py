"""
Transport module for peer streaming connections.

Provides a pluggable socket abstraction and a WebSocket
implementation for receiving peer messages.
"""

from peerlink.transport.base import SocketEvents, SocketHandle, StreamingTransport
from peerlink.transport.websocket import WebSocketHandle, WebSocketTransport

__all__ = [
    "SocketEvents",
    "SocketHandle",
    "StreamingTransport",
    "WebSocketHandle",
    "WebSocketTransport",
]

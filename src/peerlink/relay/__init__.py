"""
Development relay for local peerlink overlays.

Accepts listening peers over WebSocket and forwards
HTTP-posted messages to them.
"""

from peerlink.relay.app import create_app
from peerlink.relay.registry import ListeningPeer, PeerRegistry

__all__ = [
    "create_app",
    "ListeningPeer",
    "PeerRegistry",
]

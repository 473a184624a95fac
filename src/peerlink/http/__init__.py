"""Outbound HTTP send path."""

from peerlink.http.client import HttpSender
from peerlink.http.payload import BytesPayload, Payload, StreamPayload, as_payload

__all__ = [
    "HttpSender",
    "Payload",
    "BytesPayload",
    "StreamPayload",
    "as_payload",
]

"""Outbound message payloads."""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class BytesPayload:
    """A payload held entirely in memory."""

    data: bytes

    @property
    def content(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class StreamPayload:
    """A payload produced incrementally as chunks of bytes."""

    chunks: AsyncIterable[bytes]

    @property
    def content(self) -> AsyncIterable[bytes]:
        return self.chunks


Payload = Union[BytesPayload, StreamPayload]


def as_payload(data: bytes | bytearray | memoryview | str | AsyncIterable[bytes] | Payload) -> Payload:
    """
    Resolve raw outbound data into a payload variant.

    Args:
        data: Bytes-like object, text (UTF-8 encoded), async byte stream,
            or an existing payload

    Returns:
        BytesPayload or StreamPayload

    Raises:
        TypeError: If the data is none of the supported kinds
    """
    if isinstance(data, (BytesPayload, StreamPayload)):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return BytesPayload(bytes(data))
    if isinstance(data, str):
        return BytesPayload(data.encode("utf-8"))
    if isinstance(data, AsyncIterable):
        return StreamPayload(data)
    raise TypeError(f"Unsupported payload type: {type(data).__name__}")

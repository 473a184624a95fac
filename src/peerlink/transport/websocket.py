"""WebSocket transport built on the websockets library."""

from __future__ import annotations

import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosedOK

from peerlink.config import settings
from peerlink.transport.base import SocketEvents, SocketHandle, StreamingTransport

logger = logging.getLogger(__name__)


class WebSocketHandle(SocketHandle):
    """
    One client WebSocket driven by a background reader task.

    The reader connects, fires ``on_open``, forwards each frame to
    ``on_message`` and finally fires ``on_close`` (preceded by
    ``on_error`` when the socket failed).
    """

    def __init__(
        self,
        url: str,
        events: SocketEvents,
        open_timeout: float | None = None,
        max_size: int | None = None,
    ) -> None:
        self._url = url
        self._events = events
        self._open_timeout = open_timeout
        self._max_size = max_size
        self._ws: websockets.ClientConnection | None = None
        self._open = False
        self._closing = False
        self._task: asyncio.Task | None = None
        self._close_task: asyncio.Task | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        """Start the reader task."""
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        """Connect, pump frames, and report the outcome."""
        try:
            self._ws = await websockets.connect(
                self._url,
                open_timeout=self._open_timeout,
                max_size=self._max_size,
            )
        except asyncio.CancelledError:
            self._events.on_close()
            raise
        except Exception as e:
            logger.warning(f"WebSocket connect failed: {type(e).__name__}")
            self._events.on_error(e)
            self._events.on_close()
            return

        self._open = True
        self._events.on_open()
        if self._closing:
            await self._ws.close()

        try:
            async for frame in self._ws:
                if isinstance(frame, str):
                    frame = frame.encode("utf-8")
                self._events.on_message(frame)
        except ConnectionClosedOK:
            pass
        except Exception as e:
            logger.warning(f"WebSocket failed: {e}")
            self._open = False
            self._events.on_error(e)
        finally:
            self._open = False

        self._events.on_close()

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self._task is None or self._task.done():
            return
        if self._ws is None:
            if asyncio.current_task() is self._task:
                # Failure callback from inside the reader; it is already exiting
                return
            self._task.cancel()
        else:
            self._close_task = asyncio.create_task(self._ws.close())

    async def wait_closed(self) -> None:
        tasks = [t for t in (self._close_task, self._task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class WebSocketTransport(StreamingTransport):
    """Opens peer connections as client WebSockets."""

    def __init__(
        self,
        open_timeout: float | None = None,
        max_size: int | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            open_timeout: Seconds allowed for the opening handshake
            max_size: Largest accepted frame in bytes (None = unlimited)
        """
        self.open_timeout = open_timeout if open_timeout is not None else settings.ws_open_timeout
        self.max_size = max_size if max_size is not None else settings.ws_max_size

    @property
    def name(self) -> str:
        return "websocket"

    def open(self, url: str, events: SocketEvents) -> WebSocketHandle:
        handle = WebSocketHandle(
            url,
            events,
            open_timeout=self.open_timeout,
            max_size=self.max_size,
        )
        handle.start()
        return handle

"""
Delivery queue reconciling inbound message arrival with consumer pulls.

Messages arriving before anyone asks for them are buffered; pulls arriving
before any message wait in line. Only one of the two lines is ever
non-empty, and the Nth message delivered completes the Nth pull.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from peerlink.errors import NotConnectedError

logger = logging.getLogger(__name__)


class BufferPolicy(str, Enum):
    """What happens to buffered messages when the stream terminates."""

    DISCARD = "discard"
    PRESERVE = "preserve"


class TerminalCause(str, Enum):
    """Why the stream terminated."""

    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class PullResult:
    """Result of a single pull: a message, or the end of the stream."""

    value: bytes | None
    done: bool = False


END_OF_STREAM = PullResult(value=None, done=True)


class DeliveryQueue:
    """
    Single-producer, many-sequential-consumer message queue.

    Provides:
    - FIFO hand-off between deliver() and pull()
    - Clean end-of-stream for every waiting consumer on terminate()
    - Async iteration over delivered messages
    """

    def __init__(
        self,
        is_connected: Callable[[], bool],
        buffer_policy: BufferPolicy = BufferPolicy.DISCARD,
    ) -> None:
        """
        Initialize the delivery queue.

        Args:
            is_connected: Returns True while the owning connection is open
            buffer_policy: Fate of buffered messages on termination
        """
        self._is_connected = is_connected
        self.buffer_policy = BufferPolicy(buffer_policy)
        self._buffered: deque[bytes] = deque()
        self._pending: deque[asyncio.Future[PullResult]] = deque()
        self._terminal_cause: TerminalCause | None = None
        self._opened = False

    @property
    def opened(self) -> bool:
        """Whether the owning connection ever reached open."""
        return self._opened

    def mark_opened(self) -> None:
        """Record that the owning connection opened."""
        self._opened = True

    @property
    def buffered_count(self) -> int:
        """Number of messages waiting for a consumer."""
        return len(self._buffered)

    @property
    def pending_count(self) -> int:
        """Number of consumers waiting for a message."""
        return len(self._pending)

    @property
    def terminated(self) -> bool:
        """Whether the stream has ended."""
        return self._terminal_cause is not None

    @property
    def terminal_cause(self) -> TerminalCause | None:
        """Why the stream ended, or None while it is live."""
        return self._terminal_cause

    def deliver(self, message: bytes) -> None:
        """
        Hand a message to the oldest waiting consumer, or buffer it.

        Args:
            message: Inbound message payload
        """
        if self._terminal_cause is not None:
            logger.debug(f"Dropping message delivered after termination ({len(message)} bytes)")
            return

        waiter = self._pop_waiter()
        if waiter is not None:
            waiter.set_result(PullResult(value=message))
        else:
            self._buffered.append(message)

    async def pull(self) -> PullResult:
        """
        Take the next message, waiting for one if none is buffered.

        Returns:
            PullResult with the next message, or END_OF_STREAM

        Raises:
            NotConnectedError: If the connection never opened, or is not
                open and the stream has not terminated
        """
        if self._terminal_cause is not None:
            if not self._opened:
                raise NotConnectedError()
            if self._buffered:
                return PullResult(value=self._buffered.popleft())
            return END_OF_STREAM

        if not self._is_connected():
            raise NotConnectedError()

        if self._buffered:
            return PullResult(value=self._buffered.popleft())

        waiter: asyncio.Future[PullResult] = asyncio.get_running_loop().create_future()
        self._pending.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            self._withdraw(waiter)
            raise

    def terminate(self, cause: TerminalCause = TerminalCause.CLOSED) -> None:
        """
        End the stream, completing every waiting consumer with END_OF_STREAM.

        Idempotent; the first cause is kept.

        Args:
            cause: Why the stream ended
        """
        if self._terminal_cause is None:
            self._terminal_cause = TerminalCause(cause)
            if self.buffer_policy is BufferPolicy.DISCARD and self._buffered:
                logger.info(f"Discarding {len(self._buffered)} undelivered message(s) on {self._terminal_cause.value}")
                self._buffered.clear()

        while True:
            waiter = self._pop_waiter()
            if waiter is None:
                break
            waiter.set_result(END_OF_STREAM)

    def _pop_waiter(self) -> asyncio.Future[PullResult] | None:
        """Pop the oldest consumer that can still take a result."""
        while self._pending:
            waiter = self._pending.popleft()
            if not waiter.done():
                return waiter
        return None

    def _withdraw(self, waiter: asyncio.Future[PullResult]) -> None:
        """Remove a cancelled consumer without losing a message handed to it."""
        try:
            self._pending.remove(waiter)
            return
        except ValueError:
            pass

        # Already completed before the cancellation reached the consumer
        if waiter.cancelled():
            return
        result = waiter.result()
        if result.done:
            return
        if self._terminal_cause is not None and self.buffer_policy is BufferPolicy.DISCARD:
            return
        successor = self._pop_waiter()
        if successor is not None:
            successor.set_result(result)
        else:
            self._buffered.appendleft(result.value)

    def __aiter__(self) -> DeliveryQueue:
        return self

    async def __anext__(self) -> bytes:
        result = await self.pull()
        if result.done:
            raise StopAsyncIteration
        return result.value

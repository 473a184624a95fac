"""
Delivery module for inbound peer messages.

Reconciles asynchronous message arrival with asynchronous consumption:
- FIFO hand-off between arriving messages and waiting consumers
- Buffering when no consumer is waiting
- End-of-stream signalling when the connection drops
"""

from peerlink.delivery.queue import (
    END_OF_STREAM,
    BufferPolicy,
    DeliveryQueue,
    PullResult,
    TerminalCause,
)

__all__ = [
    "DeliveryQueue",
    "PullResult",
    "BufferPolicy",
    "TerminalCause",
    "END_OF_STREAM",
]

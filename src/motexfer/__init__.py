"""Scripted file transfer for simulated motes (motexfer)

A driver waits for a sender mote to come up, tells it to ``sendfile`` to a
target address, then feeds it the file one line per acknowledgment while
logging percentage progress:
- the session/driver state machine is independent of how events arrive
- every wait is bounded, so a stalled mote fails its session instead of hanging
- links (socket, serial) and an in-process simulated mote plug in behind it
"""

from .driver import DriverConfig, TransferDriver, TransferResult
from .errors import LinkError, PrematureCompletion, TransferCancelled, TransferError, TransferTimeout
from .events import EventQueue, MoteEvent
from .session import SessionState, TransferSession

__all__ = [
    "DriverConfig",
    "EventQueue",
    "LinkError",
    "MoteEvent",
    "PrematureCompletion",
    "SessionState",
    "TransferCancelled",
    "TransferDriver",
    "TransferError",
    "TransferResult",
    "TransferSession",
    "TransferTimeout",
]

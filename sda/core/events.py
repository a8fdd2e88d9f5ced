"""
Notifications emitted by the auction engine.

Each mutating call buffers its notifications in the EventLog. They are
committed (recorded and fanned out to subscribers) only when the call
succeeds; a rolled-back call emits nothing.
"""

from dataclasses import dataclass, asdict
from typing import Callable, ClassVar, List

from sda.crypto import bytes_to_hex
from sda.utils.logger import get_logger

logger = get_logger("events")


@dataclass(frozen=True)
class Event:
    """Base notification. `name` is the class name; it keys the journal."""
    name: ClassVar[str] = "Event"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.name = cls.__name__

    def to_dict(self) -> dict:
        data = {"event": self.name}
        for key, value in asdict(self).items():
            data[key] = bytes_to_hex(value) if isinstance(value, bytes) else value
        return data


@dataclass(frozen=True)
class BidAccepted(Event):
    bidder: bytes
    total: int


@dataclass(frozen=True)
class AuctionEnded(Event):
    winner: bytes
    amount: int


@dataclass(frozen=True)
class FundsWithdrawn(Event):
    user: bytes
    net: int
    commission: int


@dataclass(frozen=True)
class NonWinnerRefunded(Event):
    bidder: bytes
    original: int
    net: int
    commission: int


@dataclass(frozen=True)
class PartialRefundProcessed(Event):
    bidder: bytes
    original: int
    net: int
    commission: int


@dataclass(frozen=True)
class EmergencyWithdrawal(Event):
    receiver: bytes
    amount: int


EVENT_TYPES = {
    cls.name: cls
    for cls in (
        BidAccepted,
        AuctionEnded,
        FundsWithdrawn,
        NonWinnerRefunded,
        PartialRefundProcessed,
        EmergencyWithdrawal,
    )
}


def event_from_dict(data: dict) -> Event:
    """Rebuild an event from its to_dict() form."""
    cls = EVENT_TYPES[data["event"]]
    kwargs = {}
    for key, value in data.items():
        if key == "event":
            continue
        kwargs[key] = bytes.fromhex(value[2:]) if isinstance(value, str) else value
    return cls(**kwargs)


class EventLog:
    """
    Per-call notification buffer with a committed history.
    
    Attributes:
        history: All committed events, in emission order
        pending: Events emitted by the call in progress
    """

    def __init__(self):
        self.history: List[Event] = []
        self.pending: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []

    def emit(self, event: Event) -> None:
        self.pending.append(event)

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        """Register a callback invoked for every committed event."""
        self._subscribers.append(callback)

    def commit(self) -> List[Event]:
        """
        Move pending events to history and notify subscribers.

        The call that produced the events has already succeeded, so a
        failing subscriber is logged and skipped.
        """
        committed, self.pending = self.pending, []
        self.history.extend(committed)
        for event in committed:
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(f"Subscriber {callback!r} failed on {event.name}: {type(e).__name__}: {e}")
        return committed

    def discard(self) -> None:
        self.pending = []

    def of_type(self, event_type: type) -> List[Event]:
        return [e for e in self.history if isinstance(e, event_type)]

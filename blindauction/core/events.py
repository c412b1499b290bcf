"""
Auction notifications.

Observable events emitted by the auction. Subscribers are plain callables
invoked synchronously, after the operation's state change is applied, in
subscription order. Every event is also kept in an in-memory log.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Type, TypeVar

from blindauction.utils.logger import get_logger

logger = get_logger("events")


@dataclass(frozen=True)
class AuctionEvent:
    """Base class for auction notifications."""


@dataclass(frozen=True)
class AuctionStarted(AuctionEvent):
    time: int


@dataclass(frozen=True)
class BidAccepted(AuctionEvent):
    bidder: bytes


@dataclass(frozen=True)
class HighestBidIncreased(AuctionEvent):
    bidder: bytes


@dataclass(frozen=True)
class AuctionEnded(AuctionEvent):
    amount: int
    bidder: Optional[bytes]


@dataclass(frozen=True)
class RefundProcessed(AuctionEvent):
    bidder: bytes
    amount: int


EventHandler = Callable[[AuctionEvent], None]
E = TypeVar("E", bound=AuctionEvent)


class EventEmitter:
    """Synchronous fan-out of auction events."""

    def __init__(self):
        self._handlers: List[EventHandler] = []
        self.history: List[AuctionEvent] = []

    def subscribe(self, handler: EventHandler) -> None:
        """Register a callback for every future event."""
        self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        self._handlers.remove(handler)

    def emit(self, event: AuctionEvent) -> None:
        self.history.append(event)
        logger.debug(f"Event: {event}")
        for handler in list(self._handlers):
            handler(event)

    def of_type(self, event_type: Type[E]) -> List[E]:
        """Events from the log of a given type, oldest first."""
        return [e for e in self.history if isinstance(e, event_type)]

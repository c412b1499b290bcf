"""
Clock Gate - time source and phase checks for the auction window.

The clock itself is an external collaborator: anything with a ``now()``
returning integer seconds. ``SystemClock`` wraps wall time, ``ManualClock``
is advanced explicitly (tests, scripted CLI runs).

Phase checks are pure functions of a timestamp against the fixed
``AuctionWindow``:

    bidding active:  start_time <= t <= end_time
    bidding ended:   t > end_time
"""

import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol, runtime_checkable

from blindauction.core.errors import (
    BidStillInProgress,
    NotBeneficiary,
    TooEarly,
    TooLate,
)


# =============================================================================
# Clock Sources
# =============================================================================


@runtime_checkable
class Clock(Protocol):
    """Protocol for time sources."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock, whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        """Move forward and return the new time."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now


# =============================================================================
# Auction Window
# =============================================================================


class AuctionPhase(IntEnum):
    """Where a timestamp falls relative to the window."""
    NOT_STARTED = 0
    BIDDING = 1
    ENDED = 2


@dataclass(frozen=True)
class AuctionWindow:
    """Bidding timeline, fixed at construction."""
    start_time: int
    end_time: int

    def __post_init__(self):
        if self.end_time < self.start_time:
            raise ValueError(f"end_time {self.end_time} before start_time {self.start_time}")

    @classmethod
    def starting_at(cls, start_time: int, duration: int) -> "AuctionWindow":
        return cls(start_time=start_time, end_time=start_time + duration)

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    # Non-raising predicates, for status queries

    def is_bidding_open(self, t: int) -> bool:
        return self.start_time <= t <= self.end_time

    def has_ended(self, t: int) -> bool:
        return t > self.end_time

    def phase(self, t: int) -> AuctionPhase:
        if t < self.start_time:
            return AuctionPhase.NOT_STARTED
        if t <= self.end_time:
            return AuctionPhase.BIDDING
        return AuctionPhase.ENDED


# =============================================================================
# Gate
# =============================================================================


class ClockGate:
    """
    Raising phase guards used by every auction operation.

    Holds no state beyond the window and the beneficiary identity.
    """

    def __init__(self, window: AuctionWindow, beneficiary: bytes):
        self.window = window
        self.beneficiary = beneficiary

    def bidding_is_active(self, t: int) -> None:
        """Raise TooEarly/TooLate unless start_time <= t <= end_time."""
        if self.window.is_bidding_open(t):
            return
        if t < self.window.start_time:
            raise TooEarly(t)
        raise TooLate(t)

    def bidding_has_ended(self, t: int) -> None:
        """Raise BidStillInProgress unless t > end_time."""
        if not self.window.has_ended(t):
            raise BidStillInProgress(t)

    def is_beneficiary(self, identity: bytes) -> None:
        if identity != self.beneficiary:
            raise NotBeneficiary(identity)

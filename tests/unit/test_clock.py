"""
Unit tests for the clock gate.

Tests cover:
1. Window arithmetic
2. Bidding window guards (TooEarly / TooLate)
3. Bidding-ended guard
4. Beneficiary check
"""

import pytest

from blindauction.core.clock import (
    AuctionPhase,
    AuctionWindow,
    Clock,
    ClockGate,
    ManualClock,
    SystemClock,
)
from blindauction.core.errors import (
    BidStillInProgress,
    NotBeneficiary,
    TooEarly,
    TooLate,
)

BENEFICIARY = b"\xbe" * 20


@pytest.fixture
def window():
    return AuctionWindow.starting_at(1000, 3600)


@pytest.fixture
def gate(window):
    return ClockGate(window, BENEFICIARY)


class TestWindow:
    """Tests for AuctionWindow."""

    def test_duration(self, window):
        assert window.start_time == 1000
        assert window.end_time == 4600
        assert window.duration == 3600

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            AuctionWindow(start_time=10, end_time=5)

    def test_is_bidding_open(self, window):
        assert not window.is_bidding_open(999)
        assert window.is_bidding_open(1000)
        assert window.is_bidding_open(4600)
        assert not window.is_bidding_open(4601)
        assert window.has_ended(4601)

    def test_phase(self, window):
        assert window.phase(999) == AuctionPhase.NOT_STARTED
        assert window.phase(1000) == AuctionPhase.BIDDING
        assert window.phase(4600) == AuctionPhase.BIDDING
        assert window.phase(4601) == AuctionPhase.ENDED


class TestGate:
    """Tests for the raising guards."""

    def test_bidding_active_inclusive_bounds(self, gate):
        gate.bidding_is_active(1000)
        gate.bidding_is_active(4600)

    def test_too_early_carries_time(self, gate):
        with pytest.raises(TooEarly) as exc:
            gate.bidding_is_active(999)
        assert exc.value.time == 999

    def test_too_late_carries_time(self, gate):
        with pytest.raises(TooLate) as exc:
            gate.bidding_is_active(4601)
        assert exc.value.time == 4601

    def test_bidding_has_ended_is_strict(self, gate):
        with pytest.raises(BidStillInProgress) as exc:
            gate.bidding_has_ended(4600)
        assert exc.value.time == 4600
        gate.bidding_has_ended(4601)

    def test_is_beneficiary(self, gate):
        gate.is_beneficiary(BENEFICIARY)
        with pytest.raises(NotBeneficiary) as exc:
            gate.is_beneficiary(b"\x01" * 20)
        assert exc.value.caller == b"\x01" * 20


class TestClocks:
    """Tests for clock sources."""

    def test_manual_clock(self):
        clock = ManualClock(start=5)
        assert clock.now() == 5
        assert clock.advance(10) == 15
        clock.set(100)
        assert clock.now() == 100

    def test_manual_clock_cannot_rewind(self):
        with pytest.raises(ValueError):
            ManualClock().advance(-1)

    def test_clocks_satisfy_protocol(self):
        assert isinstance(SystemClock(), Clock)
        assert isinstance(ManualClock(), Clock)
        assert SystemClock().now() > 0

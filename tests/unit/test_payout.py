"""
Unit tests for the payout controller.
"""

import pytest

from blindauction.core.auction import HighestBidState, PayoutController
from blindauction.core.clock import AuctionWindow, ClockGate
from blindauction.core.errors import (
    BidStillInProgress,
    NotBeneficiary,
    PayoutAlreadyClaimed,
)

BENEFICIARY = b"\xbe" * 20
ALICE = b"\xa1" * 20

END = 1000 + 3600


@pytest.fixture
def controller():
    return PayoutController(ClockGate(AuctionWindow.starting_at(1000, 3600), BENEFICIARY))


@pytest.fixture
def highest():
    return HighestBidState(amount=500, holder=ALICE)


class TestClaim:
    """Tests for claim_payout."""

    def test_pays_highest_amount(self, controller, highest):
        paid = []
        amount = controller.claim_payout(
            BENEFICIARY, highest, END + 1, lambda who, amt: paid.append((who, amt))
        )
        assert amount == 500
        assert paid == [(BENEFICIARY, 500)]
        assert controller.claimed

    def test_not_beneficiary_checked_first(self, controller, highest):
        """Caller identity is checked before the phase."""
        with pytest.raises(NotBeneficiary):
            controller.claim_payout(ALICE, highest, END, lambda who, amt: None)

    def test_before_end(self, controller, highest):
        with pytest.raises(BidStillInProgress):
            controller.claim_payout(BENEFICIARY, highest, END, lambda who, amt: None)
        assert not controller.claimed

    def test_second_claim_rejected(self, controller, highest):
        controller.claim_payout(BENEFICIARY, highest, END + 1, lambda who, amt: None)
        with pytest.raises(PayoutAlreadyClaimed):
            controller.claim_payout(BENEFICIARY, highest, END + 2, lambda who, amt: None)

    def test_zero_payout_when_no_valid_bids(self, controller):
        paid = []
        amount = controller.claim_payout(
            BENEFICIARY, HighestBidState(), END + 1, lambda who, amt: paid.append(amt)
        )
        assert amount == 0
        assert paid == [0]

    def test_failed_transfer_leaves_unclaimed(self, controller, highest):
        def failing(who, amt):
            raise RuntimeError("transfer failed")

        with pytest.raises(RuntimeError):
            controller.claim_payout(BENEFICIARY, highest, END + 1, failing)
        assert not controller.claimed

"""
End-to-end auction scenarios.

Tests verify:
1. Two-bidder auction in both reveal orders
2. Escrow accounting across refunds and payout
3. Event sequence
4. Rejections leave no trace
"""

import pytest

from blindauction.core.auction import BlindAuction, BidResult
from blindauction.core.clock import AuctionPhase, ManualClock
from blindauction.core.config import AuctionConfig
from blindauction.core.errors import (
    BidStillInProgress,
    InCompleteBidData,
    InsufficientEscrow,
    InsufficientFunds,
    InvalidBidInput,
    NoRefundToBeProcessed,
    NotBeneficiary,
    PayoutAlreadyClaimed,
    TooEarly,
    TooLate,
    TooManyBids,
)
from blindauction.core.events import (
    AuctionEnded,
    AuctionStarted,
    BidAccepted,
    HighestBidIncreased,
    RefundProcessed,
)
from blindauction.core.payment import InMemoryPaymentGateway
from blindauction.crypto import create_sealed_bid, encode_bytes32_string, parse_ether

START = 1_000
DURATION = 3_600
END = START + DURATION

BENEFICIARY = b"\xbe" * 20
ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return ManualClock(start=START)


@pytest.fixture
def payments():
    return InMemoryPaymentGateway()


@pytest.fixture
def auction(clock, payments):
    return BlindAuction(BENEFICIARY, DURATION, clock=clock, payments=payments)


def seal(auction, bidder, ether, secret, deposit_ether=None):
    value = parse_ether(ether)
    deposit = parse_ether(deposit_ether) if deposit_ether else None
    commitment, deposit = create_sealed_bid(value, secret, deposit)
    return auction.submit_bid(bidder, commitment, deposit)


def reveal(auction, bidder, ether, secret):
    return auction.reveal_bids(bidder, [parse_ether(ether)], [encode_bytes32_string(secret)])


def run_two_bidders(auction, clock, order, alice_deposit="0.3"):
    seal(auction, ALICE, "0.3", "s1", alice_deposit)
    seal(auction, BOB, "0.5", "s2")
    clock.set(END + 1)

    steps = [(ALICE, "0.3", "s1"), (BOB, "0.5", "s2")]
    if order == "high-first":
        steps.reverse()
    return [reveal(auction, *step) for step in steps]


# =============================================================================
# Two-bidder scenario
# =============================================================================

class TestTwoBidders:
    """0.3 ether vs 0.5 ether, deposits equal to values."""

    @pytest.mark.parametrize("order", ["low-first", "high-first"])
    def test_winner_and_refunds(self, auction, clock, order):
        run_two_bidders(auction, clock, order)

        assert auction.highest_bid.holder == BOB
        assert auction.highest_bid.amount == parse_ether("0.5")
        assert auction.pending_refund(ALICE) == parse_ether("0.3")
        assert auction.pending_refund(BOB) == 0

    @pytest.mark.parametrize("order", ["low-first", "high-first"])
    def test_escrow_drains_exactly(self, auction, clock, payments, order):
        run_two_bidders(auction, clock, order)
        assert auction.escrow_balance == parse_ether("0.8")

        assert auction.withdraw(ALICE) == parse_ether("0.3")
        assert auction.claim_payout(BENEFICIARY) == parse_ether("0.5")

        assert auction.escrow_balance == 0
        assert payments.total_paid_to(ALICE) == parse_ether("0.3")
        assert payments.total_paid_to(BENEFICIARY) == parse_ether("0.5")

    def test_low_first_results(self, auction, clock):
        first, second = run_two_bidders(auction, clock, "low-first")
        assert first.results == [BidResult.NEW_HIGHEST]
        assert second.results == [BidResult.NEW_HIGHEST]

    def test_high_first_results(self, auction, clock):
        first, second = run_two_bidders(auction, clock, "high-first")
        assert first.results == [BidResult.NEW_HIGHEST]
        assert second.results == [BidResult.REFUNDED]

    def test_overdeposit_depends_on_reveal_order(self, clock):
        """An outbid leader is credited the old amount; a loser gets the deposit."""
        low = BlindAuction(BENEFICIARY, DURATION, clock=ManualClock(START))
        run_two_bidders(low, low.clock, "low-first", alice_deposit="1.0")
        assert low.pending_refund(ALICE) == parse_ether("0.3")

        high = BlindAuction(BENEFICIARY, DURATION, clock=ManualClock(START))
        run_two_bidders(high, high.clock, "high-first", alice_deposit="1.0")
        assert high.pending_refund(ALICE) == parse_ether("1.0")

    def test_event_sequence(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        auction.withdraw(ALICE)
        auction.claim_payout(BENEFICIARY)

        assert auction.events.history == [
            AuctionStarted(time=START),
            BidAccepted(bidder=ALICE),
            BidAccepted(bidder=BOB),
            HighestBidIncreased(bidder=ALICE),
            HighestBidIncreased(bidder=BOB),
            RefundProcessed(bidder=ALICE, amount=parse_ether("0.3")),
            AuctionEnded(amount=parse_ether("0.5"), bidder=BOB),
        ]

    def test_subscriber_notified(self, auction, clock):
        seen = []
        auction.subscribe(seen.append)
        run_two_bidders(auction, clock, "high-first")
        assert [type(e) for e in seen] == [BidAccepted, BidAccepted, HighestBidIncreased]


# =============================================================================
# Phase guards
# =============================================================================

class TestPhases:
    """Operations only run in their phase."""

    def test_phase_progression(self, auction, clock):
        assert auction.phase() == AuctionPhase.BIDDING
        clock.set(END + 1)
        assert auction.phase() == AuctionPhase.ENDED

    def test_bid_after_end(self, auction, clock):
        clock.set(END + 1)
        with pytest.raises(TooLate):
            seal(auction, ALICE, "0.1", "x")
        assert auction.get_bid_count(ALICE) == 0

    def test_bid_at_end_accepted(self, auction, clock):
        clock.set(END)
        seal(auction, ALICE, "0.1", "x")
        assert auction.get_bid_count(ALICE) == 1

    def test_bid_before_start(self, clock):
        auction = BlindAuction(BENEFICIARY, DURATION, clock=clock, start_time=START + 10)
        with pytest.raises(TooEarly):
            seal(auction, ALICE, "0.1", "x")

    def test_reveal_during_bidding(self, auction):
        seal(auction, ALICE, "0.1", "x")
        with pytest.raises(BidStillInProgress):
            reveal(auction, ALICE, "0.1", "x")

    def test_withdraw_and_claim_during_bidding(self, auction):
        with pytest.raises(BidStillInProgress):
            auction.withdraw(ALICE)
        with pytest.raises(BidStillInProgress):
            auction.claim_payout(BENEFICIARY)

    def test_zero_duration_auction(self, clock):
        auction = BlindAuction(BENEFICIARY, 0, clock=clock)
        seal(auction, ALICE, "0.1", "x")
        clock.advance(1)
        with pytest.raises(TooLate):
            seal(auction, ALICE, "0.1", "y")


# =============================================================================
# Refunds and payout
# =============================================================================

class TestRefundsAndPayout:
    """Withdrawal and payout guards."""

    def test_nothing_to_withdraw(self, auction, clock):
        clock.set(END + 1)
        with pytest.raises(NoRefundToBeProcessed):
            auction.withdraw(ALICE)

    def test_double_withdraw(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        auction.withdraw(ALICE)
        with pytest.raises(NoRefundToBeProcessed):
            auction.withdraw(ALICE)

    def test_winner_cannot_withdraw(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        with pytest.raises(NoRefundToBeProcessed):
            auction.withdraw(BOB)

    def test_only_beneficiary_claims(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        with pytest.raises(NotBeneficiary):
            auction.claim_payout(BOB)

    def test_single_payout(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        auction.claim_payout(BENEFICIARY)
        with pytest.raises(PayoutAlreadyClaimed):
            auction.claim_payout(BENEFICIARY)
        assert len(auction.events.of_type(AuctionEnded)) == 1

    def test_payout_without_valid_bids(self, auction, clock):
        seal(auction, ALICE, "0.1", "x")
        clock.set(END + 1)
        reveal(auction, ALICE, "0.2", "x")

        assert auction.claim_payout(BENEFICIARY) == 0
        assert auction.events.of_type(AuctionEnded) == [AuctionEnded(amount=0, bidder=None)]

    def test_underfunded_bid_cannot_drain_escrow(self, auction, clock):
        """A winning value above its deposit is capped by escrow."""
        seal(auction, ALICE, "1.0", "x", deposit_ether="0.1")
        clock.set(END + 1)
        reveal(auction, ALICE, "1.0", "x")

        with pytest.raises(InsufficientEscrow) as exc:
            auction.claim_payout(BENEFICIARY)
        assert exc.value.available == parse_ether("0.1")
        assert not auction.payout_claimed
        assert auction.escrow_balance == parse_ether("0.1")

    def test_failed_refund_transfer_restores_entry(self, clock):
        class FailingGateway(InMemoryPaymentGateway):
            def pay(self, recipient, amount):
                raise RuntimeError("network down")

        auction = BlindAuction(BENEFICIARY, DURATION, clock=clock, payments=FailingGateway())
        run_two_bidders(auction, clock, "low-first")

        with pytest.raises(RuntimeError):
            auction.withdraw(ALICE)
        assert auction.pending_refund(ALICE) == parse_ether("0.3")
        assert auction.escrow_balance == parse_ether("0.8")


# =============================================================================
# Input and limit rejections
# =============================================================================

class TestRejections:
    """Malformed input and limits."""

    def test_bad_beneficiary(self, clock):
        with pytest.raises(InvalidBidInput):
            BlindAuction(b"\x01" * 19, DURATION, clock=clock)

    def test_bad_commitment(self, auction):
        with pytest.raises(InvalidBidInput):
            auction.submit_bid(ALICE, b"\x00" * 31, 1)

    def test_negative_deposit(self, auction):
        with pytest.raises(InvalidBidInput):
            auction.submit_bid(ALICE, b"\x11" * 32, -1)

    def test_bid_cap(self, clock):
        auction = BlindAuction(
            BENEFICIARY, DURATION, clock=clock, config=AuctionConfig(max_bids_per_bidder=1)
        )
        seal(auction, ALICE, "0.1", "a")
        with pytest.raises(TooManyBids):
            seal(auction, ALICE, "0.2", "b")
        assert auction.escrow_balance == parse_ether("0.1")

    def test_insufficient_funds_leaves_no_bid(self, clock):
        payments = InMemoryPaymentGateway({ALICE: parse_ether("0.1")}, enforce_balances=True)
        auction = BlindAuction(BENEFICIARY, DURATION, clock=clock, payments=payments)

        with pytest.raises(InsufficientFunds):
            seal(auction, ALICE, "0.3", "x")

        assert auction.get_bid_count(ALICE) == 0
        assert auction.escrow_balance == 0
        assert payments.balance_of(ALICE) == parse_ether("0.1")
        assert auction.events.of_type(BidAccepted) == []

    def test_incomplete_reveal_leaves_bids_sealed(self, auction, clock):
        seal(auction, ALICE, "0.1", "a")
        seal(auction, ALICE, "0.2", "b")
        clock.set(END + 1)

        with pytest.raises(InCompleteBidData):
            reveal(auction, ALICE, "0.1", "a")
        assert not any(b.is_consumed for b in auction.get_bids(ALICE))

    def test_strict_reveal_lengths(self, clock):
        auction = BlindAuction(
            BENEFICIARY, DURATION, clock=clock, config=AuctionConfig(strict_reveal_lengths=True)
        )
        seal(auction, ALICE, "0.1", "a")
        clock.set(END + 1)
        with pytest.raises(InCompleteBidData):
            auction.reveal_bids(
                ALICE,
                [parse_ether("0.1")],
                [encode_bytes32_string("a"), encode_bytes32_string("extra")],
            )

    def test_stats(self, auction, clock):
        run_two_bidders(auction, clock, "low-first")
        stats = auction.stats()
        assert stats["phase"] == "ENDED"
        assert stats["bidders"] == 2
        assert stats["total_bids"] == 2
        assert stats["highest_holder"] == "0x" + BOB.hex()
        assert stats["pending_refunds"] == parse_ether("0.3")

"""
Reveal & Accounting Engine.

After bidding closes each bidder reveals the (value, secret) pair behind every
sealed bid, in submission order. For each bid:

1. Recompute keccak256(uint256(value) || secret) and compare with the stored
   commitment. A mismatch is skipped: the deposit is neither refunded nor
   counted.
2. On a match:
   - value <= highest amount, or the bidder already holds the lead:
     the deposit joins this call's refund total.
   - value > highest amount: the previous holder (if any) is credited the
     *old highest amount* (not their deposit), and the bidder takes the lead.
3. The commitment is zeroed whether or not it matched.

After the loop a bidder who does not hold the lead has their refund entry
*set* (not added) to the call's refund total. The leader's entry is left
alone, so a winner's deposit beyond the winning amount is never refunded.

A reveal is planned against the current state first and only then applied,
so a rejected call changes nothing.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Sequence

from blindauction.core.auction.refunds import RefundLedger
from blindauction.core.auction.registry import BidRegistry
from blindauction.core.clock import ClockGate
from blindauction.core.errors import InCompleteBidData
from blindauction.crypto import compute_commitment, short_hex
from blindauction.utils.logger import get_logger

logger = get_logger("engine")


# =============================================================================
# State
# =============================================================================


@dataclass
class HighestBidState:
    """The single leading bid. Amount never decreases."""
    amount: int = 0
    holder: Optional[bytes] = None

    def copy(self) -> "HighestBidState":
        return HighestBidState(amount=self.amount, holder=self.holder)


class BidResult(IntEnum):
    """What a reveal did with one sealed bid."""
    INVALID = 0        # Digest mismatch, deposit forfeited
    REFUNDED = 1       # Valid but not leading, deposit refundable
    NEW_HIGHEST = 2    # Valid and took the lead


@dataclass
class RevealOutcome:
    """
    Planned effect of one reveal call.

    Attributes:
        bidder: Revealing account
        results: One entry per stored bid, in order
        highest_before / highest_after: Leading bid around the call
        outbid_credits: Amounts credited to superseded leaders
        refund: New refund entry for the bidder, or None if they lead
    """
    bidder: bytes
    results: List[BidResult]
    highest_before: HighestBidState
    highest_after: HighestBidState
    outbid_credits: Dict[bytes, int] = field(default_factory=dict)
    refund: Optional[int] = None

    @property
    def bid_count(self) -> int:
        return len(self.results)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.results if r != BidResult.INVALID)

    @property
    def lead_changes(self) -> int:
        return sum(1 for r in self.results if r == BidResult.NEW_HIGHEST)

    @property
    def holds_lead(self) -> bool:
        return self.highest_after.holder == self.bidder


# =============================================================================
# Engine
# =============================================================================


class RevealEngine:
    """
    Verifies reveals and keeps the highest bid and refunds up to date.

    Args:
        registry: Stored sealed bids
        refunds: Refund ledger credited by reveals
        gate: Phase guards
        strict_lengths: Reject when EITHER reveal array length differs from
            the stored bid count. The default rejects only when BOTH differ.
    """

    def __init__(
        self,
        registry: BidRegistry,
        refunds: RefundLedger,
        gate: ClockGate,
        strict_lengths: bool = False,
    ):
        self.registry = registry
        self.refunds = refunds
        self.gate = gate
        self.strict_lengths = strict_lengths
        self.highest = HighestBidState()

    def _check_lengths(self, bidder: bytes, n: int, values: Sequence, secrets: Sequence) -> None:
        counts = f"{n} bids, {len(values)} values, {len(secrets)} secrets"
        if self.strict_lengths:
            if len(values) != n or len(secrets) != n:
                raise InCompleteBidData(bidder, counts)
            return

        if len(values) != n and len(secrets) != n:
            raise InCompleteBidData(bidder, counts)
        # One array matched, but the other cannot be indexed for every bid
        if len(values) < n or len(secrets) < n:
            short = "values" if len(values) < n else "secrets"
            raise InCompleteBidData(bidder, f"{short} shorter than bid count: {counts}")

    def plan_reveal(
        self,
        bidder: bytes,
        values: Sequence[int],
        secrets: Sequence[bytes],
    ) -> RevealOutcome:
        """
        Compute the effect of a reveal without touching any state.

        Raises:
            InCompleteBidData: If the arrays do not cover the stored bids
        """
        bids = self.registry.get_bids(bidder)
        n = len(bids)
        self._check_lengths(bidder, n, values, secrets)

        before = self.highest.copy()
        amount, holder = before.amount, before.holder
        credits: Dict[bytes, int] = {}
        results: List[BidResult] = []
        total_refund = 0

        for i, bid in enumerate(bids):
            value = values[i]
            if compute_commitment(value, secrets[i]) != bid.commitment:
                results.append(BidResult.INVALID)
                continue

            if value <= amount or bidder == holder:
                total_refund += bid.deposit
                results.append(BidResult.REFUNDED)
            else:
                if holder is not None:
                    credits[holder] = credits.get(holder, 0) + amount
                amount, holder = value, bidder
                results.append(BidResult.NEW_HIGHEST)

        after = HighestBidState(amount=amount, holder=holder)
        return RevealOutcome(
            bidder=bidder,
            results=results,
            highest_before=before,
            highest_after=after,
            outbid_credits=credits,
            refund=None if holder == bidder else total_refund,
        )

    def apply(self, outcome: RevealOutcome) -> None:
        """Commit a planned reveal to registry, highest bid and ledger."""
        bidder = outcome.bidder
        self.registry.consume(bidder, range(outcome.bid_count))

        for previous_holder, amount in outcome.outbid_credits.items():
            self.refunds.credit_refund(previous_holder, amount)

        if outcome.lead_changes:
            self.highest = outcome.highest_after.copy()
            logger.info(
                f"New highest bid: {short_hex(bidder)} amount={self.highest.amount}"
            )

        if outcome.refund is not None:
            self.refunds.set_refund(bidder, outcome.refund)

        logger.debug(
            f"Reveal by {short_hex(bidder)}: {outcome.valid_count}/{outcome.bid_count} valid, "
            f"refund={outcome.refund}"
        )
        invalid = outcome.bid_count - outcome.valid_count
        if invalid:
            logger.warning(f"{invalid} reveal(s) by {short_hex(bidder)} did not match their commitment")

    def reveal_bids(
        self,
        bidder: bytes,
        values: Sequence[int],
        secrets: Sequence[bytes],
        now: int,
    ) -> RevealOutcome:
        """
        Verify and account for all of a bidder's sealed bids.

        Raises:
            BidStillInProgress: If bidding has not ended at ``now``
            InCompleteBidData: If the arrays do not cover the stored bids
        """
        self.gate.bidding_has_ended(now)
        outcome = self.plan_reveal(bidder, values, secrets)
        self.apply(outcome)
        return outcome

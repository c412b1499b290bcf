"""
Blind Auction Module.

This module provides the sealed-bid auction:
- Bid registry (append-only sealed bids per bidder)
- Reveal & accounting engine (commitment checks, highest bid, refunds)
- Refund ledger
- Payout controller
- BlindAuction coordinator
"""

from blindauction.core.auction.registry import (
    BidRegistry,
    SealedBid,
)

from blindauction.core.auction.engine import (
    RevealEngine,
    RevealOutcome,
    HighestBidState,
    BidResult,
)

from blindauction.core.auction.refunds import RefundLedger
from blindauction.core.auction.payout import PayoutController
from blindauction.core.auction.blind_auction import BlindAuction

__all__ = [
    # Registry
    "BidRegistry",
    "SealedBid",
    # Engine
    "RevealEngine",
    "RevealOutcome",
    "HighestBidState",
    "BidResult",
    # Ledger & Payout
    "RefundLedger",
    "PayoutController",
    # Coordinator
    "BlindAuction",
]

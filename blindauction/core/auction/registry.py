"""
Bid Registry - append-only storage of sealed bids per bidder.

Each bidder owns an ordered sequence of ``SealedBid`` records. Entries are
never removed; revealing a bid only replaces its commitment with the zero
sentinel so it can never be matched again. Deposits are never mutated.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from blindauction.core.errors import TooManyBids
from blindauction.crypto import ZERO_COMMITMENT, short_hex
from blindauction.utils.logger import get_logger

logger = get_logger("registry")


@dataclass(frozen=True)
class SealedBid:
    """
    A bidder's hidden bid.

    commitment = keccak256(uint256(value) || secret), see
    ``blindauction.crypto.commitment``.
    """
    commitment: bytes   # 32 bytes, ZERO_COMMITMENT once revealed
    deposit: int        # wei attached at submission

    @property
    def is_consumed(self) -> bool:
        return self.commitment == ZERO_COMMITMENT

    def consumed(self) -> "SealedBid":
        """Copy with the commitment zeroed."""
        return replace(self, commitment=ZERO_COMMITMENT)


class BidRegistry:
    """
    Per-bidder bid sequences.

    Attributes:
        max_bids_per_bidder: Optional cap on sequence length (None = unbounded)
    """

    def __init__(self, max_bids_per_bidder: Optional[int] = None):
        self.max_bids_per_bidder = max_bids_per_bidder
        self._bids: Dict[bytes, List[SealedBid]] = {}

    # =========================================================================
    # Mutation
    # =========================================================================

    def ensure_capacity(self, bidder: bytes) -> None:
        """Raise TooManyBids if the bidder is at the configured cap."""
        limit = self.max_bids_per_bidder
        if limit is not None and self.get_bid_count(bidder) >= limit:
            raise TooManyBids(bidder, limit)

    def append(self, bidder: bytes, bid: SealedBid) -> int:
        """
        Append a bid to the bidder's sequence.

        Returns:
            Index of the new bid
        """
        self.ensure_capacity(bidder)
        bids = self._bids.setdefault(bidder, [])
        bids.append(bid)
        logger.debug(f"Stored bid #{len(bids) - 1} for {short_hex(bidder)}: deposit={bid.deposit}")
        return len(bids) - 1

    def consume(self, bidder: bytes, indexes: Iterable[int]) -> None:
        """Zero the commitments at ``indexes``."""
        bids = self._bids.get(bidder, [])
        for i in indexes:
            bids[i] = bids[i].consumed()

    def load(self, bidder: bytes, bids: List[SealedBid]) -> None:
        """Install a bidder's sequence read back from storage."""
        self._bids[bidder] = list(bids)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_bids(self, bidder: bytes) -> List[SealedBid]:
        return list(self._bids.get(bidder, []))

    def get_bid_count(self, bidder: bytes) -> int:
        return len(self._bids.get(bidder, []))

    def bidders(self) -> List[bytes]:
        return list(self._bids)

    def total_bids(self) -> int:
        return sum(len(bids) for bids in self._bids.values())

    def total_deposits(self) -> int:
        return sum(bid.deposit for bids in self._bids.values() for bid in bids)

    def __len__(self) -> int:
        return self.total_bids()

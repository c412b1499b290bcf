"""
Refund Ledger - pending refunds per bidder.

Credited while bids are revealed, cleared on withdrawal. Withdrawal always
zeroes the entry *before* money moves, so a re-entrant second withdrawal
sees nothing to take.
"""

from typing import Callable, Dict

from blindauction.core.errors import NoRefundToBeProcessed
from blindauction.crypto import short_hex
from blindauction.utils.logger import get_logger

logger = get_logger("refunds")


class RefundLedger:
    """Mapping bidder -> pending refund (absent == 0)."""

    def __init__(self):
        self._pending: Dict[bytes, int] = {}

    def pending(self, bidder: bytes) -> int:
        return self._pending.get(bidder, 0)

    def credit_refund(self, bidder: bytes, amount: int) -> None:
        """Additive credit."""
        self._pending[bidder] = self.pending(bidder) + amount
        logger.debug(f"Credited {amount} to {short_hex(bidder)} (now {self._pending[bidder]})")

    def set_refund(self, bidder: bytes, amount: int) -> None:
        """Overwrite the pending amount."""
        self._pending[bidder] = amount

    def withdraw(self, bidder: bytes, transfer: Callable[[bytes, int], None]) -> int:
        """
        Pay out the bidder's pending refund.

        Args:
            bidder: Account withdrawing
            transfer: Moves ``amount`` to ``bidder``; raising aborts the
                withdrawal and restores the entry

        Returns:
            Amount withdrawn

        Raises:
            NoRefundToBeProcessed: If nothing is pending
        """
        amount = self.pending(bidder)
        if amount == 0:
            raise NoRefundToBeProcessed(bidder)

        self._pending[bidder] = 0
        try:
            transfer(bidder, amount)
        except Exception:
            self._pending[bidder] = amount
            raise

        logger.info(f"Refund withdrawn: {short_hex(bidder)} amount={amount}")
        return amount

    def entries(self) -> Dict[bytes, int]:
        return dict(self._pending)

    def total_pending(self) -> int:
        return sum(self._pending.values())

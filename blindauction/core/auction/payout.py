"""
Payout Controller - the beneficiary's claim on the winning amount.
"""

from typing import Callable

from blindauction.core.auction.engine import HighestBidState
from blindauction.core.clock import ClockGate
from blindauction.core.errors import PayoutAlreadyClaimed
from blindauction.crypto import short_hex
from blindauction.utils.logger import get_logger

logger = get_logger("payout")


class PayoutController:
    """
    Pays the highest bid amount to the beneficiary, once.

    The single-use guard is ours: without it a second claim would try to
    transfer the same amount again.
    """

    def __init__(self, gate: ClockGate):
        self.gate = gate
        self.claimed = False

    def claim_payout(
        self,
        caller: bytes,
        highest: HighestBidState,
        now: int,
        transfer: Callable[[bytes, int], None],
    ) -> int:
        """
        Transfer ``highest.amount`` to the beneficiary.

        Raises:
            NotBeneficiary: If ``caller`` is not the beneficiary
            BidStillInProgress: If bidding has not ended
            PayoutAlreadyClaimed: On any claim after a successful one
        """
        self.gate.is_beneficiary(caller)
        self.gate.bidding_has_ended(now)
        if self.claimed:
            raise PayoutAlreadyClaimed(caller)

        transfer(caller, highest.amount)
        self.claimed = True

        logger.info(
            f"Auction ended: paid {highest.amount} to beneficiary {short_hex(caller)}, "
            f"winner={short_hex(highest.holder) if highest.holder else None}"
        )
        return highest.amount

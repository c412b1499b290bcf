"""
Payment - the value-transfer collaborator.

The auction never moves money itself. Deposits are collected from bidders
when a bid is accepted and refunds/payouts are paid through a
``PaymentGateway``. ``InMemoryPaymentGateway`` is the reference
implementation: a balance per account plus a transfer log.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, runtime_checkable

from blindauction.core.errors import InsufficientFunds
from blindauction.crypto import short_hex
from blindauction.utils.logger import get_logger

logger = get_logger("payment")


@runtime_checkable
class PaymentGateway(Protocol):
    """Protocol for value-transfer backends."""

    def collect(self, payer: bytes, amount: int) -> None:
        """Take ``amount`` from ``payer`` into the auction's escrow."""
        ...

    def pay(self, recipient: bytes, amount: int) -> None:
        """Send ``amount`` from the auction's escrow to ``recipient``."""
        ...


@dataclass(frozen=True)
class Transfer:
    """One recorded movement of value (payer/recipient None = escrow)."""
    payer: Optional[bytes]
    recipient: Optional[bytes]
    amount: int


class InMemoryPaymentGateway:
    """
    Balance book for tests, demos and the CLI.

    With ``enforce_balances`` a payer must hold the deposit before a bid is
    accepted; otherwise collection always succeeds (balances may go negative,
    which models an unbounded external wallet).
    """

    def __init__(
        self,
        balances: Optional[Dict[bytes, int]] = None,
        enforce_balances: bool = False,
    ):
        self.balances: Dict[bytes, int] = defaultdict(int, balances or {})
        self.enforce_balances = enforce_balances
        self.transfers: List[Transfer] = []

    def fund(self, account: bytes, amount: int) -> None:
        self.balances[account] += amount

    def balance_of(self, account: bytes) -> int:
        return self.balances.get(account, 0)

    def collect(self, payer: bytes, amount: int) -> None:
        available = self.balances.get(payer, 0)
        if self.enforce_balances and available < amount:
            raise InsufficientFunds(payer, amount, available)
        self.balances[payer] -= amount
        self.transfers.append(Transfer(payer=payer, recipient=None, amount=amount))
        logger.debug(f"Collected {amount} from {short_hex(payer)}")

    def pay(self, recipient: bytes, amount: int) -> None:
        self.balances[recipient] += amount
        self.transfers.append(Transfer(payer=None, recipient=recipient, amount=amount))
        logger.debug(f"Paid {amount} to {short_hex(recipient)}")

    def total_paid_to(self, recipient: bytes) -> int:
        return sum(t.amount for t in self.transfers if t.recipient == recipient)

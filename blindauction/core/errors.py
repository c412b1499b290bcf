"""
Auction errors.

Every error rejects the whole call that raised it; no partial state change
is ever left behind. Each carries the context that triggered it.
"""

from typing import Optional


def _fmt_identity(identity: Optional[bytes]) -> str:
    if identity is None:
        return "None"
    return "0x" + bytes(identity).hex()


class AuctionError(Exception):
    """Base exception for all auction call rejections"""


class BiddingWindowError(AuctionError):
    """Bid submitted outside the bidding window"""

    def __init__(self, time: int):
        self.time = time
        super().__init__(f"{type(self).__name__}: time={time}")


class TooEarly(BiddingWindowError):
    """Bidding has not started yet"""


class TooLate(BiddingWindowError):
    """Bidding has already closed"""


class BidStillInProgress(AuctionError):
    """Reveal, withdrawal or payout attempted before bidding closed"""

    def __init__(self, time: int):
        self.time = time
        super().__init__(f"BidStillInProgress: time={time}")


class NotBeneficiary(AuctionError):
    def __init__(self, caller: bytes):
        self.caller = caller
        super().__init__(f"NotBeneficiary: caller={_fmt_identity(caller)}")


class InCompleteBidData(AuctionError):
    """Revealed values/secrets do not line up with the stored bids"""

    def __init__(self, bidder: bytes, detail: Optional[str] = None):
        self.bidder = bidder
        self.detail = detail
        message = f"InCompleteBidData: bidder={_fmt_identity(bidder)}"
        super().__init__(f"{message} ({detail})" if detail else message)


class NoRefundToBeProcessed(AuctionError):
    def __init__(self, bidder: bytes):
        self.bidder = bidder
        super().__init__(f"NoRefundToBeProcessed: bidder={_fmt_identity(bidder)}")


class TooManyBids(AuctionError):
    def __init__(self, bidder: bytes, limit: int):
        self.bidder = bidder
        self.limit = limit
        super().__init__(f"TooManyBids: bidder={_fmt_identity(bidder)} limit={limit}")


class PayoutAlreadyClaimed(AuctionError):
    def __init__(self, beneficiary: bytes):
        self.beneficiary = beneficiary
        super().__init__(f"PayoutAlreadyClaimed: beneficiary={_fmt_identity(beneficiary)}")


class InsufficientEscrow(AuctionError):
    """Transfer would pay out more than the deposits still held"""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"InsufficientEscrow: requested={requested} available={available}")


class InvalidBidInput(AuctionError, ValueError):
    """Malformed identity, commitment, secret or amount"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"InvalidBidInput: {reason}")


class PaymentError(Exception):
    """Base exception for the value-transfer collaborator"""


class InsufficientFunds(PaymentError):
    def __init__(self, account: bytes, requested: int, available: int):
        self.account = account
        self.requested = requested
        self.available = available
        super().__init__(
            f"InsufficientFunds: account={_fmt_identity(account)} "
            f"requested={requested} available={available}"
        )


class StorageMismatchError(AuctionError):
    """Persisted auction does not match the parameters it was reopened with"""

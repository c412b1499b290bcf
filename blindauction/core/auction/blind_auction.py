"""
Blind Auction - the single coordinator over all auction state.

Owns the bid registry, the highest bid, the refund ledger and the payout
flag, together with the external collaborators (clock, payment gateway,
optional storage). Every call runs under one re-entrant lock, so operations
never interleave and reads always see a consistent snapshot.

Every operation checks its preconditions and plans its effect before anything
changes. Storage is written in one transaction, and only then is memory
updated and events emitted. A rejected call leaves no trace.

Money flow:
    submit_bid  : deposit collected from the bidder into escrow
    withdraw    : pending refund paid from escrow to the bidder
    claim_payout: highest amount paid from escrow to the beneficiary

Escrow never pays out more than it collected.
"""

import functools
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from blindauction.core.auction.engine import BidResult, HighestBidState, RevealEngine, RevealOutcome
from blindauction.core.auction.payout import PayoutController
from blindauction.core.auction.refunds import RefundLedger
from blindauction.core.auction.registry import BidRegistry, SealedBid
from blindauction.core.clock import AuctionPhase, AuctionWindow, Clock, ClockGate, SystemClock
from blindauction.core.config import AuctionConfig
from blindauction.core.errors import (
    AuctionError,
    InsufficientEscrow,
    InvalidBidInput,
    PaymentError,
    StorageMismatchError,
)
from blindauction.core.events import (
    AuctionEnded,
    AuctionStarted,
    BidAccepted,
    EventEmitter,
    EventHandler,
    HighestBidIncreased,
    RefundProcessed,
)
from blindauction.core.payment import InMemoryPaymentGateway, PaymentGateway
from blindauction.core.storage import StorageManager
from blindauction.crypto import short_hex
from blindauction.utils.logger import get_logger
from blindauction.utils.validation import (
    first_error,
    validate_address,
    validate_amount,
    validate_hash,
    validate_reveal_data,
)

logger = get_logger("auction")


def _serialized(method):
    """Run under the auction lock; log rejected calls before re-raising."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                return method(self, *args, **kwargs)
            except (AuctionError, PaymentError) as err:
                logger.warning(f"{method.__name__} rejected: {err}")
                raise

    return wrapper


class BlindAuction:
    """
    One sealed-bid auction with a fixed beneficiary and bidding window.

    Args:
        beneficiary: 20-byte address entitled to the winning amount
        bidding_duration: Seconds bidding stays open. Defaults to
            ``config.bidding_duration``.
        clock: Time source (default: wall clock)
        payments: Value-transfer backend (default: in-memory book)
        config: Limits and defaults
        storage: Persist every operation here (default: memory only)
        emitter: Event fan-out (default: a fresh emitter)
        start_time: Window start (default: ``clock.now()``)

    Raises:
        StorageMismatchError: If ``storage`` already holds an auction
    """

    def __init__(
        self,
        beneficiary: bytes,
        bidding_duration: Optional[int] = None,
        *,
        clock: Optional[Clock] = None,
        payments: Optional[PaymentGateway] = None,
        config: Optional[AuctionConfig] = None,
        storage: Optional[StorageManager] = None,
        emitter: Optional[EventEmitter] = None,
        start_time: Optional[int] = None,
    ):
        err = first_error([validate_address(beneficiary, "beneficiary")])
        if err:
            raise InvalidBidInput(err)

        config = config or AuctionConfig()
        clock = clock or SystemClock()
        duration = config.bidding_duration if bidding_duration is None else bidding_duration
        window = AuctionWindow.starting_at(
            clock.now() if start_time is None else start_time, duration
        )

        self._setup(bytes(beneficiary), window, clock, payments, config, storage, emitter)

        if storage:
            if storage.has_auction():
                raise StorageMismatchError(
                    f"{storage.db_path} already holds an auction; use BlindAuction.open()"
                )
            storage.save_auction(
                self.beneficiary,
                window.start_time,
                window.end_time,
                max_bids_per_bidder=config.max_bids_per_bidder,
                strict_reveal_lengths=config.strict_reveal_lengths,
            )

        self.events.emit(AuctionStarted(time=window.start_time))
        logger.info(
            f"Auction started: beneficiary={short_hex(self.beneficiary)}, "
            f"bidding {window.start_time}..{window.end_time} ({window.duration}s)"
        )

    def _setup(
        self,
        beneficiary: bytes,
        window: AuctionWindow,
        clock: Clock,
        payments: Optional[PaymentGateway],
        config: AuctionConfig,
        storage: Optional[StorageManager],
        emitter: Optional[EventEmitter],
    ) -> None:
        self.beneficiary = beneficiary
        self.window = window
        self.clock = clock
        self.payments = payments if payments is not None else InMemoryPaymentGateway()
        self.config = config
        self.storage = storage
        self.events = emitter or EventEmitter()

        self.gate = ClockGate(window, beneficiary)
        self.registry = BidRegistry(config.max_bids_per_bidder)
        self.refunds = RefundLedger()
        self.engine = RevealEngine(
            self.registry, self.refunds, self.gate, strict_lengths=config.strict_reveal_lengths
        )
        self.payout = PayoutController(self.gate)

        # Escrow accounting
        self.total_deposits = 0
        self.total_paid_out = 0

        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        storage: StorageManager,
        *,
        clock: Optional[Clock] = None,
        payments: Optional[PaymentGateway] = None,
        config: Optional[AuctionConfig] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> "BlindAuction":
        """
        Reload an auction persisted in ``storage``.

        The bid cap and reveal-length rule are restored from storage; the
        rest of ``config`` applies as given.

        Raises:
            StorageMismatchError: If no auction is stored
        """
        meta = storage.load_auction()
        if meta is None:
            raise StorageMismatchError(f"No auction stored at {storage.db_path}")

        auction = cls.__new__(cls)
        auction._setup(
            meta["beneficiary"],
            AuctionWindow(start_time=meta["start_time"], end_time=meta["end_time"]),
            clock or SystemClock(),
            payments,
            replace(
                config or AuctionConfig(),
                max_bids_per_bidder=meta["max_bids_per_bidder"],
                strict_reveal_lengths=meta["strict_reveal_lengths"],
            ),
            storage,
            emitter,
        )

        auction.engine.highest = HighestBidState(
            amount=meta["highest_amount"], holder=meta["highest_holder"]
        )
        auction.total_deposits = meta["total_deposits"]
        auction.total_paid_out = meta["total_paid_out"]
        auction.payout.claimed = meta["payout_claimed"]

        for bidder, bids in storage.load_bids().items():
            auction.registry.load(bidder, [SealedBid(c, d) for c, d in bids])
        for bidder, amount in storage.load_refunds().items():
            auction.refunds.set_refund(bidder, amount)

        logger.info(
            f"Auction reopened: {auction.registry.total_bids()} bids, "
            f"highest={auction.engine.highest.amount}"
        )
        return auction

    # =========================================================================
    # Bidding
    # =========================================================================

    @_serialized
    def submit_bid(self, bidder: bytes, commitment: bytes, deposit: int = 0) -> SealedBid:
        """
        Store a sealed bid and collect its deposit.

        The commitment's content is not checked; the value stays hidden
        until reveal.

        Raises:
            TooEarly / TooLate: Outside the bidding window
            TooManyBids: Bidder is at the configured cap
            InvalidBidInput: Malformed bidder, commitment or deposit
            PaymentError: Deposit could not be collected
        """
        err = first_error([
            validate_address(bidder, "bidder"),
            validate_hash(commitment, "commitment"),
            validate_amount(deposit, "deposit"),
        ])
        if err:
            raise InvalidBidInput(err)

        bidder = bytes(bidder)
        self.gate.bidding_is_active(self.clock.now())
        self.registry.ensure_capacity(bidder)

        bid = SealedBid(commitment=bytes(commitment), deposit=deposit)
        index = self.registry.get_bid_count(bidder)
        total_deposits = self.total_deposits + deposit

        self.payments.collect(bidder, deposit)
        if self.storage:
            try:
                self.storage.persist_bid(bidder, index, bid.commitment, deposit, total_deposits)
            except Exception:
                self.payments.pay(bidder, deposit)
                raise

        self.registry.append(bidder, bid)
        self.total_deposits = total_deposits

        self.events.emit(BidAccepted(bidder=bidder))
        logger.info(f"Bid accepted: {short_hex(bidder)} #{index} deposit={deposit}")
        return bid

    # =========================================================================
    # Reveal
    # =========================================================================

    @_serialized
    def reveal_bids(
        self,
        bidder: bytes,
        values: Sequence[int],
        secrets: Sequence[bytes],
    ) -> RevealOutcome:
        """
        Reveal every sealed bid of ``bidder``.

        Raises:
            BidStillInProgress: Bidding has not ended
            InCompleteBidData: Arrays do not cover the stored bids
            InvalidBidInput: Malformed values or secrets
        """
        values, secrets = list(values), list(secrets)
        err = first_error([
            validate_address(bidder, "bidder"),
            validate_reveal_data(values, secrets),
        ])
        if err:
            raise InvalidBidInput(err)

        bidder = bytes(bidder)
        self.gate.bidding_has_ended(self.clock.now())
        outcome = self.engine.plan_reveal(bidder, values, [bytes(s) for s in secrets])

        if self.storage:
            refunds: Dict[bytes, int] = {
                holder: self.refunds.pending(holder) + amount
                for holder, amount in outcome.outbid_credits.items()
            }
            if outcome.refund is not None:
                refunds[bidder] = outcome.refund
            self.storage.persist_reveal(
                bidder,
                range(outcome.bid_count),
                outcome.highest_after.amount,
                outcome.highest_after.holder,
                refunds,
            )

        self.engine.apply(outcome)

        for result in outcome.results:
            if result == BidResult.NEW_HIGHEST:
                self.events.emit(HighestBidIncreased(bidder=bidder))
        return outcome

    # =========================================================================
    # Refunds & Payout
    # =========================================================================

    @_serialized
    def withdraw(self, bidder: bytes) -> int:
        """
        Pay out the bidder's pending refund.

        Raises:
            BidStillInProgress: Bidding has not ended
            NoRefundToBeProcessed: Nothing pending
            InsufficientEscrow: Escrow cannot cover the refund
        """
        bidder = bytes(bidder)
        self.gate.bidding_has_ended(self.clock.now())
        amount = self.refunds.withdraw(bidder, self._pay_refund)
        self.events.emit(RefundProcessed(bidder=bidder, amount=amount))
        return amount

    @_serialized
    def claim_payout(self, caller: bytes) -> int:
        """
        Pay the highest bid amount to the beneficiary.

        Raises:
            NotBeneficiary: ``caller`` is not the beneficiary
            BidStillInProgress: Bidding has not ended
            PayoutAlreadyClaimed: Already paid
            InsufficientEscrow: Escrow cannot cover the amount
        """
        highest = self.engine.highest.copy()
        amount = self.payout.claim_payout(
            bytes(caller), highest, self.clock.now(), self._pay_beneficiary
        )
        self.events.emit(AuctionEnded(amount=amount, bidder=highest.holder))
        return amount

    def _reserve_escrow(self, amount: int) -> int:
        """Return total_paid_out after paying ``amount``, or raise."""
        available = self.escrow_balance
        if amount > available:
            raise InsufficientEscrow(amount, available)
        return self.total_paid_out + amount

    def _pay_refund(self, bidder: bytes, amount: int) -> None:
        paid_out = self._reserve_escrow(amount)
        if self.storage:
            self.storage.persist_refund(bidder, 0, paid_out)
        try:
            self.payments.pay(bidder, amount)
        except Exception:
            if self.storage:
                self.storage.persist_refund(bidder, amount, self.total_paid_out)
            raise
        self.total_paid_out = paid_out

    def _pay_beneficiary(self, beneficiary: bytes, amount: int) -> None:
        paid_out = self._reserve_escrow(amount)
        if self.storage:
            self.storage.persist_payout(True, paid_out)
        try:
            self.payments.pay(beneficiary, amount)
        except Exception:
            if self.storage:
                self.storage.persist_payout(False, self.total_paid_out)
            raise
        self.total_paid_out = paid_out

    # =========================================================================
    # Queries
    # =========================================================================

    @_serialized
    def get_bids(self, bidder: bytes) -> List[SealedBid]:
        return self.registry.get_bids(bytes(bidder))

    @_serialized
    def get_bid_count(self, bidder: bytes) -> int:
        return self.registry.get_bid_count(bytes(bidder))

    @_serialized
    def pending_refund(self, bidder: bytes) -> int:
        return self.refunds.pending(bytes(bidder))

    @property
    def highest_bid(self) -> HighestBidState:
        with self._lock:
            return self.engine.highest.copy()

    @property
    def auction_duration(self) -> int:
        return self.window.duration

    @property
    def escrow_balance(self) -> int:
        with self._lock:
            return self.total_deposits - self.total_paid_out

    @property
    def payout_claimed(self) -> bool:
        with self._lock:
            return self.payout.claimed

    def phase(self) -> AuctionPhase:
        return self.window.phase(self.clock.now())

    def subscribe(self, handler: EventHandler) -> None:
        """Receive every future auction event."""
        self.events.subscribe(handler)

    def __repr__(self) -> str:
        return (
            f"BlindAuction(beneficiary={short_hex(self.beneficiary)}, "
            f"bids={self.registry.total_bids()}, highest={self.engine.highest.amount})"
        )

    @_serialized
    def stats(self) -> dict:
        """Get auction statistics."""
        highest = self.engine.highest
        return {
            "phase": self.phase().name,
            "start_time": self.window.start_time,
            "end_time": self.window.end_time,
            "bidders": len(self.registry.bidders()),
            "total_bids": self.registry.total_bids(),
            "highest_amount": highest.amount,
            "highest_holder": "0x" + highest.holder.hex() if highest.holder else None,
            "total_deposits": self.total_deposits,
            "total_paid_out": self.total_paid_out,
            "escrow_balance": self.total_deposits - self.total_paid_out,
            "pending_refunds": self.refunds.total_pending(),
            "payout_claimed": self.payout.claimed,
        }

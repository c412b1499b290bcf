"""
Unit tests for the refund ledger.
"""

import pytest

from blindauction.core.auction import RefundLedger
from blindauction.core.errors import NoRefundToBeProcessed

ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20


@pytest.fixture
def ledger():
    return RefundLedger()


class TestCredit:
    """Tests for crediting refunds."""

    def test_absent_is_zero(self, ledger):
        assert ledger.pending(ALICE) == 0

    def test_credit_is_additive(self, ledger):
        ledger.credit_refund(ALICE, 10)
        ledger.credit_refund(ALICE, 5)
        assert ledger.pending(ALICE) == 15

    def test_set_overwrites(self, ledger):
        ledger.credit_refund(ALICE, 10)
        ledger.set_refund(ALICE, 3)
        assert ledger.pending(ALICE) == 3

    def test_total_pending(self, ledger):
        ledger.credit_refund(ALICE, 10)
        ledger.credit_refund(BOB, 7)
        assert ledger.total_pending() == 17
        assert ledger.entries() == {ALICE: 10, BOB: 7}


class TestWithdraw:
    """Tests for withdrawal."""

    def test_withdraw_pays_and_zeroes(self, ledger):
        paid = []
        ledger.credit_refund(ALICE, 42)

        amount = ledger.withdraw(ALICE, lambda who, amt: paid.append((who, amt)))

        assert amount == 42
        assert paid == [(ALICE, 42)]
        assert ledger.pending(ALICE) == 0

    def test_nothing_pending(self, ledger):
        with pytest.raises(NoRefundToBeProcessed) as exc:
            ledger.withdraw(ALICE, lambda who, amt: None)
        assert exc.value.bidder == ALICE

    def test_second_withdraw_fails(self, ledger):
        ledger.credit_refund(ALICE, 42)
        ledger.withdraw(ALICE, lambda who, amt: None)
        with pytest.raises(NoRefundToBeProcessed):
            ledger.withdraw(ALICE, lambda who, amt: None)

    def test_entry_zeroed_before_transfer(self, ledger):
        """A re-entrant withdrawal from inside the transfer finds nothing."""
        ledger.credit_refund(ALICE, 42)
        seen = []

        def reentrant(who, amt):
            seen.append(ledger.pending(who))
            with pytest.raises(NoRefundToBeProcessed):
                ledger.withdraw(who, lambda w, a: None)

        ledger.withdraw(ALICE, reentrant)
        assert seen == [0]

    def test_failed_transfer_restores_entry(self, ledger):
        ledger.credit_refund(ALICE, 42)

        def failing(who, amt):
            raise RuntimeError("transfer failed")

        with pytest.raises(RuntimeError):
            ledger.withdraw(ALICE, failing)
        assert ledger.pending(ALICE) == 42

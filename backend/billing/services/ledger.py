# Overview: Bill ledger state machine (total / paid / balance / payment status).

"""
Bill Ledger

WHY: paid_amount, balance_amount and payment_status must move together.
Every collection create/update/delete goes through apply_payment so the
three fields can never disagree.

INVARIANTS (checked after every mutation):
- balance_amount == max(0, total_amount - paid_amount)
- payment_status == derive_payment_status(total, paid, balance)

One rule on every path: a mutation that would make the balance negative
(overpayment) or the paid amount negative (over-reversal) is rejected with
OverpaymentError and leaves the ledger unchanged. Callers check their own
business rule first (ExceedsBalanceError / ExceedsTotalError) so users see
the specific message; this is the backstop.

"overdue" is never produced here. A time-based sweep assigns it; any later
ledger mutation re-derives the status from the amounts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..errors import OverpaymentError
from ..money import ZERO, round2


logger = logging.getLogger(__name__)


PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_OVERDUE = "overdue"


def derive_payment_status(total_amount: Decimal, paid_amount: Decimal, balance_amount: Decimal) -> str:
    """
    PAYMENT STATUS:
    - paid:    balance <= 0 or paid >= total
    - partial: 0 < paid < total
    - pending: nothing paid
    """
    if balance_amount <= 0 or paid_amount >= total_amount:
        return PAYMENT_STATUS_PAID
    if paid_amount > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


@dataclass
class BillLedger:
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    balance_amount: Decimal | None = None
    payment_status: str | None = None

    def __post_init__(self):
        self.total_amount = round2(self.total_amount)
        self.paid_amount = round2(self.paid_amount)
        if self.balance_amount is None:
            self.balance_amount = max(ZERO, self.total_amount - self.paid_amount)
        else:
            self.balance_amount = round2(self.balance_amount)
        if self.payment_status is None:
            self.payment_status = derive_payment_status(
                self.total_amount, self.paid_amount, self.balance_amount
            )

    @classmethod
    def for_new_bill(cls, total_amount: Decimal) -> "BillLedger":
        return cls(total_amount=total_amount)

    @classmethod
    def from_record(cls, bill: dict) -> "BillLedger":
        return cls(
            total_amount=bill["total_amount"],
            paid_amount=bill["paid_amount"],
            balance_amount=bill["balance_amount"],
            payment_status=bill["payment_status"],
        )

    def apply_payment(self, delta) -> "BillLedger":
        """
        Move delta into (positive) or out of (negative) the paid amount.

        Raises:
            OverpaymentError: new balance < 0 or new paid < 0
        """
        delta = round2(delta)
        new_paid = self.paid_amount + delta
        new_balance = self.total_amount - new_paid

        if new_balance < 0:
            raise OverpaymentError(
                f"Payment of {delta} would overpay the bill "
                f"(total {self.total_amount}, paid {self.paid_amount})"
            )
        if new_paid < 0:
            raise OverpaymentError(
                f"Reversal of {-delta} exceeds the amount paid ({self.paid_amount})"
            )

        self.paid_amount = round2(new_paid)
        self.balance_amount = max(ZERO, round2(new_balance))
        self.payment_status = derive_payment_status(self.total_amount, self.paid_amount, self.balance_amount)
        logger.debug(
            "Ledger moved by %s: paid=%s balance=%s status=%s",
            delta, self.paid_amount, self.balance_amount, self.payment_status,
        )
        return self

    def reverse_payment(self, amount) -> "BillLedger":
        return self.apply_payment(-round2(amount))

    def can_accept(self, amount) -> bool:
        return round2(amount) <= self.balance_amount

    def to_fields(self) -> dict:
        return {
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_amount": self.balance_amount,
            "payment_status": self.payment_status,
        }

# Overview: Pure line-item pricing and bill totals.

"""
Line-Item Calculator

Each line is priced from its inputs as sent and rounded independently
before it is summed:

    amount          = round2(quantity * rate)
    discount_amount = round2(amount * discount_rate / 100)
    taxable_amount  = amount - discount_amount
    tax_amount      = round2(taxable_amount * tax_rate / 100)
    line_total      = round2(taxable_amount + tax_amount)

Bill totals are rounded sums of the already-rounded lines, so
total_amount == round2(sum(line_total)) even where a bill-level-only
formula would differ by a cent.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import ValidationError
from ..money import ZERO, percent_of, round2
from ..validation import storage_precision, validate_line_item


@dataclass(frozen=True)
class PricedItem:
    item_name: str
    quantity: Decimal
    unit: str
    rate: Decimal
    tax_rate: Decimal
    discount_rate: Decimal
    amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal
    item_code: str | None = None
    description: str | None = None

    def to_record(self) -> dict:
        return {
            "item_name": self.item_name,
            "item_code": self.item_code,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "rate": self.rate,
            "tax_rate": self.tax_rate,
            "discount_rate": self.discount_rate,
            "amount": self.amount,
            "discount_amount": self.discount_amount,
            "taxable_amount": self.taxable_amount,
            "tax_amount": self.tax_amount,
            "line_total": self.line_total,
        }


@dataclass(frozen=True)
class BillTotals:
    items: list[PricedItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    @property
    def paid_amount(self) -> Decimal:
        return ZERO

    @property
    def balance_amount(self) -> Decimal:
        return self.total_amount

    def ledger_fields(self) -> dict:
        """Header fields for a freshly priced bill (nothing collected yet)."""
        return {
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_amount": self.balance_amount,
        }


def price_item(draft: Mapping, index: int = 0) -> PricedItem:
    """Validate one draft and compute its rounded amounts."""
    clean = validate_line_item(dict(draft), index=index)

    quantity = clean["quantity"]
    rate = clean["rate"]
    tax_rate = clean["tax_rate"]
    discount_rate = clean["discount_rate"]

    amount = round2(quantity * rate)
    discount_amount = percent_of(amount, discount_rate)
    taxable_amount = amount - discount_amount
    tax_amount = percent_of(taxable_amount, tax_rate)
    line_total = round2(taxable_amount + tax_amount)

    quantity, rate, tax_rate, discount_rate = storage_precision(quantity, rate, tax_rate, discount_rate)

    return PricedItem(
        item_name=clean["item_name"],
        item_code=clean.get("item_code"),
        description=clean.get("description"),
        quantity=quantity,
        unit=clean["unit"],
        rate=rate,
        tax_rate=tax_rate,
        discount_rate=discount_rate,
        amount=amount,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        line_total=line_total,
    )


def calculate_bill_totals(items: Sequence[Mapping]) -> BillTotals:
    """
    Price an ordered list of line-item drafts.

    Raises:
        ValidationError: empty list, non-object entries, missing item_name,
            quantity below 0.001, negative rate, or tax/discount outside 0-100
    """
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence) or not items:
        raise ValidationError("Items array is required and cannot be empty")

    priced = []
    for index, draft in enumerate(items):
        if not isinstance(draft, Mapping):
            raise ValidationError(f"Item at index {index} must be an object")
        priced.append(price_item(draft, index))

    subtotal = round2(sum((p.amount for p in priced), ZERO))
    tax_total = round2(sum((p.tax_amount for p in priced), ZERO))
    discount_total = round2(sum((p.discount_amount for p in priced), ZERO))

    return BillTotals(
        items=priced,
        subtotal=subtotal,
        tax_amount=tax_total,
        discount_amount=discount_total,
        total_amount=round2(subtotal - discount_total + tax_total),
    )

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models import Customer, SalesBill, SalesBillItem, CollectionBill
from .money import round2, to_decimal
from .time_utils import parse_iso_date


# Numeric(15, 2) ceiling
MAX_AMOUNT = Decimal("9999999999999.99")
MIN_QUANTITY = Decimal("0.001")
# Numeric(10, 3) ceiling
MAX_QUANTITY = Decimal("9999999.999")
MIN_COLLECTION_AMOUNT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")

CUSTOMER_STATUSES = ("active", "inactive", "blocked")
PAYMENT_STATUSES = ("pending", "partial", "paid", "overdue")
BILL_STATUSES = ("draft", "sent", "viewed", "paid", "cancelled")
PAYMENT_METHODS = ("cash", "cheque", "bank_transfer", "upi", "card", "other")
COLLECTION_STATUSES = ("pending", "cleared", "bounced", "cancelled")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "customer_code", "name", "email", "phone", "address", "city", "state",
        "pincode", "gst_number", "credit_limit", "status",
    }),
    required_on_create=frozenset({"name"}),
)

SALES_BILL_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "bill_number", "customer_id", "bill_date", "due_date", "bill_status",
        "notes", "terms_conditions",
    }),
    required_on_create=frozenset({"customer_id", "bill_date"}),
)

LINE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "item_name", "item_code", "description", "quantity", "unit", "rate",
        "tax_rate", "discount_rate",
    }),
    required_on_create=frozenset({"item_name", "quantity", "rate"}),
)

COLLECTION_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "collection_number", "customer_id", "sales_bill_id", "collection_date",
        "collection_amount", "payment_method", "reference_number", "bank_name",
        "cheque_date", "collection_status", "notes", "collected_by",
    }),
    required_on_create=frozenset({"customer_id", "collection_date", "collection_amount"}),
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Decimals (money, rates, quantities)
    if isinstance(coltype, Numeric):
        return to_decimal(value, field=col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Calendar dates (accept "YYYY-MM-DD" or ISO-8601 datetimes)
    if isinstance(coltype, Date) and not isinstance(coltype, DateTime):
        if isinstance(value, (date, datetime)):
            return parse_iso_date(value)
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if parsed is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return parsed
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
    label: str | None = None,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    The models are the schema for every storage backend, so the document
    store gets the same checks as the relational one.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    where = f"{label}: " if label else ""

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(f"{where}Invalid JSON payload")

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"{where}Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"{where}Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"{where}Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{where}{k} cannot be null")
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            raise ValidationError(f"{where}{exc.message}")

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{where}{k} cannot be blank")
            # Optional text sent as "" is stored as absent
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{where}{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _require_choice(patch: dict, field: str, choices: tuple[str, ...]) -> None:
    if field in patch and patch[field] is not None and patch[field] not in choices:
        raise ValidationError(f"{field} must be one of {', '.join(choices)}")


def _in_range(value: Decimal, field: str, minimum: Decimal, maximum: Decimal, label: str | None = None) -> None:
    # Bounds are checked on the value as sent, before any rounding
    if value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if value > maximum:
        raise ValidationError(f"{field} cannot exceed {label or maximum}")


def _amount_in_range(value: Decimal, field: str, minimum: Decimal) -> Decimal:
    _in_range(value, field, minimum, MAX_AMOUNT)
    return round2(value)


def _positive_id(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None and patch[field] <= 0:
        raise ValidationError(f"{field} must be a positive integer")


def enforce_rules_customer(patch: dict) -> None:
    """Business rules that are not captured by column metadata alone."""
    if "name" in patch and patch["name"] is not None:
        if len(patch["name"]) < 2:
            raise ValidationError("name must be at least 2 characters")

    email = patch.get("email")
    if email is not None and not _EMAIL_RE.match(email):
        raise ValidationError("email must be a valid email address")

    phone = patch.get("phone")
    if phone is not None and not 10 <= len(phone) <= 15:
        raise ValidationError("phone must be 10-15 characters")

    gst = patch.get("gst_number")
    if gst is not None and len(gst) != 15:
        raise ValidationError("gst_number must be exactly 15 characters")

    if patch.get("credit_limit") is not None:
        patch["credit_limit"] = _amount_in_range(patch["credit_limit"], "credit_limit", Decimal("0"))

    _require_choice(patch, "status", CUSTOMER_STATUSES)


def enforce_rules_sales_bill(patch: dict) -> None:
    _positive_id(patch, "customer_id")
    _require_choice(patch, "bill_status", BILL_STATUSES)


def enforce_rules_line_item(patch: dict) -> None:
    """
    Line item invariants:
    - 0.001 <= quantity <= MAX_QUANTITY
    - 0 <= rate <= MAX_AMOUNT
    - tax_rate and discount_rate within 0..100
    Missing rates and unit fall back to 0 / "pcs".

    Values are left as sent; pricing runs on them and storage_precision()
    rounds to column scale afterwards.
    """
    if patch.get("quantity") is not None:
        _in_range(patch["quantity"], "quantity", MIN_QUANTITY, MAX_QUANTITY)

    if patch.get("rate") is not None:
        _in_range(patch["rate"], "rate", Decimal("0"), MAX_AMOUNT)

    for field in ("tax_rate", "discount_rate"):
        if patch.get(field) is None:
            patch[field] = Decimal("0.00")
            continue
        _in_range(patch[field], field, Decimal("0"), Decimal("100"), label="100%")

    if not patch.get("unit"):
        patch["unit"] = "pcs"


def storage_precision(quantity: Decimal, rate: Decimal, tax_rate: Decimal, discount_rate: Decimal) -> tuple:
    """Round line inputs to their column scale (quantity 3 places, rates 2)."""
    return (
        quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP),
        round2(rate),
        round2(tax_rate),
        round2(discount_rate),
    )


def enforce_rules_collection(patch: dict) -> None:
    _positive_id(patch, "customer_id")
    _positive_id(patch, "sales_bill_id")

    if "collection_amount" in patch:
        if patch["collection_amount"] is None:
            raise ValidationError("collection_amount cannot be null")
        patch["collection_amount"] = _amount_in_range(
            patch["collection_amount"], "collection_amount", MIN_COLLECTION_AMOUNT
        )

    _require_choice(patch, "payment_method", PAYMENT_METHODS)
    _require_choice(patch, "collection_status", COLLECTION_STATUSES)


def validate_customer(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    enforce_rules_customer(patch)
    return patch


def validate_sales_bill(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=SalesBill, payload=payload, policy=SALES_BILL_POLICY, partial=partial)
    enforce_rules_sales_bill(patch)
    return patch


def validate_line_item(payload: dict, *, index: int) -> dict:
    label = f"Item at index {index}"
    patch = validate_payload(
        model=SalesBillItem,
        payload=payload,
        policy=LINE_ITEM_POLICY,
        partial=False,
        label=label,
    )
    try:
        enforce_rules_line_item(patch)
    except ValidationError as exc:
        raise ValidationError(f"{label}: {exc.message}")
    return patch


def validate_collection(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=CollectionBill, payload=payload, policy=COLLECTION_POLICY, partial=partial)
    enforce_rules_collection(patch)
    return patch

# Overview: Prefixed, zero-padded human-readable identifiers.

"""
Numbering Service

next_number("INV", ["INV0001", "INV0003"]) -> "INV0004"
next_number("INV", [])                     -> "INV0001"

The last number is the greatest identifier with the prefix, ordered by
length and then value (ORDER BY LENGTH(col) DESC, col DESC LIMIT 1), so
INV10000 follows INV9999. Allocation is not race-free: two
callers can read the same last value. The unique constraint on the target
column catches the collision and the caller regenerates
(run_with_unique_retry).
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from ..storage import BillingStore, identifier_order


MIN_DIGITS = 4

_LEADING_DIGITS = re.compile(r"^\d+")


def format_number(prefix: str, number: int, pad: int = MIN_DIGITS) -> str:
    return f"{prefix}{number:0{pad}d}"


def increment_identifier(prefix: str, last: str | None) -> str:
    """Strip prefix, parse leading digits (none -> 0), add one, re-pad."""
    if not last:
        return format_number(prefix, 1)
    remainder = last[len(prefix):] if last.startswith(prefix) else last
    match = _LEADING_DIGITS.match(remainder)
    current = int(match.group(0)) if match else 0
    return format_number(prefix, current + 1)


def next_number(prefix: str, identifiers: Iterable[str]) -> str:
    """Next identifier after the greatest existing one carrying prefix."""
    matching = [value for value in identifiers if value and value.startswith(prefix)]
    return increment_identifier(prefix, max(matching, key=identifier_order) if matching else None)


def next_stored_number(store: BillingStore, kind: str, field_name: str, prefix: str) -> str:
    """next_number against the store's sorted scan of kind.field_name."""
    return increment_identifier(prefix, store.max_identifier(kind, field_name, prefix))

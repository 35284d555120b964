# Overview: Storage contract shared by the relational and document adapters.

"""
Billing storage contract.

WHY: The billing rules (line pricing, ledger, reconciliation) are written
once against this interface. Each backend (SQLAlchemy tables, in-process
document collections) is an adapter, never a second copy of the rules.

RECORDS: plain dicts. Money is Decimal, calendar fields are date,
timestamps are datetime. Callers never receive adapter-owned objects, so a
mutation only takes effect through update().

ATOMICITY: transaction() gives all-or-nothing execution of every write made
inside the block. Nested blocks join the outermost one.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional


KIND_CUSTOMERS = "customers"
KIND_SALES_BILLS = "sales_bills"
KIND_SALES_BILL_ITEMS = "sales_bill_items"
KIND_COLLECTION_BILLS = "collection_bills"

KINDS = (
    KIND_CUSTOMERS,
    KIND_SALES_BILLS,
    KIND_SALES_BILL_ITEMS,
    KIND_COLLECTION_BILLS,
)

# Fields that must be unique (when not null) within a kind
UNIQUE_FIELDS = {
    KIND_CUSTOMERS: ("customer_code", "email"),
    KIND_SALES_BILLS: ("bill_number",),
    KIND_SALES_BILL_ITEMS: (),
    KIND_COLLECTION_BILLS: ("collection_number",),
}

# Fields the adapter owns; patches never overwrite them
PROTECTED_FIELDS = frozenset({"id", "version_id", "created_at", "updated_at"})


def identifier_order(value: str) -> tuple[int, str]:
    """Sort key for prefixed numbers: longer ranks higher, so INV10000 outranks INV9999."""
    return (len(value), value)


@dataclass
class ListQuery:
    """
    Filter, search, sort and pagination for list().

    - equals: equality predicates (status fields, foreign keys)
    - date_field/date_from/date_to: inclusive date range
    - search: case-insensitive substring over search_fields, OR'd together
      and with search_in ({field: [ids]}) matches
    """
    page: int = 1
    limit: int = 10
    equals: dict[str, Any] = field(default_factory=dict)
    date_field: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    search_fields: tuple[str, ...] = ()
    search_in: dict[str, list] = field(default_factory=dict)
    sort_field: str = "created_at"
    descending: bool = True

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page:
    items: list[dict]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if not self.limit:
            return 0
        return math.ceil(self.total / self.limit)

    def pagination(self) -> dict:
        return {
            "total": self.total,
            "page": self.page,
            "pages": self.pages,
            "limit": self.limit,
        }


class BillingStore(ABC):
    """Persistence handle injected into every billing service."""

    backend = "abstract"

    # -- lifecycle --------------------------------------------------------

    def open(self) -> None:
        """Acquire backend resources. Called once at process start."""

    def close(self) -> None:
        """Release backend resources. Called once at shutdown."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """All-or-nothing unit of work; rolls back on any exception."""

    # -- CRUD -------------------------------------------------------------

    @abstractmethod
    def create(self, kind: str, record: dict) -> int:
        """Insert a record, returning its id. Raises UniqueConstraintError."""

    @abstractmethod
    def get(self, kind: str, entity_id: int, *, for_update: bool = False) -> dict:
        """Fetch by id. Raises NotFoundError. for_update locks the row where supported."""

    @abstractmethod
    def update(
        self,
        kind: str,
        entity_id: int,
        patch: dict,
        *,
        expected_version: int | None = None,
    ) -> dict:
        """
        Apply a partial update and return the new record.

        expected_version: reject with ConcurrencyError if the stored
        version_id differs (the caller's read is stale).
        """

    @abstractmethod
    def delete(self, kind: str, entity_id: int) -> None:
        """Delete by id. Raises NotFoundError."""

    @abstractmethod
    def delete_where(self, kind: str, **equals) -> int:
        """Delete every record matching the equality predicates; returns count."""

    # -- queries ----------------------------------------------------------

    @abstractmethod
    def find(self, kind: str, **equals) -> list[dict]:
        """All records matching the equality predicates, ordered by id."""

    @abstractmethod
    def count(self, kind: str, **equals) -> int:
        """Number of records matching the equality predicates."""

    @abstractmethod
    def list(self, kind: str, query: ListQuery) -> Page:
        """Filtered, searched, sorted page of records."""

    @abstractmethod
    def max_identifier(self, kind: str, field_name: str, prefix: str) -> str | None:
        """Greatest value of field_name starting with prefix, by (length, value)."""

    @abstractmethod
    def summarize(
        self,
        kind: str,
        *,
        sum_fields: tuple[str, ...] = (),
        date_field: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        group_by: str | None = None,
    ) -> list[dict]:
        """
        Count and per-field sums, optionally grouped by one categorical column.

        Returns one row ({"count": n, <field>: Decimal, ...}) when group_by is
        None, otherwise one row per group with the group value under group_by.
        """

    def ping(self) -> int:
        """Cheap round-trip used by health checks."""
        return self.count(KIND_CUSTOMERS)

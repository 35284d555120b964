# Overview: Document store adapter holding records as nested dicts in process memory.

"""
Document store adapter.

WHY: Document backends keep each record as a free-form document in a named
collection. This adapter gives the same contract as the relational store
without a database: documents are dicts keyed by id inside per-kind
collections, and ids come from per-collection counters.

ATOMICITY: transaction() holds a process-wide re-entrant lock for the whole
block and snapshots every collection on entry; any exception restores the
snapshot, so partial writes are never visible.

ISOLATION: documents are deep-copied on the way in and out, so callers can
never mutate stored state without going through update().
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from datetime import date

from ..errors import ConcurrencyError, NotFoundError, UniqueConstraintError
from ..money import ZERO, round2
from ..time_utils import utcnow
from .base import BillingStore, KINDS, ListQuery, Page, PROTECTED_FIELDS, UNIQUE_FIELDS, identifier_order


class DocumentStore(BillingStore):
    backend = "document"

    def __init__(self, kinds: tuple[str, ...] = KINDS, fields: dict[str, tuple[str, ...]] | None = None):
        """
        kinds: collection names
        fields: optional {kind: field names}; fields a new document omits are
            stored as None so reads see the same keys as the relational store
        """
        self._kinds = tuple(kinds)
        self._fields = dict(fields or {})
        self._lock = threading.RLock()
        self._local = threading.local()
        self._collections: dict[str, dict[int, dict]] = {}
        self._counters: dict[str, int] = {}
        self._opened = False

    # -- lifecycle --------------------------------------------------------

    def open(self) -> None:
        with self._lock:
            if self._opened:
                return
            self._collections = {kind: {} for kind in self._kinds}
            self._counters = {kind: 0 for kind in self._kinds}
            self._opened = True

    def close(self) -> None:
        with self._lock:
            self._collections = {}
            self._counters = {}
            self._opened = False

    @property
    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @_depth.setter
    def _depth(self, value: int) -> None:
        self._local.depth = value

    @contextmanager
    def transaction(self):
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = (copy.deepcopy(self._collections), dict(self._counters))
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._collections, self._counters = snapshot
                raise
            finally:
                self._depth = 0

    # -- helpers ----------------------------------------------------------

    def _collection(self, kind: str) -> dict[int, dict]:
        if not self._opened:
            raise RuntimeError("Document store is not open")
        try:
            return self._collections[kind]
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}")

    def _check_unique(self, kind: str, document: dict, exclude_id: int | None = None) -> None:
        for name in UNIQUE_FIELDS.get(kind, ()):
            value = document.get(name)
            if value is None or value == "":
                continue
            for other_id, other in self._collection(kind).items():
                if other_id != exclude_id and other.get(name) == value:
                    raise UniqueConstraintError(f"{name} '{value}' already exists")

    @staticmethod
    def _matches(document: dict, equals: dict) -> bool:
        return all(document.get(name) == value for name, value in equals.items())

    @staticmethod
    def _in_range(value, date_from: date | None, date_to: date | None) -> bool:
        if value is None:
            return False
        if date_from is not None and value < date_from:
            return False
        if date_to is not None and value > date_to:
            return False
        return True

    def _select(self, kind: str, equals: dict) -> list[dict]:
        return [
            doc for _, doc in sorted(self._collection(kind).items())
            if self._matches(doc, equals)
        ]

    # -- CRUD -------------------------------------------------------------

    def create(self, kind: str, record: dict) -> int:
        with self._lock:
            collection = self._collection(kind)
            document = {k: copy.deepcopy(v) for k, v in record.items() if k not in PROTECTED_FIELDS}
            for name in self._fields.get(kind, ()):
                document.setdefault(name, None)
            self._check_unique(kind, document)

            self._counters[kind] += 1
            new_id = self._counters[kind]
            now = utcnow()
            document.update(id=new_id, created_at=now, updated_at=now, version_id=1)
            collection[new_id] = document
            return new_id

    def get(self, kind: str, entity_id: int, *, for_update: bool = False) -> dict:
        with self._lock:
            document = self._collection(kind).get(entity_id)
            if document is None:
                raise NotFoundError(kind, entity_id)
            return copy.deepcopy(document)

    def update(self, kind, entity_id, patch, *, expected_version=None) -> dict:
        with self._lock:
            collection = self._collection(kind)
            current = collection.get(entity_id)
            if current is None:
                raise NotFoundError(kind, entity_id)

            if expected_version is not None and current["version_id"] != expected_version:
                raise ConcurrencyError(
                    f"{kind} {entity_id} changed (version {current['version_id']}, expected {expected_version})"
                )

            updated = dict(current)
            for name, value in patch.items():
                if name in PROTECTED_FIELDS:
                    continue
                updated[name] = copy.deepcopy(value)
            self._check_unique(kind, updated, exclude_id=entity_id)

            updated["version_id"] = current["version_id"] + 1
            updated["updated_at"] = utcnow()
            collection[entity_id] = updated
            return copy.deepcopy(updated)

    def delete(self, kind: str, entity_id: int) -> None:
        with self._lock:
            collection = self._collection(kind)
            if entity_id not in collection:
                raise NotFoundError(kind, entity_id)
            del collection[entity_id]

    def delete_where(self, kind: str, **equals) -> int:
        with self._lock:
            collection = self._collection(kind)
            doomed = [doc["id"] for doc in self._select(kind, equals)]
            for entity_id in doomed:
                del collection[entity_id]
            return len(doomed)

    # -- queries ----------------------------------------------------------

    def find(self, kind: str, **equals) -> list[dict]:
        with self._lock:
            return copy.deepcopy(self._select(kind, equals))

    def count(self, kind: str, **equals) -> int:
        with self._lock:
            return len(self._select(kind, equals))

    def list(self, kind: str, query: ListQuery) -> Page:
        with self._lock:
            documents = self._select(kind, query.equals)

            if query.date_field:
                documents = [
                    doc for doc in documents
                    if self._in_range(doc.get(query.date_field), query.date_from, query.date_to)
                ]

            if query.search:
                term = query.search.lower()
                documents = [doc for doc in documents if self._search_hit(doc, term, query)]

            def sort_key(doc):
                value = doc.get(query.sort_field)
                return (value is not None, value if value is not None else 0, doc["id"])

            documents.sort(key=sort_key, reverse=query.descending)
            items = documents[query.offset:query.offset + query.limit]

            return Page(
                items=copy.deepcopy(items),
                total=len(documents),
                page=query.page,
                limit=query.limit,
            )

    @staticmethod
    def _search_hit(document: dict, term: str, query: ListQuery) -> bool:
        for name in query.search_fields:
            value = document.get(name)
            if value is not None and term in str(value).lower():
                return True
        for name, ids in query.search_in.items():
            if ids and document.get(name) in ids:
                return True
        return False

    def max_identifier(self, kind: str, field_name: str, prefix: str) -> str | None:
        with self._lock:
            candidates = [
                doc[field_name] for doc in self._collection(kind).values()
                if isinstance(doc.get(field_name), str) and doc[field_name].startswith(prefix)
            ]
            return max(candidates, key=identifier_order) if candidates else None

    def summarize(
        self,
        kind,
        *,
        sum_fields=(),
        date_field=None,
        date_from=None,
        date_to=None,
        group_by=None,
    ) -> list[dict]:
        with self._lock:
            documents = list(self._collection(kind).values())
            if date_field:
                documents = [
                    doc for doc in documents
                    if self._in_range(doc.get(date_field), date_from, date_to)
                ]

            groups: dict = {}
            if not group_by:
                groups[None] = documents
            else:
                for doc in documents:
                    groups.setdefault(doc.get(group_by), []).append(doc)

            result = []
            for key in sorted(groups, key=lambda k: (k is not None, k if k is not None else "")):
                members = groups[key]
                row = {"count": len(members)}
                if group_by:
                    row[group_by] = key
                for name in sum_fields:
                    row[name] = round2(sum((doc.get(name) or ZERO for doc in members), ZERO))
                result.append(row)
            return result

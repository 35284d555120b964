# Overview: Relational store adapter backed by Flask-SQLAlchemy models.

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date

from sqlalchemy import asc, desc, false, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyError, ConflictError, NotFoundError, UniqueConstraintError
from ..models import MODELS_BY_KIND
from ..money import ZERO, round2, to_decimal
from .base import BillingStore, ListQuery, Page, PROTECTED_FIELDS


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class SqlAlchemyStore(BillingStore):
    """
    Tables via the shared Flask-SQLAlchemy session.

    Requires an application context. Writes made outside transaction()
    commit immediately; inside it they are flushed and committed once by the
    outermost block. Every mapped class carries version_id_col, so an UPDATE
    built on a stale read surfaces as ConcurrencyError.
    """

    backend = "sql"

    def __init__(self, db, app=None):
        self.db = db
        self.app = app
        self._local = threading.local()

    # -- lifecycle --------------------------------------------------------

    def open(self) -> None:
        pass

    def close(self) -> None:
        if self.app is None:
            return
        with self.app.app_context():
            self.db.session.remove()
            self.db.engine.dispose()

    @property
    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @_depth.setter
    def _depth(self, value: int) -> None:
        self._local.depth = value

    @contextmanager
    def transaction(self):
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        session = self.db.session
        self._depth = 1
        try:
            yield self
            session.commit()
        except StaleDataError as exc:
            session.rollback()
            raise ConcurrencyError("Record was modified by another request") from exc
        except IntegrityError as exc:
            session.rollback()
            raise _integrity_error(exc) from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            self._depth = 0

    def _flush(self) -> None:
        session = self.db.session
        try:
            if self._depth:
                session.flush()
            else:
                session.commit()
        except StaleDataError as exc:
            if not self._depth:
                session.rollback()
            raise ConcurrencyError("Record was modified by another request") from exc
        except IntegrityError as exc:
            if not self._depth:
                session.rollback()
            raise _integrity_error(exc) from exc

    # -- helpers ----------------------------------------------------------

    def _model(self, kind: str):
        try:
            return MODELS_BY_KIND[kind]
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}")

    def _column(self, model, name: str):
        if name not in model.__mapper__.columns:
            raise ValueError(f"Unknown field {name} for {model.__tablename__}")
        return getattr(model, name)

    def _filtered(self, model, equals: dict):
        q = self.db.session.query(model)
        for name, value in equals.items():
            q = q.filter(self._column(model, name) == value)
        return q

    # -- CRUD -------------------------------------------------------------

    def create(self, kind: str, record: dict) -> int:
        model = self._model(kind)
        values = {k: v for k, v in record.items() if k not in PROTECTED_FIELDS}
        for name in values:
            self._column(model, name)

        obj = model(**values)
        self.db.session.add(obj)
        self._flush()
        return obj.id

    def get(self, kind: str, entity_id: int, *, for_update: bool = False) -> dict:
        model = self._model(kind)
        q = self.db.session.query(model).filter(model.id == entity_id)
        if for_update:
            q = lock_for_update(q)
        obj = q.first()
        if obj is None:
            raise NotFoundError(kind, entity_id)
        return obj.to_record()

    def update(self, kind, entity_id, patch, *, expected_version=None) -> dict:
        model = self._model(kind)
        obj = self.db.session.get(model, entity_id)
        if obj is None:
            raise NotFoundError(kind, entity_id)

        if expected_version is not None and obj.version_id != expected_version:
            raise ConcurrencyError(
                f"{kind} {entity_id} changed (version {obj.version_id}, expected {expected_version})"
            )

        for name, value in patch.items():
            if name in PROTECTED_FIELDS:
                continue
            self._column(model, name)
            setattr(obj, name, value)

        self._flush()
        return obj.to_record()

    def delete(self, kind: str, entity_id: int) -> None:
        model = self._model(kind)
        obj = self.db.session.get(model, entity_id)
        if obj is None:
            raise NotFoundError(kind, entity_id)
        self.db.session.delete(obj)
        self._flush()

    def delete_where(self, kind: str, **equals) -> int:
        model = self._model(kind)
        rows = self._filtered(model, equals).all()
        for obj in rows:
            self.db.session.delete(obj)
        if rows:
            self._flush()
        return len(rows)

    # -- queries ----------------------------------------------------------

    def find(self, kind: str, **equals) -> list[dict]:
        model = self._model(kind)
        rows = self._filtered(model, equals).order_by(model.id).all()
        return [obj.to_record() for obj in rows]

    def count(self, kind: str, **equals) -> int:
        model = self._model(kind)
        return self._filtered(model, equals).count()

    def list(self, kind: str, query: ListQuery) -> Page:
        model = self._model(kind)
        q = self._filtered(model, query.equals)
        q = self._apply_date_range(q, model, query.date_field, query.date_from, query.date_to)

        if query.search:
            term = query.search.lower()
            conditions = [
                func.lower(self._column(model, name)).contains(term, autoescape=True)
                for name in query.search_fields
            ]
            for name, ids in query.search_in.items():
                if ids:
                    conditions.append(self._column(model, name).in_(list(ids)))
            q = q.filter(or_(*conditions)) if conditions else q.filter(false())

        total = q.count()

        order = desc if query.descending else asc
        q = q.order_by(order(self._column(model, query.sort_field)), order(model.id))
        rows = q.offset(query.offset).limit(query.limit).all()

        return Page(
            items=[obj.to_record() for obj in rows],
            total=total,
            page=query.page,
            limit=query.limit,
        )

    def max_identifier(self, kind: str, field_name: str, prefix: str) -> str | None:
        model = self._model(kind)
        col = self._column(model, field_name)
        return (
            self.db.session.query(col)
            .filter(col.startswith(prefix, autoescape=True))
            .order_by(func.length(col).desc(), col.desc())
            .limit(1)
            .scalar()
        )

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
        model = self._model(kind)
        aggregates = [func.count(model.id).label("count")]
        for name in sum_fields:
            aggregates.append(func.coalesce(func.sum(self._column(model, name)), 0).label(name))

        if group_by:
            group_col = self._column(model, group_by)
            q = self.db.session.query(group_col.label(group_by), *aggregates).group_by(group_col).order_by(group_col)
        else:
            q = self.db.session.query(*aggregates)

        q = self._apply_date_range(q, model, date_field, date_from, date_to)

        result = []
        for row in q.all():
            mapping = row._mapping
            out = {"count": int(mapping["count"] or 0)}
            if group_by:
                out[group_by] = mapping[group_by]
            for name in sum_fields:
                value = mapping[name]
                out[name] = round2(to_decimal(value)) if value is not None else ZERO
            result.append(out)
        return result

    def _apply_date_range(self, q, model, date_field: str | None, date_from: date | None, date_to: date | None):
        if not date_field:
            return q
        col = self._column(model, date_field)
        if date_from is not None:
            q = q.filter(col >= date_from)
        if date_to is not None:
            q = q.filter(col <= date_to)
        return q


def _integrity_error(exc: IntegrityError) -> ConflictError:
    message = str(getattr(exc, "orig", exc))
    if "unique" in message.lower() or "duplicate" in message.lower():
        return UniqueConstraintError(_unique_message(message))
    return ConflictError(f"Database constraint violated: {message}")


def _unique_message(message: str) -> str:
    lowered = message.lower()
    if "bill_number" in lowered:
        return "Bill number already exists"
    if "collection_number" in lowered:
        return "Collection number already exists"
    if "customer_code" in lowered or "email" in lowered:
        return "Customer code or email already exists"
    return "Duplicate value violates a unique constraint"

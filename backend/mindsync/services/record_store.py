# Overview: Business-scoped row CRUD over the persisted tables.

"""
Record Store

Generic row access used by the reporting facade and the list endpoints.
Every query and write is scoped to one business: tables that carry a
business_id are filtered on it directly; invoice_items and invoice_payments
are scoped through their invoice, stock_movements through their product.

USAGE:
    store = RecordStore(business_id)
    unpaid = store.select("invoices").in_("status", ["unpaid", "part_paid"]).order("created_at", desc=True).all()
    store.insert("customers", {"name": "Ada"})

Any database failure surfaces as StoreError with the session rolled back.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    BusinessProfile,
    ChartOfAccount,
    Customer,
    Invoice,
    InvoiceItem,
    InvoicePayment,
    Product,
    StockMovement,
    Transaction,
)
from ..validation import NotFoundError, ValidationError
from .concurrency import StoreError, run_with_retry

logger = logging.getLogger(__name__)


TABLES = {
    "business_profiles": BusinessProfile,
    "transactions": Transaction,
    "chart_of_accounts": ChartOfAccount,
    "invoices": Invoice,
    "invoice_items": InvoiceItem,
    "invoice_payments": InvoicePayment,
    "products": Product,
    "stock_movements": StockMovement,
    "customers": Customer,
}

# child table -> (parent model, foreign key attribute on the child)
_SCOPED_THROUGH = {
    "invoice_items": (Invoice, "invoice_id"),
    "invoice_payments": (Invoice, "invoice_id"),
    "stock_movements": (Product, "product_id"),
}

# never writable through the store
_PROTECTED_FIELDS = {"id", "business_id", "version_id", "created_at", "updated_at"}

# balances owned by the payment and stock services; set on insert, never patched
_UPDATE_PROTECTED = {
    "invoices": {"amount_paid", "status"},
    "products": {"stock_quantity"},
}


def _model_for(table: str):
    model = TABLES.get(table)
    if model is None:
        raise ValidationError(f"Unknown table: {table}")
    return model


def _column(model, field: str):
    if field not in model.__mapper__.columns:
        raise ValidationError(f"Unknown field: {field}")
    return getattr(model, field)


class RecordQuery:
    """
    Chainable, business-scoped SELECT.

    Filters are ANDed together. Nothing touches the database until
    all(), first() or count() is called.
    """

    def __init__(self, store: "RecordStore", table: str):
        self._store = store
        self._table = table
        self._model = _model_for(table)
        self._filters = []
        self._order_by = []
        self._limit = None

    def eq(self, field: str, value) -> "RecordQuery":
        column = _column(self._model, field)
        self._filters.append(column.is_(None) if value is None else column == value)
        return self

    def in_(self, field: str, values) -> "RecordQuery":
        self._filters.append(_column(self._model, field).in_(list(values)))
        return self

    def ilike(self, field: str, pattern: str) -> "RecordQuery":
        self._filters.append(_column(self._model, field).ilike(pattern))
        return self

    def ilike_any(self, field: str, patterns) -> "RecordQuery":
        column = _column(self._model, field)
        self._filters.append(db.or_(*[column.ilike(p) for p in patterns]))
        return self

    def gte(self, field: str, value) -> "RecordQuery":
        self._filters.append(_column(self._model, field) >= value)
        return self

    def lt(self, field: str, value) -> "RecordQuery":
        self._filters.append(_column(self._model, field) < value)
        return self

    def search(self, fields, term: str | None) -> "RecordQuery":
        """Case-insensitive substring match across any of `fields`."""
        term = (term or "").strip()
        if not term:
            return self
        pattern = f"%{term}%"
        self._filters.append(db.or_(*[_column(self._model, f).ilike(pattern) for f in fields]))
        return self

    def order(self, field: str, desc: bool = False) -> "RecordQuery":
        column = _column(self._model, field)
        self._order_by.append(column.desc() if desc else column.asc())
        return self

    def limit(self, n: int) -> "RecordQuery":
        if n is not None and n < 0:
            raise ValidationError("limit must be >= 0")
        self._limit = n
        return self

    def _build(self):
        query = self._store._scoped(self._table)
        if self._filters:
            query = query.filter(*self._filters)
        return query

    def all(self) -> list:
        query = self._build()
        # stable ordering so repeated reads are deterministic
        query = query.order_by(*self._order_by, self._model.id.asc())
        if self._limit is not None:
            query = query.limit(self._limit)
        return self._store._read(query.all)

    def first(self):
        self._limit = 1
        rows = self.all()
        return rows[0] if rows else None

    def count(self) -> int:
        return self._store._read(self._build().count)


class RecordStore:
    """Row CRUD for one business."""

    def __init__(self, business_id: int):
        self.business_id = business_id

    def select(self, table: str) -> RecordQuery:
        return RecordQuery(self, table)

    def get(self, table: str, row_id: int):
        """Fetch one row by id; NotFoundError when missing or owned by another business."""
        row = self.select(table).eq("id", row_id).first()
        if row is None:
            raise NotFoundError(f"{_model_for(table).__name__} not found")
        return row

    def insert(self, table: str, values: dict, *, commit: bool = True):
        model = _model_for(table)
        if table == "business_profiles":
            raise ValidationError("Business profiles are not created through a business-scoped store")
        self._check_writable(model, values)
        self._check_parent(table, values, required=True)

        def _op():
            row = model(**values)
            if "business_id" in model.__mapper__.columns:
                row.business_id = self.business_id
            db.session.add(row)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return row

        return run_with_retry(_op)

    def update(self, table: str, row_id: int, values: dict, *, commit: bool = True):
        model = _model_for(table)
        self._check_writable(model, values)
        for key in values:
            if key in _UPDATE_PROTECTED.get(table, ()):
                raise ValidationError(f"Field not allowed: {key}")
        self._check_parent(table, values)

        def _op():
            row = self.get(table, row_id)
            for key, value in values.items():
                setattr(row, key, value)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return row

        return run_with_retry(_op)

    def delete(self, table: str, row_id: int, *, commit: bool = True) -> None:
        def _op():
            row = self.get(table, row_id)
            db.session.delete(row)
            if commit:
                db.session.commit()
            else:
                db.session.flush()

        run_with_retry(_op)
        logger.info("Deleted %s %s for business %s", table, row_id, self.business_id)

    # ------------------------------------------------------------------

    def _scoped(self, table: str):
        model = _model_for(table)
        query = db.session.query(model)
        if table == "business_profiles":
            return query.filter(model.id == self.business_id)
        if table in _SCOPED_THROUGH:
            parent, fk = _SCOPED_THROUGH[table]
            return query.join(parent, getattr(model, fk) == parent.id).filter(
                parent.business_id == self.business_id
            )
        return query.filter(model.business_id == self.business_id)

    def _read(self, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Store read failed: %s", exc)
            raise StoreError("Database read failed") from exc

    def _check_writable(self, model, values: dict) -> None:
        for key in values:
            if key in _PROTECTED_FIELDS:
                raise ValidationError(f"Field not allowed: {key}")
            if key not in model.__mapper__.columns:
                raise ValidationError(f"Unknown field: {key}")

    def _check_parent(self, table: str, values: dict, required: bool = False) -> None:
        if table not in _SCOPED_THROUGH:
            return
        parent, fk = _SCOPED_THROUGH[table]
        if fk not in values:
            if required:
                raise ValidationError(f"Missing required fields: {fk}")
            return
        owner = db.session.get(parent, values[fk])
        if owner is None or owner.business_id != self.business_id:
            raise NotFoundError(f"{parent.__name__} not found")

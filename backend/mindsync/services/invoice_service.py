# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Service

Recording a sale is one business event: the invoice, its line items, the
stock decrement and the outgoing stock movements are written in a single
unit of work. Either all of it commits or none of it does.

Line items snapshot the product's purchase_cost at sale time so that COGS
does not drift when the product cost changes later.

Deleting an invoice does not put its stock back: a recorded sale is final.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import update

from ..extensions import db
from ..models import Invoice, InvoiceItem, InvoiceSequence, Product, StockMovement, Transaction
from ..models.accounting import TRANSACTION_INCOME
from ..models.inventory import STOCK_OUT
from ..models.invoices import INVOICE_STATUS_PAID, INVOICE_STATUSES
from ..time_utils import today
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_amount,
    parse_date_field,
    parse_quantity,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .payment_service import derive_status
from .record_store import RecordStore
from .tenant_service import require_customer, require_invoice

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "INV-"
INVOICE_NUMBER_PAD = 6

INVOICE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"total_amount", "due_date", "notes", "customer_id"},
)


# =============================================================================
# NUMBERING
# =============================================================================

def _allocate_invoice_number_locked(business_id: int) -> str:
    """
    Allocate the next invoice number inside the caller's transaction.

    The sequence row is bumped with a single UPDATE so two concurrent
    creations can never read the same value. Does not commit.
    """
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.business_id == business_id)
        .values(next_number=InvoiceSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(InvoiceSequence.next_number)
            .filter_by(business_id=business_id)
            .scalar()
        )
        number = current - 1
    else:
        # first invoice for a business created without a sequence row
        db.session.add(InvoiceSequence(business_id=business_id, next_number=2))
        db.session.flush()
        number = 1
    return f"{INVOICE_NUMBER_PREFIX}{number:0{INVOICE_NUMBER_PAD}d}"


# =============================================================================
# CREATION
# =============================================================================

def _parse_lines(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one invoice item is required")
    lines = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"Item {index}: product_id is required")
        try:
            product_id = int(raw["product_id"])
        except (TypeError, ValueError):
            raise ValidationError(f"Item {index}: product_id must be an integer")
        quantity = parse_quantity(raw.get("quantity"), f"Item {index}: quantity")
        unit_price = raw.get("unit_price")
        if unit_price is not None:
            unit_price = parse_amount(unit_price, f"Item {index}: unit_price")
        lines.append({"product_id": product_id, "quantity": quantity, "unit_price": unit_price})
    return lines


def _record_income_enabled() -> bool:
    return has_app_context() and bool(current_app.config.get("RECORD_INVOICE_INCOME_TRANSACTION"))


def create_invoice(
    business_id: int,
    *,
    items,
    customer_id: int | None = None,
    due_date=None,
    notes: str | None = None,
) -> Invoice:
    """
    Create an invoice with its line items and take the sold stock out.

    Args:
        business_id: Owning business
        items: [{"product_id", "quantity", "unit_price" (optional, defaults to product price)}]
        customer_id: Optional customer of the same business
        due_date: Optional ISO date
        notes: Optional free text

    Raises:
        ValidationError: bad item data or insufficient stock (nothing is written)
        NotFoundError: product or customer missing or owned by another business
    """
    lines = _parse_lines(items)
    due = parse_date_field(due_date, "due_date")
    notes = (notes or "").strip() or None
    if customer_id not in (None, ""):
        try:
            customer_id = int(customer_id)
        except (TypeError, ValueError):
            raise ValidationError("customer_id must be an integer")
        customer_id = require_customer(customer_id, business_id).id
    else:
        customer_id = None

    requested: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    def _op():
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(
                    Product.id.in_(list(requested)),
                    Product.business_id == business_id,
                )
            ).populate_existing().all()
        }
        for product_id, qty in requested.items():
            product = products.get(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if product.stock_quantity < qty:
                raise ValidationError(
                    f"Insufficient stock for {product.name}: available {product.stock_quantity}, requested {qty}"
                )

        invoice = Invoice(
            business_id=business_id,
            customer_id=customer_id,
            invoice_number=_allocate_invoice_number_locked(business_id),
            due_date=due,
            notes=notes,
            amount_paid=Decimal("0.00"),
        )
        total = Decimal("0.00")
        for line in lines:
            product = products[line["product_id"]]
            unit_price = line["unit_price"] if line["unit_price"] is not None else product.unit_price
            line_total = unit_price * line["quantity"]
            total += line_total
            invoice.items.append(InvoiceItem(
                product_id=product.id,
                quantity=line["quantity"],
                unit_price=unit_price,
                purchase_cost=product.purchase_cost or Decimal("0.00"),
                total_amount=line_total,
            ))
        invoice.total_amount = total
        invoice.status = derive_status(total, invoice.amount_paid)
        db.session.add(invoice)
        db.session.flush()

        for product_id, qty in requested.items():
            product = products[product_id]
            product.stock_quantity = product.stock_quantity - qty
            db.session.add(StockMovement(
                product_id=product_id,
                type=STOCK_OUT,
                quantity=qty,
                reference_id=invoice.id,
                notes=f"Sold on {invoice.invoice_number}",
            ))

        if _record_income_enabled():
            db.session.add(Transaction(
                business_id=business_id,
                type=TRANSACTION_INCOME,
                amount=total,
                date=today(),
                description=f"Invoice {invoice.invoice_number}",
                reference_number=invoice.invoice_number,
            ))

        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    logger.info(
        "Created invoice %s for business %s (total %s, %d items)",
        invoice.invoice_number, business_id, invoice.total_amount, len(lines),
    )
    return invoice


# =============================================================================
# EDITS
# =============================================================================

def get_invoice(invoice_id: int, business_id: int) -> Invoice:
    return require_invoice(invoice_id, business_id)


def update_invoice(invoice_id: int, business_id: int, payload: dict, expected_version: int | None = None) -> Invoice:
    """
    Edit total_amount, due_date, notes or customer_id.

    total_amount may not drop below what has already been paid; the status
    is re-derived after every edit.
    """
    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_UPDATE_POLICY, partial=True)
    if patch.get("customer_id") is not None:
        require_customer(patch["customer_id"], business_id)
    if "total_amount" in patch and patch["total_amount"] is None:
        raise ValidationError("total_amount cannot be null")

    def _op():
        require_invoice(invoice_id, business_id)
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).populate_existing().one()
        if expected_version is not None and invoice.version_id != expected_version:
            raise ConflictError("Invoice was modified by another request; reload and try again")
        if "total_amount" in patch and patch["total_amount"] < invoice.amount_paid:
            raise ValidationError("total_amount cannot be less than the amount already paid")

        for key, value in patch.items():
            setattr(invoice, key, value)
        invoice.status = derive_status(invoice.total_amount, invoice.amount_paid)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(invoice_id: int, business_id: int) -> None:
    """Delete an invoice with its items and payments. Stock is not restored."""
    invoice = require_invoice(invoice_id, business_id)
    number = invoice.invoice_number
    RecordStore(business_id).delete("invoices", invoice_id)
    logger.info("Deleted invoice %s for business %s", number, business_id)


# =============================================================================
# QUERIES
# =============================================================================

def is_overdue(invoice, on: date | None = None) -> bool:
    on = on or today()
    return invoice.status != INVOICE_STATUS_PAID and invoice.due_date is not None and invoice.due_date < on


def list_invoices(
    business_id: int,
    *,
    status: str | None = None,
    search: str | None = None,
    customer_id: int | None = None,
    overdue: bool = False,
    limit: int | None = None,
) -> list[Invoice]:
    query = RecordStore(business_id).select("invoices")
    if status:
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {list(INVOICE_STATUSES)}")
        query = query.eq("status", status)
    if customer_id is not None:
        query = query.eq("customer_id", customer_id)
    query = query.search(["invoice_number", "notes"], search)
    if overdue:
        query = query.in_("status", [s for s in INVOICE_STATUSES if s != INVOICE_STATUS_PAID]).lt("due_date", today())
    return query.order("created_at", desc=True).limit(limit).all()


def invoice_summary(business_id: int) -> dict:
    invoices = RecordStore(business_id).select("invoices").all()
    counts = {status: 0 for status in INVOICE_STATUSES}
    invoiced = paid = Decimal("0.00")
    overdue = 0
    for inv in invoices:
        counts[inv.status] = counts.get(inv.status, 0) + 1
        invoiced += inv.total_amount
        paid += inv.amount_paid
        if is_overdue(inv):
            overdue += 1
    return {
        "invoice_count": len(invoices),
        "status_counts": counts,
        "overdue_count": overdue,
        "total_invoiced": str(invoiced),
        "total_paid": str(paid),
        "outstanding": str(invoiced - paid),
    }

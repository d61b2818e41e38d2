# Overview: Service-layer operations for invoice payments; encapsulates business logic and database work.

"""
Invoice Payment Reconciler

Applies partial or full payments to invoices and keeps the invoice's
amount_paid and status in step with its payment rows.

DESIGN PRINCIPLES:
- Payments are append-only InvoicePayment rows (many-to-one with invoices)
- One unit of work per payment: the payment row and the invoice update
  commit together or not at all
- The invoice row is locked for update and version-checked; a concurrent
  writer makes the whole unit of work retry from a fresh read
- Status is always derived, never set directly:
    unpaid     amount_paid == 0
    part_paid  0 < amount_paid < total_amount
    paid       amount_paid >= total_amount
- Product stock is never touched here (it moved when the invoice was created)
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import Invoice, InvoicePayment
from ..models.invoices import (
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_PART_PAID,
    INVOICE_STATUS_UNPAID,
)
from ..time_utils import today
from ..validation import ConflictError, ValidationError, parse_amount, parse_date_field
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import require_invoice

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CARD = "card"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_CHEQUE = "cheque"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_CARD,
    METHOD_MOBILE_MONEY,
    METHOD_CHEQUE,
]

INVALID_PAYMENT_AMOUNT = "Invalid payment amount"


def derive_status(total_amount, amount_paid) -> str:
    total = Decimal(str(total_amount or 0))
    paid = Decimal(str(amount_paid or 0))
    if paid >= total:
        return INVOICE_STATUS_PAID
    if paid > 0:
        return INVOICE_STATUS_PART_PAID
    return INVOICE_STATUS_UNPAID


def _normalize_method(method: str | None) -> str | None:
    if method is None:
        return None
    method = str(method).strip().lower()
    if not method:
        return None
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")
    return method


def _locked_invoice(invoice_id: int, business_id: int) -> Invoice:
    # ownership check first so other businesses' invoices read as missing
    require_invoice(invoice_id, business_id)
    return lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).populate_existing().one()


# =============================================================================
# PAYMENT APPLICATION
# =============================================================================

def apply_payment(
    invoice_id: int,
    business_id: int,
    amount,
    method: str | None = None,
    notes: str | None = None,
    payment_date=None,
    expected_version: int | None = None,
) -> Invoice:
    """
    Apply a payment to an invoice.

    Args:
        invoice_id: Invoice being paid
        business_id: Caller's business (the invoice must belong to it)
        amount: Payment amount, 0 < amount <= remaining balance
        method: Optional payment method (see VALID_PAYMENT_METHODS)
        notes: Optional free text
        payment_date: Date of payment (defaults to today)
        expected_version: When given, the invoice's version_id must still match

    Returns:
        The updated Invoice

    Raises:
        ValidationError: amount out of range, bad method or date
        ConflictError: expected_version is stale
        NotFoundError: invoice missing or owned by another business
    """
    try:
        amount = parse_amount(amount, "amount", allow_zero=False)
    except ValidationError:
        raise ValidationError(INVALID_PAYMENT_AMOUNT)
    method = _normalize_method(method)
    paid_on = parse_date_field(payment_date, "payment_date") or today()
    notes = (notes or "").strip() or None

    def _op():
        invoice = _locked_invoice(invoice_id, business_id)

        if expected_version is not None and invoice.version_id != expected_version:
            raise ConflictError("Invoice was modified by another request; reload and try again")

        remaining = invoice.total_amount - invoice.amount_paid
        if amount > remaining:
            raise ValidationError(INVALID_PAYMENT_AMOUNT)

        db.session.add(InvoicePayment(
            invoice_id=invoice.id,
            amount_paid=amount,
            payment_method=method,
            payment_date=paid_on,
            notes=notes,
        ))

        previous_status = invoice.status
        invoice.amount_paid = invoice.amount_paid + amount
        invoice.status = derive_status(invoice.total_amount, invoice.amount_paid)

        db.session.commit()

        logger.info(
            "Invoice %s payment %s applied (%s -> %s, paid %s of %s)",
            invoice.invoice_number, amount, previous_status, invoice.status,
            invoice.amount_paid, invoice.total_amount,
        )
        return invoice

    return run_with_retry(_op)


def mark_fully_paid(invoice_id: int, business_id: int, method: str | None = None) -> Invoice:
    """Pay the remaining balance in one payment dated today."""
    invoice = require_invoice(invoice_id, business_id)
    if invoice.status == INVOICE_STATUS_PAID:
        raise ValidationError("Invoice is already paid")
    remaining = invoice.total_amount - invoice.amount_paid
    if remaining <= 0:
        raise ValidationError("Invoice has no remaining balance")
    return apply_payment(
        invoice_id,
        business_id,
        remaining,
        method=method,
        payment_date=today(),
        expected_version=invoice.version_id,
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice_payments(invoice_id: int, business_id: int) -> list[InvoicePayment]:
    require_invoice(invoice_id, business_id)
    return (
        db.session.query(InvoicePayment)
        .filter_by(invoice_id=invoice_id)
        .order_by(InvoicePayment.payment_date.asc(), InvoicePayment.id.asc())
        .all()
    )


def get_remaining_balance(invoice_id: int, business_id: int) -> Decimal:
    invoice = require_invoice(invoice_id, business_id)
    return invoice.total_amount - invoice.amount_paid


def get_payment_summary(invoice_id: int, business_id: int) -> dict:
    """
    Get payment summary for an invoice.

    Returns:
        - total_amount: Invoice total
        - amount_paid: Amount paid so far
        - remaining: Amount still owed
        - status: unpaid, part_paid, paid
        - version_id: current optimistic-lock version (pass back as expected_version)
        - payments: List of payment records
    """
    invoice = require_invoice(invoice_id, business_id)
    payments = get_invoice_payments(invoice_id, business_id)
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "total_amount": str(invoice.total_amount),
        "amount_paid": str(invoice.amount_paid),
        "remaining": str(invoice.total_amount - invoice.amount_paid),
        "status": invoice.status,
        "version_id": invoice.version_id,
        "payments": [p.to_dict() for p in payments],
    }


def verify_payment_ledger(invoice_id: int, business_id: int) -> dict:
    """
    Compare the sum of payment rows with the invoice's amount_paid.

    They diverge only if amount_paid was written outside apply_payment.
    """
    invoice = require_invoice(invoice_id, business_id)
    ledger_total = db.session.query(
        db.func.coalesce(db.func.sum(InvoicePayment.amount_paid), 0)
    ).filter(InvoicePayment.invoice_id == invoice_id).scalar()
    ledger_total = Decimal(str(ledger_total or 0)).quantize(Decimal("0.01"))
    consistent = ledger_total == invoice.amount_paid
    if not consistent:
        logger.warning(
            "Invoice %s payment ledger mismatch: payments=%s amount_paid=%s",
            invoice.invoice_number, ledger_total, invoice.amount_paid,
        )
    return {
        "invoice_id": invoice.id,
        "payments_total": str(ledger_total),
        "amount_paid": str(invoice.amount_paid),
        "consistent": consistent,
        "status_consistent": invoice.status == derive_status(invoice.total_amount, invoice.amount_paid),
    }

"""
Business (tenant) lookup and scoping helpers.

Every row in the store belongs to exactly one business. Identifiers that
arrive from client input are resolved here against the caller's business;
a row that exists but belongs to another business is reported exactly like
a missing one so that its existence is not revealed.

USAGE:
    from mindsync.services.tenant_service import require_invoice

    invoice = require_invoice(invoice_id, g.business_id)
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    BusinessProfile,
    ChartOfAccount,
    Customer,
    Invoice,
    InvoiceSequence,
    Product,
    Transaction,
)
from ..validation import NotFoundError, ConflictError, ValidationError
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def get_business(business_id: int) -> BusinessProfile | None:
    return db.session.get(BusinessProfile, business_id)


def get_business_for_user(user_id: str) -> BusinessProfile | None:
    """Resolve "my business" for an external user reference."""
    return db.session.query(BusinessProfile).filter_by(user_id=user_id).first()


def require_business(business_id: int) -> BusinessProfile:
    business = get_business(business_id)
    if business is None:
        raise NotFoundError("Business not found")
    return business


def create_business(*, user_id: str, business_name: str, **fields) -> BusinessProfile:
    user_id = (user_id or "").strip()
    business_name = (business_name or "").strip()
    if not user_id:
        raise ValidationError("user_id is required")
    if not business_name:
        raise ValidationError("business_name is required")
    if get_business_for_user(user_id) is not None:
        raise ConflictError("A business profile already exists for this user")

    allowed = {"phone", "business_email", "industry", "whatsapp_number"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    def _op():
        business = BusinessProfile(user_id=user_id, business_name=business_name, **fields)
        db.session.add(business)
        db.session.flush()
        db.session.add(InvoiceSequence(business_id=business.id, next_number=1))
        db.session.commit()
        return business

    business = run_with_retry(_op)
    logger.info("Created business %s (%s)", business.id, business.business_name)
    return business


def list_businesses() -> list[BusinessProfile]:
    return db.session.query(BusinessProfile).order_by(BusinessProfile.id.asc()).all()


def _require_scoped(model, row_id: int, business_id: int, label: str):
    row = db.session.get(model, row_id)
    if row is None or row.business_id != business_id:
        if row is not None:
            logger.warning(
                "Cross-business access denied: %s %s belongs to business %s, not %s",
                label, row_id, row.business_id, business_id,
            )
        raise NotFoundError(f"{label} not found")
    return row


def require_invoice(invoice_id: int, business_id: int) -> Invoice:
    return _require_scoped(Invoice, invoice_id, business_id, "Invoice")


def require_product(product_id: int, business_id: int) -> Product:
    return _require_scoped(Product, product_id, business_id, "Product")


def require_customer(customer_id: int, business_id: int) -> Customer:
    return _require_scoped(Customer, customer_id, business_id, "Customer")


def require_account(account_id: int, business_id: int) -> ChartOfAccount:
    return _require_scoped(ChartOfAccount, account_id, business_id, "Account")


def require_transaction(transaction_id: int, business_id: int) -> Transaction:
    return _require_scoped(Transaction, transaction_id, business_id, "Transaction")
